"""Unit tests for cross-league user statistics."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from bracket_pool.stats import LeagueSummary, SeasonStats, UserStatsDocument, merge_league_summary

T0 = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _summary(
    league_id: str,
    rank: int,
    score: float = 10.0,
    *,
    season: str = "2025-2026",
    game_type: str = "marchMadness",
    completed: bool | None = None,
    timestamp: datetime = T0,
) -> LeagueSummary:
    return LeagueSummary(
        league_id=league_id,
        season_id=season,
        game_type_id=game_type,
        rank=rank,
        score=score,
        completed=completed,
        timestamp=timestamp,
    )


class TestMerge:
    """Tests for `merge_league_summary`."""

    def test_first_result(self) -> None:
        doc = merge_league_summary(
            None, _summary("L1", 1), current_completed=True, user_id="u1", user_name="Ann"
        )
        assert (doc.user_id, doc.user_name) == ("u1", "Ann")
        assert doc.stats.total_leagues == 1
        assert doc.stats.total_wins == 1
        assert doc.league("L1") is not None
        assert doc.league("L1").completed is True  # type: ignore[union-attr]
        assert doc.last_updated == T0

    def test_user_id_required_without_prior(self) -> None:
        with pytest.raises(ValueError, match="user_id is required"):
            merge_league_summary(None, _summary("L1", 1), current_completed=True)

    def test_idempotent(self) -> None:
        once = merge_league_summary(None, _summary("L1", 1), current_completed=True, user_id="u1")
        twice = merge_league_summary(once, _summary("L1", 1), current_completed=True)
        assert twice == once

    def test_upsert_replaces_league(self) -> None:
        doc = merge_league_summary(None, _summary("L1", 3, 5.0), current_completed=False, user_id="u1")
        doc = merge_league_summary(doc, _summary("L1", 1, 9.0), current_completed=True)
        assert len(doc.leagues) == 1
        assert doc.by_game_type["marchMadness"].best_score == 9.0

    def test_in_progress_league_gives_no_win(self) -> None:
        doc = merge_league_summary(None, _summary("L1", 1), current_completed=False, user_id="u1")
        assert doc.stats.total_wins == 0
        assert doc.by_season_year["2025-2026"].wins == 0
        assert doc.by_game_type["marchMadness"].wins == 0

    def test_preview_then_finalize_counts_one_win(self) -> None:
        doc = merge_league_summary(None, _summary("L1", 1), current_completed=False, user_id="u1")
        doc = merge_league_summary(doc, _summary("L1", 1), current_completed=True)
        doc = merge_league_summary(doc, _summary("L1", 1), current_completed=True)
        assert doc.stats.total_wins == 1
        assert doc.by_season_year["2025-2026"].wins == 1
        assert doc.by_season_year["2025-2026"].leagues == 1

    def test_other_leagues_always_count(self) -> None:
        doc = merge_league_summary(None, _summary("L1", 1), current_completed=False, user_id="u1")
        assert doc.stats.total_wins == 0
        doc = merge_league_summary(doc, _summary("L2", 3), current_completed=True)
        assert doc.stats.total_wins == 1
        assert doc.by_season_year["2025-2026"].wins == 1
        assert doc.by_game_type["marchMadness"].wins == 1

    def test_stored_flag_ignored_for_other_leagues(self) -> None:
        doc = merge_league_summary(None, _summary("old", 2), current_completed=True, user_id="u1")
        stale = doc.model_copy(update={"leagues": [_summary("old", 2, completed=False)]})
        doc = merge_league_summary(stale, _summary("open", 1), current_completed=False)
        assert doc.stats.total_second_place == 1
        assert doc.stats.total_wins == 0

    def test_aggregates_by_season_and_game_type(self) -> None:
        doc = merge_league_summary(None, _summary("L1", 1, 10.0), current_completed=True, user_id="u1")
        doc = merge_league_summary(
            doc, _summary("L2", 2, 20.0, season="2024-2025"), current_completed=True
        )
        doc = merge_league_summary(
            doc, _summary("L3", 1, 6.0, game_type="nbaPlayoffs"), current_completed=True
        )
        assert doc.stats.total_leagues == 3
        assert doc.stats.total_wins == 2
        assert doc.stats.total_second_place == 1
        assert doc.by_season_year["2025-2026"].leagues == 2
        assert doc.by_season_year["2024-2025"].wins == 0
        march = doc.by_game_type["marchMadness"]
        assert (march.leagues, march.wins, march.best_score, march.total_score) == (2, 1, 20.0, 30.0)
        assert march.average_score == 15.0
        assert list(doc.by_game_type) == ["marchMadness", "nbaPlayoffs"]

    def test_keeps_prior_name(self) -> None:
        doc = merge_league_summary(
            None, _summary("L1", 1), current_completed=True, user_id="u1", user_name="Ann"
        )
        assert merge_league_summary(doc, _summary("L2", 2), current_completed=True).user_name == "Ann"

    def test_last_updated_is_newest_summary(self) -> None:
        later = datetime(2026, 4, 9, tzinfo=timezone.utc)
        first = _summary("L1", 1, timestamp=later)
        doc = merge_league_summary(None, first, current_completed=True, user_id="u1")
        doc = merge_league_summary(doc, _summary("L2", 1), current_completed=True)
        assert doc.last_updated == later


class TestDocuments:
    """Parsing of stored user statistics documents."""

    def test_legacy_season_guard_keys(self) -> None:
        bucket = SeasonStats.model_validate({"leagues": 2, "wins": 1, "league-7": True, "league-9": True})
        assert bucket.league_ids == {"league-7": True, "league-9": True}
        assert bucket.leagues == 2

    def test_round_trip_through_aliases(self) -> None:
        doc = merge_league_summary(None, _summary("L1", 1), current_completed=True, user_id="u1")
        stored = doc.to_document()
        assert stored["bySeasonYear"]["2025-2026"]["leagueIds"] == {"L1": True}  # type: ignore[index]
        assert UserStatsDocument.model_validate(stored) == doc


# ---------------------------------------------------------------------------
# Property-based tests
# ---------------------------------------------------------------------------

_summaries = st.lists(
    st.builds(
        _summary,
        league_id=st.sampled_from(["L1", "L2", "L3", "L4"]),
        rank=st.integers(min_value=1, max_value=5),
        score=st.floats(min_value=0, max_value=200, allow_nan=False),
        season=st.sampled_from(["2024-2025", "2025-2026"]),
        completed=st.none(),
    ),
    min_size=1,
    max_size=8,
)


@pytest.mark.property
class TestMergeProperties:
    """Merge invariants over arbitrary sequences of league results."""

    @given(summaries=_summaries, completed=st.booleans())
    @settings(max_examples=100, deadline=None)
    def test_reapplying_last_summary_is_a_no_op(
        self, summaries: list[LeagueSummary], completed: bool
    ) -> None:
        doc: UserStatsDocument | None = None
        for summary in summaries:
            doc = merge_league_summary(doc, summary, current_completed=completed, user_id="u1")
        assert doc is not None
        again = merge_league_summary(doc, summaries[-1], current_completed=completed)
        assert again == doc

    @given(summaries=_summaries)
    @settings(max_examples=100, deadline=None)
    def test_one_entry_per_league(self, summaries: list[LeagueSummary]) -> None:
        doc: UserStatsDocument | None = None
        for summary in summaries:
            doc = merge_league_summary(doc, summary, current_completed=True, user_id="u1")
        assert doc is not None
        assert doc.stats.total_leagues == len({s.league_id for s in summaries})
        assert sum(bucket.leagues for bucket in doc.by_season_year.values()) == doc.stats.total_leagues
