"""Unit tests for league aggregation."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

import pytest

from bracket_pool.bracket import Bracket, BracketLayout, Matchup
from bracket_pool.scoring import ScoreAdjustment, ScoreBreakdown, ScoringConfig
from bracket_pool.scoring import score as real_score
from bracket_pool.stats import (
    BracketEntry,
    LeagueStatsDocument,
    aggregate_league,
    count_upsets,
    score_entries,
    season_id_for,
    seed_performance,
)
from bracket_pool.stats.league import is_upset, semifinalists

BracketFactory = Callable[..., Bracket]

NOW = datetime(2026, 4, 7, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def blank_bracket(make_bracket: BracketFactory) -> Bracket:
    return make_bracket([("A", 1, "B", 4, ""), ("C", 2, "D", 3, "")], ("", None, "", None, ""))


@pytest.fixture
def entries(official_bracket: Bracket, user_bracket: Bracket, blank_bracket: Bracket) -> list[BracketEntry]:
    return [
        BracketEntry("blank", blank_bracket, "Blank"),
        BracketEntry("partial", user_bracket, "Partial"),
        BracketEntry("perfect", official_bracket, "Perfect"),
    ]


def _aggregate(
    entries: list[BracketEntry],
    official: Bracket,
    config: ScoringConfig,
    layout: BracketLayout,
    *,
    adjustments: dict[str, list[ScoreAdjustment]] | None = None,
    n_jobs: int = 1,
) -> LeagueStatsDocument:
    return aggregate_league(
        entries,
        official,
        config,
        layout,
        league_id="league-1",
        adjustments=adjustments,
        n_jobs=n_jobs,
        now=NOW,
    )


class TestRankings:
    """Ranking, ties, adjustments and failure isolation."""

    def test_ranked_by_score(
        self,
        entries: list[BracketEntry],
        official_bracket: Bracket,
        four_team_config: ScoringConfig,
        four_team_layout: BracketLayout,
    ) -> None:
        stats = _aggregate(entries, official_bracket, four_team_config, four_team_layout)
        assert [(r.user_id, r.rank, r.score) for r in stats.rankings] == [
            ("perfect", 1, 4.0),
            ("partial", 2, 3.0),
            ("blank", 3, 0.0),
        ]
        assert stats.player_count == 3
        assert stats.ranking_for("partial") is not None
        assert stats.ranking_for("nobody") is None

    def test_ties_keep_insertion_order(
        self,
        official_bracket: Bracket,
        user_bracket: Bracket,
        four_team_config: ScoringConfig,
        four_team_layout: BracketLayout,
    ) -> None:
        entries = [BracketEntry(uid, user_bracket) for uid in ("zed", "amy", "bob")]
        stats = _aggregate(entries, official_bracket, four_team_config, four_team_layout)
        assert [r.user_id for r in stats.rankings] == ["zed", "amy", "bob"]
        assert [r.rank for r in stats.rankings] == [1, 2, 3]

    def test_adjustments_applied_before_ranking(
        self,
        entries: list[BracketEntry],
        official_bracket: Bracket,
        four_team_config: ScoringConfig,
        four_team_layout: BracketLayout,
    ) -> None:
        bump = ScoreAdjustment(value=5.0, reason="commissioner", admin_id="admin-1")
        stats = _aggregate(
            entries, official_bracket, four_team_config, four_team_layout, adjustments={"blank": [bump]}
        )
        top = stats.rankings[0]
        assert (top.user_id, top.score, top.raw_score, top.adjustment) == ("blank", 5.0, 0.0, 5.0)

    def test_failing_user_is_excluded(
        self,
        entries: list[BracketEntry],
        official_bracket: Bracket,
        user_bracket: Bracket,
        four_team_config: ScoringConfig,
        four_team_layout: BracketLayout,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        def flaky_score(
            user: Bracket, official: Bracket, config: ScoringConfig, layout: BracketLayout
        ) -> ScoreBreakdown:
            if user is user_bracket:
                msg = "corrupt pick"
                raise RuntimeError(msg)
            return real_score(user, official, config, layout)

        monkeypatch.setattr("bracket_pool.stats.league.score", flaky_score)
        with caplog.at_level(logging.WARNING, logger="bracket_pool"):
            stats = _aggregate(entries, official_bracket, four_team_config, four_team_layout)
        assert [r.user_id for r in stats.rankings] == ["perfect", "blank"]
        assert stats.failed_users == ["partial"]
        assert "Excluding user partial: corrupt pick" in caplog.text

    def test_score_entries_reports_failures(
        self,
        entries: list[BracketEntry],
        official_bracket: Bracket,
        four_team_config: ScoringConfig,
        four_team_layout: BracketLayout,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def broken(*args: object) -> ScoreBreakdown:
            msg = "boom"
            raise ValueError(msg)

        monkeypatch.setattr("bracket_pool.stats.league.score", broken)
        scored, failures = score_entries(entries, official_bracket, four_team_config, four_team_layout)
        assert scored == []
        assert [f.user_id for f in failures] == ["blank", "partial", "perfect"]
        assert isinstance(failures[0].cause, ValueError)

    def test_parallel_matches_serial(
        self,
        entries: list[BracketEntry],
        official_bracket: Bracket,
        four_team_config: ScoringConfig,
        four_team_layout: BracketLayout,
    ) -> None:
        serial = _aggregate(entries, official_bracket, four_team_config, four_team_layout)
        parallel = _aggregate(entries, official_bracket, four_team_config, four_team_layout, n_jobs=2)
        assert parallel == serial


class TestSummary:
    """League-level figures derived from the rankings."""

    def test_distribution_and_accuracy(
        self,
        entries: list[BracketEntry],
        official_bracket: Bracket,
        four_team_config: ScoringConfig,
        four_team_layout: BracketLayout,
    ) -> None:
        stats = _aggregate(entries, official_bracket, four_team_config, four_team_layout)
        assert stats.distribution.average_score == pytest.approx(7 / 3)
        assert stats.distribution.median_score == 3.0
        assert (stats.distribution.lowest_score, stats.distribution.highest_score) == (0.0, 4.0)
        assert stats.overall_accuracy == pytest.approx(5 / 9)
        assert stats.ranking_for("partial").accuracy == pytest.approx(2 / 3)  # type: ignore[union-attr]
        assert [r.user_id for r in stats.winners] == ["perfect", "partial", "blank"]

    def test_median_uses_upper_middle(
        self,
        entries: list[BracketEntry],
        official_bracket: Bracket,
        four_team_config: ScoringConfig,
        four_team_layout: BracketLayout,
    ) -> None:
        stats = _aggregate(entries[1:], official_bracket, four_team_config, four_team_layout)
        # Scores [4, 3]: the element at index n // 2 of the ranked list.
        assert stats.distribution.median_score == 3.0

    def test_round_stats(
        self,
        entries: list[BracketEntry],
        official_bracket: Bracket,
        four_team_config: ScoringConfig,
        four_team_layout: BracketLayout,
    ) -> None:
        stats = _aggregate(entries, official_bracket, four_team_config, four_team_layout)
        semis = stats.round_stats["Semifinals"]
        assert (semis.correct_picks, semis.possible_picks, semis.accuracy) == (3, 6, 0.5)
        assert semis.avg_points_per_player == 1.0
        final = stats.round_stats["Final"]
        assert (final.correct_picks, final.possible_picks, final.point_value) == (2, 3, 2.0)
        assert final.label == "Final"

    def test_status_and_champion(
        self,
        entries: list[BracketEntry],
        official_bracket: Bracket,
        four_team_config: ScoringConfig,
        four_team_layout: BracketLayout,
    ) -> None:
        stats = _aggregate(entries, official_bracket, four_team_config, four_team_layout)
        assert stats.completed
        assert stats.tournament_status == "Completed"
        assert stats.champion is not None
        assert (stats.champion.name, stats.champion.seed) == ("A", 1)
        assert stats.progress.percentage == 100.0
        assert stats.game_type_id == "fourTeam"
        assert stats.season_id == "2025-2026"
        assert stats.generated_at == NOW

    def test_in_progress(
        self,
        entries: list[BracketEntry],
        in_progress_official: Bracket,
        four_team_config: ScoringConfig,
        four_team_layout: BracketLayout,
    ) -> None:
        stats = _aggregate(entries, in_progress_official, four_team_config, four_team_layout)
        assert not stats.completed
        assert stats.tournament_status == "In Progress"
        assert stats.champion is None
        assert stats.progress.current_round == "Final"
        assert stats.round_stats["Final"].possible_picks == 0

    def test_empty_league(
        self, official_bracket: Bracket, four_team_config: ScoringConfig, four_team_layout: BracketLayout
    ) -> None:
        stats = _aggregate([], official_bracket, four_team_config, four_team_layout)
        assert stats.rankings == []
        assert stats.distribution.average_score == 0.0
        assert stats.overall_accuracy == 0.0

    def test_document_aliases(
        self,
        entries: list[BracketEntry],
        official_bracket: Bracket,
        four_team_config: ScoringConfig,
        four_team_layout: BracketLayout,
    ) -> None:
        doc = _aggregate(entries, official_bracket, four_team_config, four_team_layout).to_document()
        assert doc["leagueId"] == "league-1"
        assert doc["generatedAt"] == "2026-04-07T12:00:00Z"
        assert "seedPerformance" in doc
        assert LeagueStatsDocument.model_validate(doc).player_count == 3

    def test_season_id(self) -> None:
        assert season_id_for(NOW) == "2025-2026"


class TestOfficialBracketStats:
    """Upsets, seed performance and semifinalists come from the official bracket alone."""

    def test_no_upsets(self, official_bracket: Bracket, four_team_layout: BracketLayout) -> None:
        assert count_upsets(official_bracket, four_team_layout).total_upsets == 0

    def test_upsets_by_round(self, make_bracket: BracketFactory, four_team_layout: BracketLayout) -> None:
        official = make_bracket([("A", 1, "B", 4, "B"), ("C", 2, "D", 3, "D")], ("B", 4, "D", 3, "D"))
        upsets = count_upsets(official, four_team_layout)
        assert upsets.upsets_by_round == {"Semifinals": 2, "Final": 0}
        assert upsets.total_upsets == 2

    @pytest.mark.parametrize(
        ("seeds", "expected"),
        [((1, 4, 4), True), ((1, 4, 1), False), ((None, 4, 4), False), ((1, None, 4), False)],
    )
    def test_is_upset(self, seeds: tuple[int | None, int | None, int | None], expected: bool) -> None:
        seed1, seed2, winner_seed = seeds
        matchup = Matchup(
            team1="X", team1_seed=seed1, team2="Y", team2_seed=seed2, winner="Y", winner_seed=winner_seed
        )
        assert is_upset(matchup) is expected

    def test_seed_performance(self, official_bracket: Bracket, four_team_layout: BracketLayout) -> None:
        table = seed_performance(official_bracket, four_team_layout)
        assert set(table) == {"1", "2", "3", "4"}
        one, two, four = table["1"], table["2"], table["4"]
        assert (one.wins, one.losses, one.furthest_round, one.win_rate) == (2, 0, "Champion", 1.0)
        assert one.rounds_reached == {"Semifinals": 1, "Final": 1, "Champion": 1}
        assert (two.wins, two.losses, two.furthest_round) == (1, 1, "Final")
        assert (four.wins, four.losses, four.furthest_round, four.win_rate) == (0, 1, "Semifinals", 0.0)

    def test_non_participant_winner_not_credited(
        self, make_bracket: BracketFactory, four_team_layout: BracketLayout, caplog: pytest.LogCaptureFixture
    ) -> None:
        official = make_bracket([("A", 1, "B", 4, "A"), ("C", 2, "D", 3, "C")], ("A", 1, "C", 2, ""))
        official = official.with_round("Final", (official.round("Final")[0].with_winner("Z", 1),))
        with caplog.at_level(logging.WARNING, logger="bracket_pool"):
            table = seed_performance(official, four_team_layout)
        assert "not a participant" in caplog.text
        assert table["1"].furthest_round == "Final"
        assert table["1"].wins == 1

    def test_semifinalists(self, official_bracket: Bracket, four_team_layout: BracketLayout) -> None:
        teams = semifinalists(official_bracket, four_team_layout)
        assert [(t.name, t.seed) for t in teams] == [("A", 1), ("B", 4), ("C", 2), ("D", 3)]
