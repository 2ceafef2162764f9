"""Unit tests for the DataFrame views and Parquet export."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pandas as pd  # type: ignore[import-untyped]
import pandera.errors
import pyarrow.parquet as pq  # type: ignore[import-untyped]
import pytest

from bracket_pool.bracket import Bracket, BracketLayout
from bracket_pool.scoring import ScoringConfig
from bracket_pool.stats import BracketEntry, LeagueStatsDocument, aggregate_league
from bracket_pool.stats.frames import (
    RANKINGS_SCHEMA,
    export_league_tables,
    rankings_frame,
    round_stats_frame,
    seed_performance_frame,
)


@pytest.fixture
def stats(
    official_bracket: Bracket,
    user_bracket: Bracket,
    four_team_config: ScoringConfig,
    four_team_layout: BracketLayout,
) -> LeagueStatsDocument:
    entries = [BracketEntry("partial", user_bracket, "Partial"), BracketEntry("perfect", official_bracket)]
    return aggregate_league(
        entries,
        official_bracket,
        four_team_config,
        four_team_layout,
        league_id="league-1",
        now=datetime(2026, 4, 7, tzinfo=timezone.utc),
    )


class TestFrames:
    """Tests for the frame builders."""

    def test_rankings(self, stats: LeagueStatsDocument) -> None:
        df = rankings_frame(stats)
        assert list(df["user_id"]) == ["perfect", "partial"]
        assert list(df["rank"]) == [1, 2]
        assert df["score"].dtype == "float64"
        assert list(df.columns) == list(RANKINGS_SCHEMA.columns)

    def test_round_stats(self, stats: LeagueStatsDocument) -> None:
        df = round_stats_frame(stats).set_index("round")
        assert df.loc["Semifinals", "correct_picks"] == 3
        assert df.loc["Final", "possible_picks"] == 2
        assert df["upsets"].sum() == 0

    def test_seed_performance_sorted(self, stats: LeagueStatsDocument) -> None:
        df = seed_performance_frame(stats)
        assert list(df["seed"]) == [1, 2, 3, 4]
        assert df.loc[0, "furthest_round"] == "Champion"

    def test_empty_league(self, stats: LeagueStatsDocument) -> None:
        empty = stats.model_copy(update={"rankings": [], "winners": []})
        df = rankings_frame(empty)
        assert df.empty
        assert list(df.columns) == list(RANKINGS_SCHEMA.columns)

    def test_schema_rejects_bad_accuracy(self) -> None:
        bad = pd.DataFrame(
            [
                {
                    "rank": 1,
                    "user_id": "u1",
                    "user_name": "",
                    "score": 1.0,
                    "raw_score": 1.0,
                    "adjustment": 0.0,
                    "correct_picks": 1,
                    "accuracy": 1.5,
                    "max_possible": 0.0,
                }
            ]
        )
        with pytest.raises(pandera.errors.SchemaError):
            RANKINGS_SCHEMA.validate(bad)


class TestExport:
    """Tests for `export_league_tables`."""

    def test_writes_parquet(self, stats: LeagueStatsDocument, tmp_path: Path) -> None:
        paths = export_league_tables(stats, tmp_path)
        assert set(paths) == {"rankings", "round_stats", "seed_performance"}
        assert all(p.parent == tmp_path / "league-1" for p in paths.values())

        rankings = pq.read_table(paths["rankings"])
        assert rankings.num_rows == 2
        assert str(rankings.schema.field("rank").type) == "int64"
        assert pq.read_table(paths["seed_performance"]).num_rows == 4
