"""Tabular views of a league statistics document.

Turns the nested :class:`~bracket_pool.stats.league.LeagueStatsDocument`
into flat pandas DataFrames, validates them with Pandera schemas and writes
them to Parquet through PyArrow for offline analysis.

Usage:
    >>> from bracket_pool.stats.frames import rankings_frame
    >>> df = rankings_frame(stats)  # doctest: +SKIP
    >>> df.head()  # doctest: +SKIP
"""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd  # type: ignore[import-untyped]
import pandera.pandas as pa
import pyarrow  # type: ignore[import-untyped]
import pyarrow.parquet as pq  # type: ignore[import-untyped]

from bracket_pool.stats.league import LeagueStatsDocument

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Pandera schemas
# ---------------------------------------------------------------------------

RANKINGS_SCHEMA = pa.DataFrameSchema(
    {
        "rank": pa.Column(int, pa.Check.ge(1)),
        "user_id": pa.Column(str, unique=True),
        "user_name": pa.Column(str),
        "score": pa.Column(float),
        "raw_score": pa.Column(float, pa.Check.ge(0)),
        "adjustment": pa.Column(float),
        "correct_picks": pa.Column(int, pa.Check.ge(0)),
        "accuracy": pa.Column(float, pa.Check.in_range(0.0, 1.0)),
        "max_possible": pa.Column(float, pa.Check.ge(0)),
    },
    strict=True,
    coerce=True,
)

ROUND_STATS_SCHEMA = pa.DataFrameSchema(
    {
        "round": pa.Column(str, unique=True),
        "label": pa.Column(str),
        "correct_picks": pa.Column(int, pa.Check.ge(0)),
        "possible_picks": pa.Column(int, pa.Check.ge(0)),
        "accuracy": pa.Column(float, pa.Check.in_range(0.0, 1.0)),
        "avg_points_per_player": pa.Column(float, pa.Check.ge(0)),
        "completed_games": pa.Column(int, pa.Check.ge(0)),
        "total_games": pa.Column(int, pa.Check.ge(1)),
        "upsets": pa.Column(int, pa.Check.ge(0)),
    },
    checks=pa.Check(lambda df: df["completed_games"] <= df["total_games"], name="completed_le_total"),
    strict=True,
    coerce=True,
)

SEED_PERFORMANCE_SCHEMA = pa.DataFrameSchema(
    {
        "seed": pa.Column(int, pa.Check.ge(1), unique=True),
        "wins": pa.Column(int, pa.Check.ge(0)),
        "losses": pa.Column(int, pa.Check.ge(0)),
        "win_rate": pa.Column(float, pa.Check.in_range(0.0, 1.0)),
        "furthest_round": pa.Column(str),
    },
    strict=True,
    coerce=True,
)

# Explicit PyArrow schemas keep Parquet column types stable across exports.

_RANKINGS_ARROW = pyarrow.schema([
    ("rank", pyarrow.int64()),
    ("user_id", pyarrow.string()),
    ("user_name", pyarrow.string()),
    ("score", pyarrow.float64()),
    ("raw_score", pyarrow.float64()),
    ("adjustment", pyarrow.float64()),
    ("correct_picks", pyarrow.int64()),
    ("accuracy", pyarrow.float64()),
    ("max_possible", pyarrow.float64()),
])


# ---------------------------------------------------------------------------
# Frame builders
# ---------------------------------------------------------------------------


def rankings_frame(stats: LeagueStatsDocument) -> pd.DataFrame:
    """One row per ranked player, in rank order."""
    rows = [
        {
            "rank": r.rank,
            "user_id": r.user_id,
            "user_name": r.user_name,
            "score": r.score,
            "raw_score": r.raw_score,
            "adjustment": r.adjustment,
            "correct_picks": r.correct_picks,
            "accuracy": r.accuracy,
            "max_possible": r.max_possible,
        }
        for r in stats.rankings
    ]
    df = pd.DataFrame(rows, columns=list(RANKINGS_SCHEMA.columns))
    return RANKINGS_SCHEMA.validate(df)


def round_stats_frame(stats: LeagueStatsDocument) -> pd.DataFrame:
    """One row per round with accuracy and upset counts."""
    rows = [
        {
            "round": key,
            "label": rs.label,
            "correct_picks": rs.correct_picks,
            "possible_picks": rs.possible_picks,
            "accuracy": rs.accuracy,
            "avg_points_per_player": rs.avg_points_per_player,
            "completed_games": rs.completed_games,
            "total_games": rs.total_games,
            "upsets": stats.upsets.upsets_by_round.get(key, 0),
        }
        for key, rs in stats.round_stats.items()
    ]
    df = pd.DataFrame(rows, columns=list(ROUND_STATS_SCHEMA.columns))
    return ROUND_STATS_SCHEMA.validate(df)


def seed_performance_frame(stats: LeagueStatsDocument) -> pd.DataFrame:
    """One row per seed, sorted by seed."""
    rows = [
        {
            "seed": int(seed),
            "wins": perf.wins,
            "losses": perf.losses,
            "win_rate": perf.win_rate,
            "furthest_round": perf.furthest_round or "",
        }
        for seed, perf in stats.seed_performance.items()
    ]
    df = pd.DataFrame(rows, columns=list(SEED_PERFORMANCE_SCHEMA.columns))
    df = df.sort_values("seed", kind="stable").reset_index(drop=True)
    return SEED_PERFORMANCE_SCHEMA.validate(df)


def export_league_tables(stats: LeagueStatsDocument, out_dir: Path) -> dict[str, Path]:
    """Write rankings, round stats and seed performance as Parquet files.

    Files are written to ``out_dir / <league_id> /``.

    Returns:
        Mapping of table name to the written path.
    """
    target = out_dir / stats.league_id
    target.mkdir(parents=True, exist_ok=True)

    paths = {
        "rankings": target / "rankings.parquet",
        "round_stats": target / "round_stats.parquet",
        "seed_performance": target / "seed_performance.parquet",
    }
    rankings = pyarrow.Table.from_pandas(rankings_frame(stats), schema=_RANKINGS_ARROW, preserve_index=False)
    pq.write_table(rankings, paths["rankings"])
    pq.write_table(
        pyarrow.Table.from_pandas(round_stats_frame(stats), preserve_index=False),
        paths["round_stats"],
    )
    pq.write_table(
        pyarrow.Table.from_pandas(seed_performance_frame(stats), preserve_index=False),
        paths["seed_performance"],
    )
    logger.info("Exported league %s tables to %s", stats.league_id, target)
    return paths
