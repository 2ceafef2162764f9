"""League and cross-league statistics, plus tabular exports."""

from __future__ import annotations

from bracket_pool.stats.league import (
    BracketEntry,
    LeagueStatsDocument,
    PlayerRanking,
    SeedPerformance,
    aggregate_league,
    count_upsets,
    score_entries,
    season_id_for,
    seed_performance,
)
from bracket_pool.stats.user import (
    GameTypeStats,
    LeagueSummary,
    SeasonStats,
    UserStatsDocument,
    merge_league_summary,
)

__all__ = [
    "BracketEntry",
    "GameTypeStats",
    "LeagueStatsDocument",
    "LeagueSummary",
    "PlayerRanking",
    "SeasonStats",
    "SeedPerformance",
    "UserStatsDocument",
    "aggregate_league",
    "count_upsets",
    "merge_league_summary",
    "score_entries",
    "season_id_for",
    "seed_performance",
]
