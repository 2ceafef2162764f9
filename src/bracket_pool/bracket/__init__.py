"""Bracket data model, layouts, propagation and read-only analysis."""

from __future__ import annotations

from bracket_pool.bracket.analysis import (
    BracketComparison,
    TournamentProgress,
    compare_brackets,
    count_correct_picks,
    count_correct_series,
    decided_games,
    is_bracket_complete,
    is_tournament_complete,
    tournament_progress,
)
from bracket_pool.bracket.layout import (
    DEFAULT_FINAL_FOUR,
    BracketLayout,
    LayoutNotFoundError,
    RoundSpec,
    SemifinalPairing,
    SlotTarget,
    assignment_from_pairings,
    build_layout,
    get_layout,
    list_layouts,
    march_madness_layout,
    nba_playoffs_layout,
    pairings_from_config,
    register_layout,
)
from bracket_pool.bracket.model import (
    Bracket,
    Matchup,
    ValidationReport,
    empty_bracket,
    load_bracket,
    repair,
    same_team,
    validate,
)
from bracket_pool.bracket.propagation import (
    advance_winner,
    clear_winner,
    rebuild_downstream,
    seed_first_round,
    set_secondary_pick,
    set_series_length,
)

__all__ = [
    "DEFAULT_FINAL_FOUR",
    "Bracket",
    "BracketComparison",
    "BracketLayout",
    "LayoutNotFoundError",
    "Matchup",
    "RoundSpec",
    "SemifinalPairing",
    "SlotTarget",
    "TournamentProgress",
    "ValidationReport",
    "advance_winner",
    "assignment_from_pairings",
    "build_layout",
    "clear_winner",
    "compare_brackets",
    "count_correct_picks",
    "count_correct_series",
    "decided_games",
    "empty_bracket",
    "get_layout",
    "is_bracket_complete",
    "is_tournament_complete",
    "list_layouts",
    "load_bracket",
    "march_madness_layout",
    "nba_playoffs_layout",
    "pairings_from_config",
    "rebuild_downstream",
    "register_layout",
    "repair",
    "same_team",
    "seed_first_round",
    "set_secondary_pick",
    "set_series_length",
    "tournament_progress",
    "validate",
]
