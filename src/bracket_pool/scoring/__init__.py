"""Scoring: configuration, presets, the scoring engine and manual adjustments."""

from __future__ import annotations

from bracket_pool.scoring.adjustments import (
    ScoreAdjustment,
    add_adjustment,
    parse_adjustments,
    remove_adjustment,
    total_adjustment,
)
from bracket_pool.scoring.config import (
    BonusMode,
    PresetNotFoundError,
    ScoringConfig,
    default_config,
    get_preset,
    list_presets,
    register_preset,
)
from bracket_pool.scoring.engine import RoundScore, ScoreBreakdown, max_remaining_points, score

__all__ = [
    "BonusMode",
    "PresetNotFoundError",
    "RoundScore",
    "ScoreAdjustment",
    "ScoreBreakdown",
    "ScoringConfig",
    "add_adjustment",
    "default_config",
    "get_preset",
    "list_presets",
    "max_remaining_points",
    "parse_adjustments",
    "register_preset",
    "remove_adjustment",
    "score",
    "total_adjustment",
]
