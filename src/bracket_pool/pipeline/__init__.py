"""Store-backed league processing: preview, finalize and per-user locking."""

from __future__ import annotations

from bracket_pool.pipeline.finalize import (
    USER_LOCKS,
    FinalizeResult,
    LeagueInputs,
    LeaguePipeline,
    UserLockRegistry,
    league_summary,
)

__all__ = [
    "USER_LOCKS",
    "FinalizeResult",
    "LeagueInputs",
    "LeaguePipeline",
    "UserLockRegistry",
    "league_summary",
]
