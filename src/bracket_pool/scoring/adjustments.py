"""Manual score adjustments made by league administrators.

Adjustments are stored per user as a list of records and added to the
computed score before ranking.  The helpers here are pure list operations;
persisting the list is the caller's job.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ScoreAdjustment(BaseModel):
    """A signed point correction with an audit trail."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    value: float
    reason: str = Field(..., min_length=1)
    admin_id: str = Field(..., min_length=1, alias="adminId")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("value")
    @classmethod
    def _non_zero(cls, value: float) -> float:
        if value == 0:
            msg = "an adjustment must change the score"
            raise ValueError(msg)
        return value


def total_adjustment(adjustments: Iterable[ScoreAdjustment] | None) -> float:
    """Sum of all adjustment values (0 for ``None`` or an empty list)."""
    if adjustments is None:
        return 0.0
    return float(sum(a.value for a in adjustments))


def add_adjustment(
    adjustments: Sequence[ScoreAdjustment], adjustment: ScoreAdjustment
) -> list[ScoreAdjustment]:
    """Return a new list with *adjustment* appended."""
    return [*adjustments, adjustment]


def remove_adjustment(adjustments: Sequence[ScoreAdjustment], adjustment_id: str) -> list[ScoreAdjustment]:
    """Return a new list without the adjustment whose id is *adjustment_id*.

    Raises:
        KeyError: If no adjustment has that id.
    """
    kept = [a for a in adjustments if a.id != adjustment_id]
    if len(kept) == len(adjustments):
        msg = f"No adjustment with id {adjustment_id!r}"
        raise KeyError(msg)
    return kept


def parse_adjustments(document: Mapping[str, Any] | None) -> list[ScoreAdjustment]:
    """Read the ``{"adjustments": [...]}`` document stored for one user."""
    if not document:
        return []
    return [ScoreAdjustment.model_validate(entry) for entry in document.get("adjustments", [])]
