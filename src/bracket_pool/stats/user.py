"""Cross-league user statistics with idempotent merge semantics.

One :class:`UserStatsDocument` per user holds a :class:`LeagueSummary` for
every league the user has a recorded result in.  :func:`merge_league_summary`
upserts one summary and then rebuilds every derived figure from the full
``leagues`` list, so applying the same summary any number of times gives
the same document.

Wins and second places from the league being merged count only when the
caller reports it finished (``current_completed``), so a provisional
rank 1 in a running league is never a win.  Every other stored league
counts as it stands.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)


class _Doc(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class LeagueSummary(_Doc):
    """One user's result in one league."""

    league_id: str = Field(alias="leagueId")
    season_id: str = Field(alias="seasonId")
    game_type_id: str = Field(alias="gameTypeId")
    rank: int = Field(..., ge=1)
    score: float = 0.0
    correct_picks: int = Field(default=0, alias="correctPicks")
    total_possible: int = Field(default=0, alias="totalPossible")
    percentage: float = 0.0
    completed: bool | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class UserTotals(_Doc):
    total_leagues: int = Field(default=0, alias="totalLeagues")
    total_wins: int = Field(default=0, alias="totalWins")
    total_second_place: int = Field(default=0, alias="totalSecondPlace")


class SeasonStats(_Doc):
    """Per-season counters; ``league_ids`` guards against counting a league twice."""

    leagues: int = 0
    wins: int = 0
    league_ids: dict[str, bool] = Field(default_factory=dict, alias="leagueIds")

    @model_validator(mode="before")
    @classmethod
    def _collect_legacy_guards(cls, data: Any) -> Any:
        # Older documents store the guard flags as top-level keys of the bucket.
        if not isinstance(data, Mapping):
            return data
        known = {"leagues", "wins", "leagueIds", "league_ids"}
        legacy = {k: v for k, v in data.items() if k not in known and v is True}
        if not legacy:
            return data
        cleaned = {k: v for k, v in data.items() if k in known}
        cleaned["leagueIds"] = {**legacy, **dict(cleaned.get("leagueIds", {}))}
        return cleaned


class GameTypeStats(_Doc):
    leagues: int = 0
    wins: int = 0
    best_score: float = Field(default=0.0, alias="bestScore")
    total_score: float = Field(default=0.0, alias="totalScore")
    average_score: float = Field(default=0.0, alias="averageScore")


class UserStatsDocument(_Doc):
    """Lifetime statistics for one user across every league."""

    user_id: str = Field(alias="userId")
    user_name: str = Field(default="", alias="userName")
    leagues: list[LeagueSummary] = Field(default_factory=list)
    stats: UserTotals = Field(default_factory=UserTotals)
    by_season_year: dict[str, SeasonStats] = Field(default_factory=dict, alias="bySeasonYear")
    by_game_type: dict[str, GameTypeStats] = Field(default_factory=dict, alias="byGameType")
    last_updated: datetime | None = Field(default=None, alias="lastUpdated")

    def league(self, league_id: str) -> LeagueSummary | None:
        return next((s for s in self.leagues if s.league_id == league_id), None)

    def to_document(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, mode="json")


def _counts_as_final(summary: LeagueSummary, current_league_id: str, current_completed: bool) -> bool:
    """Other leagues always count; the league being merged only once it has finished."""
    return summary.league_id != current_league_id or current_completed


def _game_type_stats(summaries: list[LeagueSummary], is_final: dict[str, bool]) -> GameTypeStats:
    scores = [s.score for s in summaries]
    return GameTypeStats(
        leagues=len(summaries),
        wins=sum(1 for s in summaries if s.rank == 1 and is_final[s.league_id]),
        best_score=max(scores, default=0.0),
        total_score=sum(scores),
        average_score=sum(scores) / len(scores) if scores else 0.0,
    )


def _season_stats(leagues: Iterable[LeagueSummary], is_final: dict[str, bool]) -> dict[str, SeasonStats]:
    counters: dict[str, dict[str, Any]] = {}
    for summary in leagues:
        bucket = counters.setdefault(summary.season_id, {"leagues": 0, "wins": 0, "leagueIds": {}})
        if bucket["leagueIds"].get(summary.league_id):
            continue
        bucket["leagueIds"][summary.league_id] = True
        bucket["leagues"] += 1
        if summary.rank == 1 and is_final[summary.league_id]:
            bucket["wins"] += 1
    return {season: SeasonStats.model_validate(bucket) for season, bucket in counters.items()}


def merge_league_summary(
    prior: UserStatsDocument | None,
    summary: LeagueSummary,
    *,
    current_completed: bool,
    user_id: str | None = None,
    user_name: str | None = None,
) -> UserStatsDocument:
    """Upsert *summary* into *prior* and recompute every derived field.

    Args:
        prior: The user's existing document, or ``None`` for a first result.
        summary: The user's result in the league being processed.
        current_completed: Whether that league has finished.  Recorded on
            the stored summary.
        user_id: Required when *prior* is ``None``.
        user_name: Display name; keeps the prior name when ``None``.

    Returns:
        A new document.  ``last_updated`` is the newest summary timestamp, so
        the result depends only on the inputs.

    Raises:
        ValueError: If *prior* is ``None`` and no *user_id* is given.
    """
    if prior is None:
        if user_id is None:
            msg = "user_id is required when there is no prior document"
            raise ValueError(msg)
        resolved_id, resolved_name = user_id, user_name or ""
    else:
        resolved_id = user_id if user_id is not None else prior.user_id
        resolved_name = user_name if user_name is not None else prior.user_name

    stored = summary.model_copy(update={"completed": current_completed})
    leagues = list(prior.leagues) if prior is not None else []
    position = next((i for i, s in enumerate(leagues) if s.league_id == stored.league_id), None)
    if position is None:
        leagues.append(stored)
    else:
        leagues[position] = stored

    is_final = {s.league_id: _counts_as_final(s, stored.league_id, current_completed) for s in leagues}
    by_game_type: dict[str, list[LeagueSummary]] = {}
    for s in leagues:
        by_game_type.setdefault(s.game_type_id, []).append(s)

    logger.debug("Merged league %s for user %s (%d leagues)", stored.league_id, resolved_id, len(leagues))
    return UserStatsDocument(
        user_id=resolved_id,
        user_name=resolved_name,
        leagues=leagues,
        stats=UserTotals(
            total_leagues=len(leagues),
            total_wins=sum(1 for s in leagues if s.rank == 1 and is_final[s.league_id]),
            total_second_place=sum(1 for s in leagues if s.rank == 2 and is_final[s.league_id]),
        ),
        by_season_year=_season_stats(leagues, is_final),
        by_game_type={g: _game_type_stats(items, is_final) for g, items in sorted(by_game_type.items())},
        last_updated=max(s.timestamp for s in leagues),
    )
