"""League pipeline: load a league from a document store, preview, finalize.

:class:`LeaguePipeline` wires the pure layers together:

1. load the official bracket, user brackets, scoring settings and manual
   adjustments (repairing malformed brackets on the way);
2. :func:`~bracket_pool.stats.league.aggregate_league` builds the league
   statistics document;
3. ``preview`` returns it without writing; ``finalize`` overwrites the league
   statistics document and merge-updates every ranked user's cross-league
   statistics.

User statistics updates are serialized per user through a
:class:`UserLockRegistry` shared by every pipeline in the process: each lock
is held from reading the prior document until its chunk is committed, so two
leagues finalizing at the same time cannot lose each other's update for a
shared user.  Different users proceed in parallel.

Example:
    >>> from pathlib import Path
    >>> from bracket_pool.store import JsonDocumentStore
    >>> pipeline = LeaguePipeline(JsonDocumentStore(Path("data")), "league-1")  # doctest: +SKIP
    >>> result = pipeline.finalize()  # doctest: +SKIP
    >>> result.stats.rankings[0].user_id  # doctest: +SKIP
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from bracket_pool.bracket.layout import BracketLayout, get_layout, march_madness_layout, pairings_from_config
from bracket_pool.bracket.model import Bracket, load_bracket
from bracket_pool.errors import MalformedBracketError, NotFoundError
from bracket_pool.scoring.adjustments import ScoreAdjustment, parse_adjustments
from bracket_pool.scoring.config import ScoringConfig
from bracket_pool.scoring.engine import ScoreBreakdown, score
from bracket_pool.stats.league import BracketEntry, LeagueStatsDocument, PlayerRanking, aggregate_league
from bracket_pool.stats.user import LeagueSummary, UserStatsDocument, merge_league_summary
from bracket_pool.store.base import DEFAULT_BATCH_SIZE, BatchWriter, DocumentStore, WriteOp
from bracket_pool.store.paths import StorePaths, document_id
from bracket_pool.utils.logger import VERBOSE

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Per-user locking
# ---------------------------------------------------------------------------


class UserLockRegistry:
    """One :class:`threading.Lock` per user id, created on first use."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, user_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(user_id, threading.Lock())

    @contextmanager
    def hold(self, user_ids: Iterable[str]) -> Iterator[None]:
        """Hold the locks of *user_ids* for the duration of the block.

        Locks are taken in sorted id order, so two callers holding
        overlapping sets cannot deadlock.
        """
        locks = [self.lock_for(uid) for uid in sorted(set(user_ids))]
        acquired: list[threading.Lock] = []
        try:
            for lock in locks:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


#: Process-wide registry used when a pipeline is not given its own.
USER_LOCKS = UserLockRegistry()

# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FinalizeResult:
    """Outcome of :meth:`LeaguePipeline.finalize`.

    Attributes:
        stats: The league statistics document that was written.
        updated_users: Users whose cross-league statistics were updated.
        failed_users: Users excluded from scoring or from the merge.
        operations: Number of document writes committed.
    """

    stats: LeagueStatsDocument
    updated_users: list[str] = field(default_factory=list)
    failed_users: list[str] = field(default_factory=list)
    operations: int = 0


@dataclass(frozen=True)
class LeagueInputs:
    """Everything read from the store for one league."""

    layout: BracketLayout
    official: Bracket
    config: ScoringConfig
    entries: list[BracketEntry]
    adjustments: dict[str, list[ScoreAdjustment]]
    game_type_id: str
    season_id: str | None
    unreadable_users: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class LeaguePipeline:
    """Preview and finalize one league stored in a :class:`DocumentStore`.

    Args:
        store: Document store holding the league.
        league_id: League to process.
        layout: Bracket layout.  ``None`` resolves it from the league
            document's ``gameTypeId`` (and ``finalFourConfig`` for NCAA
            leagues).
        paths: Document path templates.
        locks: Per-user lock registry; defaults to the process-wide one.
        n_jobs: ``joblib`` workers for per-user scoring.
        batch_size: Maximum operations per committed chunk.
    """

    def __init__(
        self,
        store: DocumentStore,
        league_id: str,
        *,
        layout: BracketLayout | None = None,
        paths: StorePaths | None = None,
        locks: UserLockRegistry | None = None,
        n_jobs: int = 1,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.store = store
        self.league_id = league_id
        self.paths = paths or StorePaths()
        self.locks = locks or USER_LOCKS
        self.n_jobs = n_jobs
        self.batch_size = batch_size
        self._layout = layout

    # -- loading -------------------------------------------------------------

    def league_document(self) -> dict[str, Any]:
        """League metadata document (empty when absent)."""
        return self.store.get(self.paths.league_doc(self.league_id)) or {}

    def load_layout(self) -> BracketLayout:
        """Resolve the league's layout.

        Raises:
            NotFoundError: If no layout was given and the league document
                names no game type.
            LayoutNotFoundError: If the game type is not registered.
        """
        if self._layout is not None:
            return self._layout
        meta = self.league_document()
        game_type = meta.get("gameTypeId")
        if not game_type:
            raise NotFoundError(self.paths.league_doc(self.league_id), "league game type")
        if game_type == "marchMadness" and meta.get("finalFourConfig"):
            self._layout = march_madness_layout(pairings_from_config(meta["finalFourConfig"]))
        else:
            self._layout = get_layout(str(game_type))
        return self._layout

    def load_official(self) -> Bracket:
        """Read and repair the official bracket.

        Raises:
            NotFoundError: If the league has no official bracket yet.
        """
        path = self.paths.official(self.league_id)
        document = self.store.require(path, "official bracket")
        return load_bracket(document, self.load_layout(), label=f"official bracket of {self.league_id}")

    def load_config(self) -> ScoringConfig:
        settings = self.store.get(self.paths.settings(self.league_id))
        return ScoringConfig.from_settings(settings, self.load_layout())

    def _entry(self, path: str, document: dict[str, Any]) -> BracketEntry:
        user_id = document_id(path)
        bracket = load_bracket(document, self.load_layout(), label=f"bracket of user {user_id}")
        return BracketEntry(user_id=user_id, bracket=bracket, user_name=str(document.get("userName") or ""))

    def load_entries(self) -> tuple[list[BracketEntry], list[str]]:
        """Read every user bracket in the league, in path order.

        Returns:
            ``(entries, unreadable)``.  A bracket that cannot be interpreted
            even after repair is logged and its user id put in *unreadable*.
        """
        entries: list[BracketEntry] = []
        unreadable: list[str] = []
        for path in self.store.list_paths(self.paths.user_bracket_collection(self.league_id)):
            document = self.store.get(path)
            if document is None:
                continue
            try:
                entries.append(self._entry(path, document))
            except MalformedBracketError as exc:
                logger.warning("Excluding user %s: %s", document_id(path), exc)
                unreadable.append(document_id(path))
        return entries, unreadable

    def load_adjustments(self) -> tuple[dict[str, list[ScoreAdjustment]], list[str]]:
        """Manual adjustments keyed by user id.

        Returns:
            ``(adjustments, unreadable)``.  A user whose adjustment document
            does not validate is logged and put in *unreadable*; that user
            is left out of the league rather than ranked without the
            correction.
        """
        adjustments: dict[str, list[ScoreAdjustment]] = {}
        unreadable: list[str] = []
        for path in self.store.list_paths(self.paths.adjustment_collection(self.league_id)):
            user_id = document_id(path)
            try:
                parsed = parse_adjustments(self.store.get(path))
            except (ValidationError, TypeError) as exc:
                logger.warning("Excluding user %s: invalid score adjustments: %s", user_id, exc)
                unreadable.append(user_id)
                continue
            if parsed:
                adjustments[user_id] = parsed
        return adjustments, unreadable

    def load(self) -> LeagueInputs:
        layout = self.load_layout()
        meta = self.league_document()
        official = self.load_official()
        entries, unreadable = self.load_entries()
        adjustments, bad_adjustments = self.load_adjustments()
        excluded = {e.user_id for e in entries}.intersection(bad_adjustments)
        return LeagueInputs(
            layout=layout,
            official=official,
            config=self.load_config(),
            entries=[e for e in entries if e.user_id not in excluded],
            adjustments=adjustments,
            game_type_id=str(meta.get("gameTypeId") or layout.name),
            season_id=meta.get("seasonId"),
            unreadable_users=[*unreadable, *sorted(excluded)],
        )

    # -- computation ---------------------------------------------------------

    def _aggregate(self, inputs: LeagueInputs, now: datetime | None) -> LeagueStatsDocument:
        stats = aggregate_league(
            inputs.entries,
            inputs.official,
            inputs.config,
            inputs.layout,
            league_id=self.league_id,
            game_type_id=inputs.game_type_id,
            season_id=inputs.season_id,
            adjustments=inputs.adjustments,
            n_jobs=self.n_jobs,
            now=now,
        )
        if inputs.unreadable_users:
            stats = stats.model_copy(update={"failed_users": [*inputs.unreadable_users, *stats.failed_users]})
        return stats

    def preview(self, now: datetime | None = None) -> LeagueStatsDocument:
        """Compute the league statistics document without writing anything."""
        return self._aggregate(self.load(), now)

    def user_score(self, user_id: str) -> ScoreBreakdown:
        """Score one user's bracket against the current official bracket.

        Raises:
            NotFoundError: If the user has no bracket in this league.
        """
        path = self.paths.user_bracket(self.league_id, user_id)
        document = self.store.require(path, "user bracket")
        entry = self._entry(path, document)
        return score(entry.bracket, self.load_official(), self.load_config(), self.load_layout())

    def finalize(self, now: datetime | None = None) -> FinalizeResult:
        """Write the league statistics and merge every ranked user's statistics.

        The league document is committed first, then user updates in chunks
        of at most ``batch_size``.  A user whose prior document cannot be
        read is logged and skipped.

        Raises:
            NotFoundError: If the official bracket is missing.
            PersistenceError: If a chunk fails to commit.  Earlier chunks
                (including the league document) stay committed.
        """
        stats = self.preview(now)
        writer = BatchWriter(self.store, total=1 + len(stats.rankings), chunk_size=self.batch_size)
        writer.write([WriteOp(self.paths.stats_for_league(self.league_id), stats.to_document())])

        updated: list[str] = []
        failed = list(stats.failed_users)
        for start in range(0, len(stats.rankings), self.batch_size):
            chunk = stats.rankings[start : start + self.batch_size]
            with self.locks.hold(r.user_id for r in chunk):
                ops: list[WriteOp] = []
                for ranking in chunk:
                    op = self._user_update(stats, ranking)
                    if op is None:
                        failed.append(ranking.user_id)
                        continue
                    ops.append(op)
                writer.write(ops)
            updated.extend(document_id(op.path) for op in ops)

        logger.info(
            "Finalized league %s: %d users updated, %d failed, %d writes",
            self.league_id,
            len(updated),
            len(failed),
            writer.committed,
        )
        return FinalizeResult(
            stats=stats, updated_users=updated, failed_users=failed, operations=writer.committed
        )

    def _user_update(self, stats: LeagueStatsDocument, ranking: PlayerRanking) -> WriteOp | None:
        path = self.paths.stats_for_user(ranking.user_id)
        try:
            raw = self.store.get(path)
            prior = UserStatsDocument.model_validate(raw) if raw is not None else None
        except (ValidationError, ValueError) as exc:
            logger.warning("Excluding user %s from stats merge: %s", ranking.user_id, exc)
            return None
        merged = merge_league_summary(
            prior,
            league_summary(stats, ranking),
            current_completed=stats.completed,
            user_id=ranking.user_id,
            user_name=ranking.user_name or None,
        )
        logger.log(VERBOSE, "Merged league %s into stats of user %s", stats.league_id, ranking.user_id)
        return WriteOp(path, merged.to_document())


def league_summary(stats: LeagueStatsDocument, ranking: PlayerRanking) -> LeagueSummary:
    """The :class:`LeagueSummary` recorded for *ranking* in *stats*."""
    return LeagueSummary(
        league_id=stats.league_id,
        season_id=stats.season_id,
        game_type_id=stats.game_type_id,
        rank=ranking.rank,
        score=ranking.score,
        correct_picks=ranking.correct_picks,
        total_possible=ranking.graded_picks,
        percentage=100.0 * ranking.accuracy,
        completed=stats.completed,
        timestamp=stats.generated_at,
    )
