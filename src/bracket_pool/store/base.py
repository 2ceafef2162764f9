"""Document store abstraction and chunked batch writes.

The engine talks to persistence through :class:`DocumentStore`: documents
are JSON-compatible dicts addressed by slash-separated paths
(``"leagues/abc/userData/u1"``).  A store provides single reads and writes,
listing of the documents in a collection, and an atomic multi-document
``commit``.  Batch-size ceilings are respected by :class:`BatchWriter`,
which splits a list of :class:`WriteOp` into chunks; since one user's update
is always a single ``WriteOp``, a chunk boundary never splits it.

:class:`InMemoryDocumentStore` is the reference implementation used by the
tests and by callers that already hold the documents in memory.
"""

from __future__ import annotations

import abc
import copy
import logging
import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from bracket_pool.errors import NotFoundError, PersistenceError
from bracket_pool.utils.logger import VERBOSE

logger = logging.getLogger(__name__)

#: Default number of operations per committed batch.
DEFAULT_BATCH_SIZE: int = 400


@dataclass(frozen=True)
class WriteOp:
    """A single document write.

    Attributes:
        path: Document path.
        data: Document body.
        merge: Shallow-merge into an existing document instead of replacing it.
    """

    path: str
    data: Mapping[str, Any]
    merge: bool = False


# ---------------------------------------------------------------------------
# Abstract store
# ---------------------------------------------------------------------------


class DocumentStore(abc.ABC):
    """Abstract base class for document persistence."""

    @abc.abstractmethod
    def get(self, path: str) -> dict[str, Any] | None:
        """Return the document at *path*, or ``None`` if it does not exist."""

    @abc.abstractmethod
    def list_paths(self, collection: str) -> list[str]:
        """Return the paths of the documents directly inside *collection* (sorted)."""

    @abc.abstractmethod
    def commit(self, ops: Sequence[WriteOp]) -> None:
        """Apply *ops* as one batch."""

    def set(self, path: str, data: Mapping[str, Any], *, merge: bool = False) -> None:
        """Write one document."""
        self.commit([WriteOp(path, data, merge)])

    def require(self, path: str, what: str = "document") -> dict[str, Any]:
        """Return the document at *path*.

        Raises:
            NotFoundError: If it does not exist.
        """
        document = self.get(path)
        if document is None:
            raise NotFoundError(path, what)
        return document


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


def apply_op(existing: Mapping[str, Any] | None, op: WriteOp) -> dict[str, Any]:
    """Document body after applying *op* on top of *existing*."""
    body = copy.deepcopy(dict(op.data))
    if op.merge and existing is not None:
        return {**copy.deepcopy(dict(existing)), **body}
    return body


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed, thread-safe store.  ``commit`` is all-or-nothing."""

    def __init__(self, documents: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._documents: dict[str, dict[str, Any]] = {
            path: copy.deepcopy(dict(doc)) for path, doc in (documents or {}).items()
        }
        self.commits: int = 0
        self._lock = threading.Lock()

    def get(self, path: str) -> dict[str, Any] | None:
        document = self._documents.get(path)
        return copy.deepcopy(document) if document is not None else None

    def list_paths(self, collection: str) -> list[str]:
        prefix = collection.rstrip("/") + "/"
        return sorted(p for p in self._documents if p.startswith(prefix) and "/" not in p[len(prefix) :])

    def commit(self, ops: Sequence[WriteOp]) -> None:
        with self._lock:
            staged = dict(self._documents)
            for op in ops:
                staged[op.path] = apply_op(staged.get(op.path), op)
            self._documents = staged
            self.commits += 1

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Deep copy of every stored document, keyed by path."""
        return copy.deepcopy(self._documents)


# ---------------------------------------------------------------------------
# Chunked writes
# ---------------------------------------------------------------------------


@dataclass
class BatchWriter:
    """Commit operations in chunks of at most ``chunk_size``.

    Counters carry over between :meth:`write` calls, so a
    :class:`~bracket_pool.errors.PersistenceError` always reports the chunk
    index and committed count for the whole job.

    Attributes:
        store: Target store.
        total: Expected number of operations for the whole job (used in
            error messages; 0 means "unknown").
        chunk_size: Maximum operations per ``commit``.
    """

    store: DocumentStore
    total: int = 0
    chunk_size: int = DEFAULT_BATCH_SIZE
    committed: int = field(default=0, init=False)
    chunks: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            msg = f"chunk_size must be >= 1, got {self.chunk_size}"
            raise ValueError(msg)

    def write(self, ops: Sequence[WriteOp]) -> int:
        """Commit *ops* chunk by chunk and return how many were committed.

        Raises:
            PersistenceError: On the first failing chunk.  Earlier chunks
                stay committed.
        """
        written = 0
        for start in range(0, len(ops), self.chunk_size):
            chunk = ops[start : start + self.chunk_size]
            try:
                self.store.commit(chunk)
            except Exception as exc:
                total = max(self.total, self.committed + len(ops) - start)
                logger.error(
                    "Batch chunk %d failed after %d/%d operations committed",
                    self.chunks,
                    self.committed,
                    total,
                )
                raise PersistenceError(self.chunks, self.committed, total, exc) from exc
            self.committed += len(chunk)
            self.chunks += 1
            written += len(chunk)
            logger.log(VERBOSE, "Committed chunk %d (%d operations)", self.chunks - 1, len(chunk))
        return written


def commit_in_chunks(
    store: DocumentStore, ops: Sequence[WriteOp], chunk_size: int = DEFAULT_BATCH_SIZE
) -> int:
    """Commit *ops* in chunks; see :class:`BatchWriter`."""
    return BatchWriter(store, total=len(ops), chunk_size=chunk_size).write(ops)
