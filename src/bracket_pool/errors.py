"""Shared exception hierarchy for the bracket pool engine.

Callers can catch :class:`BracketPoolError` to handle every failure the
engine raises deliberately, or one of the narrower subclasses below when the
recovery path differs (a missing document versus a failed batch write).
"""

from __future__ import annotations


class BracketPoolError(Exception):
    """Base exception for all bracket pool errors."""


class NotFoundError(BracketPoolError):
    """A required document (official bracket, user bracket) is absent."""

    def __init__(self, path: str, what: str = "document") -> None:
        self.path = path
        self.what = what
        super().__init__(f"{what} not found at {path!r}")


class MalformedBracketError(BracketPoolError):
    """A bracket document cannot be interpreted even after repair."""


class UserComputationError(BracketPoolError):
    """Scoring or merging failed for a single user.

    The failure is isolated: the user is logged and excluded while the rest
    of the league is still processed.
    """

    def __init__(self, user_id: str, cause: BaseException) -> None:
        self.user_id = user_id
        self.cause = cause
        super().__init__(f"computation failed for user {user_id!r}: {cause}")


class PersistenceError(BracketPoolError):
    """A chunked batch write failed part-way through.

    Attributes:
        chunk_index: Zero-based index of the chunk whose commit failed.
        committed: Number of operations already durably committed by
            earlier chunks.
        total: Total number of operations in the write.
    """

    def __init__(self, chunk_index: int, committed: int, total: int, cause: BaseException) -> None:
        self.chunk_index = chunk_index
        self.committed = committed
        self.total = total
        self.cause = cause
        super().__init__(
            f"batch chunk {chunk_index} failed after {committed}/{total} operations committed: {cause}"
        )
