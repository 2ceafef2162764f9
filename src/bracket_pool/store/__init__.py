"""Document persistence: store interface, implementations and path layout."""

from __future__ import annotations

from bracket_pool.store.base import (
    DEFAULT_BATCH_SIZE,
    BatchWriter,
    DocumentStore,
    InMemoryDocumentStore,
    WriteOp,
    commit_in_chunks,
)
from bracket_pool.store.json_store import JsonDocumentStore
from bracket_pool.store.paths import StorePaths, document_id

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "BatchWriter",
    "DocumentStore",
    "InMemoryDocumentStore",
    "JsonDocumentStore",
    "StorePaths",
    "WriteOp",
    "commit_in_chunks",
    "document_id",
]
