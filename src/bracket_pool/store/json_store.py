"""File-backed document store: one JSON file per document.

Directory layout for the default :class:`~bracket_pool.store.paths.StorePaths`::

    {root}/
        leagues/
            {league_id}.json                 # league metadata
            {league_id}/
                gameData/current.json        # official bracket
                settings/scoring.json        # scoring settings
                userData/{user_id}.json      # one bracket per user
                customScores/{user_id}.json  # manual adjustments
        gameStats/root/
            leagues/{league_id}.json         # generated league statistics
            userStats/{user_id}.json         # generated user statistics

Each document write goes to a temporary file that is then moved over the
target with :func:`os.replace`, so a reader never sees a half-written
document.  A multi-document ``commit`` is not transactional across files;
the chunk bookkeeping in :class:`~bracket_pool.store.base.BatchWriter`
reports how far a failed job got.
"""

from __future__ import annotations

import json
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from bracket_pool.store.base import DocumentStore, WriteOp, apply_op

_SUFFIX = ".json"


class JsonDocumentStore(DocumentStore):
    """Store documents as JSON files under *root*."""

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    def _file(self, path: str) -> Path:
        parts = [p for p in path.strip("/").split("/") if p]
        if not parts or any(p in {".", ".."} for p in parts):
            msg = f"Invalid document path {path!r}"
            raise ValueError(msg)
        return self._root.joinpath(*parts[:-1], parts[-1] + _SUFFIX)

    # -- reads ---------------------------------------------------------------

    def get(self, path: str) -> dict[str, Any] | None:
        file = self._file(path)
        if not file.exists():
            return None
        with file.open(encoding="utf-8") as fh:
            document = json.load(fh)
        if not isinstance(document, dict):
            msg = f"Document {path!r} is not a JSON object"
            raise ValueError(msg)
        return document

    def list_paths(self, collection: str) -> list[str]:
        directory = self._root.joinpath(*[p for p in collection.strip("/").split("/") if p])
        if not directory.is_dir():
            return []
        prefix = collection.strip("/")
        return sorted(f"{prefix}/{file.stem}" for file in directory.glob(f"*{_SUFFIX}") if file.is_file())

    # -- writes --------------------------------------------------------------

    def _write(self, op: WriteOp) -> None:
        file = self._file(op.path)
        file.parent.mkdir(parents=True, exist_ok=True)
        body = apply_op(self.get(op.path) if op.merge else None, op)
        tmp = file.with_name(file.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(body, fh, indent=2, sort_keys=True)
        os.replace(tmp, file)

    def commit(self, ops: Sequence[WriteOp]) -> None:
        for op in ops:
            self._write(op)
