"""Filesystem driver: one JSON file per document.

Layout::

    <root>/<collection>/<id>.json

Each file holds ``{"id": ..., "state_tree": ..., "state_json": ...}``.
Blocking file I/O runs in the loop's default executor.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
import tempfile
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from pyodb.config import OdbConfig
from pyodb.documents import make_state_document, matches_query
from pyodb.drivers.base import STATE_JSON_PREFIX, Closeable, Driver, QueryTransformer, prefix_state_json

_logger = logging.getLogger(__name__)

T = TypeVar("T")

_SUFFIX = ".json"


class FsDriver(Driver, QueryTransformer, Closeable):
    """Stores documents as JSON files below a root directory."""

    name = "fs"

    def __init__(self, root: Path, *, remove_on_close: bool = False) -> None:
        self._root = root
        self._remove_on_close = remove_on_close

    @property
    def root(self) -> Path:
        return self._root

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    # ------------------------------------------------------------------
    # Blocking helpers
    # ------------------------------------------------------------------

    def _collection_path(self, collection: str) -> Path:
        if not collection or os.sep in collection or collection in {".", ".."}:
            raise ValueError(f"Invalid collection name: {collection!r}")
        path = self._root / collection
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _doc_path(self, collection: str, doc_id: str) -> Path:
        if not doc_id or os.sep in doc_id:
            raise ValueError(f"Invalid document id: {doc_id!r}")
        return self._collection_path(collection) / f"{doc_id}{_SUFFIX}"

    @staticmethod
    def _read(path: Path) -> dict[str, Any] | None:
        try:
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except FileNotFoundError:
            return None

    @staticmethod
    def _write(path: Path, record: dict[str, Any]) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=_SUFFIX)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(record, fh, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _create_sync(self, collection: str, record: dict[str, Any]) -> None:
        self._write(self._doc_path(collection, record["id"]), record)

    def _query_sync(self, collection: str, query: dict[str, Any]) -> dict[str, Any] | None:
        for path in sorted(self._collection_path(collection).glob(f"*{_SUFFIX}")):
            if path.name.startswith("."):
                continue
            record = self._read(path)
            if record is None:
                continue
            if matches_query(record.get("state_json"), query, prefix=STATE_JSON_PREFIX):
                return record
        return None

    def _update_sync(self, collection: str, doc_id: str, record: dict[str, Any]) -> bool:
        path = self._doc_path(collection, doc_id)
        if not path.exists():
            return False
        self._write(path, record)
        return True

    def _remove_sync(self, collection: str, doc_id: str) -> bool:
        try:
            self._doc_path(collection, doc_id).unlink()
        except FileNotFoundError:
            return False
        return True

    # ------------------------------------------------------------------
    # Driver contract
    # ------------------------------------------------------------------

    async def create(self, collection: str, value: Any) -> dict[str, Any]:
        doc = make_state_document(value)
        doc_id = str(uuid.uuid4())
        await self._run(self._create_sync, collection, doc.to_record(id=doc_id))
        return {"id": doc_id, "state_tree": doc.state_tree}

    async def query(self, collection: str, query: dict[str, Any]) -> dict[str, Any] | None:
        record = await self._run(self._query_sync, collection, query)
        if record is None:
            return None
        return {"id": record.get("id"), "state_tree": record.get("state_tree")}

    async def update(self, collection: str, doc_id: Any, state: Any) -> bool:
        record = make_state_document(state).to_record(id=doc_id)
        return await self._run(self._update_sync, collection, str(doc_id), record)

    async def remove(self, collection: str, doc_id: Any) -> bool:
        return await self._run(self._remove_sync, collection, str(doc_id))

    def transform_query(self, query: dict[str, Any]) -> dict[str, Any]:
        return prefix_state_json(query)

    async def close(self) -> None:
        if not self._remove_on_close:
            return
        _logger.debug("Removing test data directory %s", self._root)
        await self._run(shutil.rmtree, self._root, True)


async def create_fs_driver(config: OdbConfig) -> FsDriver:
    root = config.resolved_fs_root()
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, lambda: root.mkdir(parents=True, exist_ok=True))
    return FsDriver(root, remove_on_close=config.test)
