"""SQLite driver: the local key-value store for client-side processes.

All collections share one table keyed by ``(collection, id)``; both
projections are stored as JSON text. Queries filter the decoded
``state_json`` in Python so equality keeps JSON semantics.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
import uuid
from collections.abc import Callable
from typing import Any, TypeVar

from pyodb.config import OdbConfig
from pyodb.documents import make_state_document, matches_query
from pyodb.drivers.base import STATE_JSON_PREFIX, Closeable, Driver, QueryTransformer, prefix_state_json

_logger = logging.getLogger(__name__)

T = TypeVar("T")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    state_tree TEXT NOT NULL,
    state_json TEXT NOT NULL,
    PRIMARY KEY (collection, id)
)
"""


class SqliteDriver(Driver, QueryTransformer, Closeable):
    """Stores documents in a single SQLite database."""

    name = "sqlite"

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        self._lock = threading.RLock()
        with self._lock:
            self._conn.execute(_SCHEMA)
            self._conn.commit()

    @classmethod
    def connect(cls, path: str) -> SqliteDriver:
        return cls(sqlite3.connect(path, check_same_thread=False))

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    def _insert_sync(self, collection: str, doc_id: str, state_tree: str, state_json: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO documents (collection, id, state_tree, state_json) VALUES (?, ?, ?, ?)",
                (collection, doc_id, state_tree, state_json),
            )
            self._conn.commit()

    def _query_sync(self, collection: str, query: dict[str, Any]) -> dict[str, Any] | None:
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, state_tree, state_json FROM documents WHERE collection = ? ORDER BY rowid",
                (collection,),
            ).fetchall()
        for doc_id, state_tree, state_json in rows:
            if matches_query(json.loads(state_json), query, prefix=STATE_JSON_PREFIX):
                return {"id": doc_id, "state_tree": json.loads(state_tree)}
        return None

    def _update_sync(self, collection: str, doc_id: str, state_tree: str, state_json: str) -> bool:
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE documents SET state_tree = ?, state_json = ? WHERE collection = ? AND id = ?",
                (state_tree, state_json, collection, doc_id),
            )
            self._conn.commit()
            return cursor.rowcount > 0

    def _delete_sync(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )
            self._conn.commit()
            return cursor.rowcount > 0

    def _close_sync(self) -> None:
        with self._lock:
            self._conn.close()

    async def create(self, collection: str, value: Any) -> dict[str, Any]:
        doc = make_state_document(value)
        doc_id = str(uuid.uuid4())
        await self._run(
            self._insert_sync,
            collection,
            doc_id,
            json.dumps(doc.state_tree),
            json.dumps(doc.state_json),
        )
        return {"id": doc_id, "state_tree": doc.state_tree}

    async def query(self, collection: str, query: dict[str, Any]) -> dict[str, Any] | None:
        return await self._run(self._query_sync, collection, query)

    async def update(self, collection: str, doc_id: Any, state: Any) -> bool:
        doc = make_state_document(state)
        return await self._run(
            self._update_sync,
            collection,
            str(doc_id),
            json.dumps(doc.state_tree),
            json.dumps(doc.state_json),
        )

    async def remove(self, collection: str, doc_id: Any) -> bool:
        return await self._run(self._delete_sync, collection, str(doc_id))

    def transform_query(self, query: dict[str, Any]) -> dict[str, Any]:
        return prefix_state_json(query)

    async def close(self) -> None:
        await self._run(self._close_sync)
        _logger.debug("SQLite connection closed")


async def create_sqlite_driver(config: OdbConfig) -> SqliteDriver:
    path = config.resolved_sqlite_path()
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, SqliteDriver.connect, path)
