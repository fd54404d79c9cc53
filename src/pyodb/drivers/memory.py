"""In-process driver keeping documents in dicts."""

from __future__ import annotations

import copy
import logging
import uuid
from typing import Any

from pyodb.config import OdbConfig
from pyodb.documents import make_state_document, matches_query
from pyodb.drivers.base import STATE_JSON_PREFIX, Closeable, Driver, QueryTransformer, prefix_state_json

_logger = logging.getLogger(__name__)


class MemoryDriver(Driver, QueryTransformer, Closeable):
    """Documents live in process memory and vanish on close."""

    name = "memory"

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    def _collection(self, collection: str) -> dict[str, dict[str, Any]]:
        docs = self._collections.get(collection)
        if docs is None:
            docs = {}
            self._collections[collection] = docs
        return docs

    def snapshot(self, collection: str) -> dict[str, dict[str, Any]]:
        """Deep copy of the stored records of *collection*, keyed by id."""
        return copy.deepcopy(self._collections.get(collection, {}))

    async def create(self, collection: str, value: Any) -> dict[str, Any]:
        doc = make_state_document(value)
        doc_id = uuid.uuid4().hex
        self._collection(collection)[doc_id] = doc.to_record(id=doc_id)
        return {"id": doc_id, "state_tree": doc.state_tree}

    async def query(self, collection: str, query: dict[str, Any]) -> dict[str, Any] | None:
        for doc_id, record in self._collection(collection).items():
            if matches_query(record["state_json"], query, prefix=STATE_JSON_PREFIX):
                return {"id": doc_id, "state_tree": copy.deepcopy(record["state_tree"])}
        return None

    async def update(self, collection: str, doc_id: Any, state: Any) -> bool:
        docs = self._collection(collection)
        if doc_id not in docs:
            return False
        docs[doc_id] = make_state_document(state).to_record(id=doc_id)
        return True

    async def remove(self, collection: str, doc_id: Any) -> bool:
        return self._collection(collection).pop(doc_id, None) is not None

    def transform_query(self, query: dict[str, Any]) -> dict[str, Any]:
        return prefix_state_json(query)

    async def close(self) -> None:
        _logger.debug("Dropping %d in-memory collections", len(self._collections))
        self._collections.clear()


async def create_memory_driver(_config: OdbConfig) -> MemoryDriver:
    return MemoryDriver()
