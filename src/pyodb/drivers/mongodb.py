"""MongoDB driver built on pymongo's asyncio client.

Documents are stored as ``{"_id": ObjectId, "state_tree": ..., "state_json": ...}``
and queried with dotted ``state_json.<field>`` filters.
"""

from __future__ import annotations

import logging
from typing import Any

from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from pyodb._redact import redact_url
from pyodb.config import OdbConfig
from pyodb.documents import make_state_document
from pyodb.drivers.base import Closeable, Driver, QueryTransformer, prefix_state_json
from pyodb.exceptions import DriverUnavailableError, OdbConfigError

_logger = logging.getLogger(__name__)

#: Database used in test mode, whatever database is configured.
TEST_DATABASE = "pyodb_test"


class MongoDriver(Driver, QueryTransformer, Closeable):
    """Stores each collection in the MongoDB collection of the same name."""

    name = "mongodb"

    def __init__(
        self,
        database: Any,
        *,
        client: AsyncMongoClient[Any] | None = None,
        drop_on_close: bool = False,
    ) -> None:
        self._db = database
        self._client = client
        self._drop_on_close = drop_on_close

    async def create(self, collection: str, value: Any) -> dict[str, Any]:
        doc = make_state_document(value)
        result = await self._db[collection].insert_one(doc.to_record())
        return {"id": result.inserted_id, "state_tree": doc.state_tree}

    async def query(self, collection: str, query: dict[str, Any]) -> dict[str, Any] | None:
        found = await self._db[collection].find_one(query)
        if not found:
            return None
        return {"id": found.get("_id"), "state_tree": found.get("state_tree")}

    async def update(self, collection: str, doc_id: Any, state: Any) -> Any:
        doc = make_state_document(state)
        return await self._db[collection].update_one({"_id": doc_id}, {"$set": doc.to_record()})

    async def remove(self, collection: str, doc_id: Any) -> bool:
        result = await self._db[collection].delete_one({"_id": doc_id})
        return result.deleted_count > 0

    def transform_query(self, query: dict[str, Any]) -> dict[str, Any]:
        return prefix_state_json(query)

    async def close(self) -> None:
        client = self._client
        self._client = None
        if client is None:
            return
        try:
            if self._drop_on_close:
                await client.drop_database(self._db.name)
        finally:
            await client.close()
        _logger.info("Disconnected from MongoDB")


async def create_mongodb_driver(config: OdbConfig) -> MongoDriver:
    if not config.mongo_url:
        raise OdbConfigError("MongoDB URL is not set (ODB_MONGO_URL or DB)")
    if config.test:
        # The configured database is never used, so close() can drop this one.
        if config.mongo_database and config.mongo_database != TEST_DATABASE:
            _logger.info("Test mode: using database %s instead of %s", TEST_DATABASE, config.mongo_database)
        database_name = TEST_DATABASE
    else:
        database_name = config.mongo_database
        if not database_name:
            raise OdbConfigError("MongoDB database name is not set (ODB_MONGO_DATABASE or DB_TABLE)")

    client: AsyncMongoClient[Any] = AsyncMongoClient(
        config.mongo_url,
        serverSelectionTimeoutMS=config.mongo_timeout_ms,
    )
    try:
        await client.admin.command("ping")
    except PyMongoError as exc:
        await client.close()
        raise DriverUnavailableError(
            f"Cannot connect to MongoDB at {redact_url(config.mongo_url)}: {exc}",
            driver=MongoDriver.name,
        ) from exc

    _logger.info("Connected to MongoDB database=%s", database_name)
    return MongoDriver(client[database_name], client=client, drop_on_close=config.test)
