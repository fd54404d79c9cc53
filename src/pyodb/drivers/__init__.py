"""Storage drivers and the contract they implement."""

from pyodb.drivers.base import (
    STATE_JSON_PREFIX,
    Closeable,
    Driver,
    DriverEntry,
    DriverFactory,
    QueryTransformer,
    prefix_state_json,
)
from pyodb.drivers.fs import FsDriver, create_fs_driver
from pyodb.drivers.memory import MemoryDriver, create_memory_driver
from pyodb.drivers.mongodb import MongoDriver, create_mongodb_driver
from pyodb.drivers.sqlite import SqliteDriver, create_sqlite_driver

__all__ = [
    "STATE_JSON_PREFIX",
    "Closeable",
    "Driver",
    "DriverEntry",
    "DriverFactory",
    "FsDriver",
    "MemoryDriver",
    "MongoDriver",
    "QueryTransformer",
    "SqliteDriver",
    "create_fs_driver",
    "create_memory_driver",
    "create_mongodb_driver",
    "create_sqlite_driver",
    "prefix_state_json",
]
