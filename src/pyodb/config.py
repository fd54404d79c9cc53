"""Runtime configuration for pyodb."""

from __future__ import annotations

import dataclasses
import os
from enum import StrEnum
from pathlib import Path
from typing import Any

from pyodb.exceptions import OdbConfigError


class Environment(StrEnum):
    """Where the process runs; drivers declare the environments they support."""

    SERVER = "server"
    CLIENT = "client"


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class OdbConfig:
    """Context configuration, handed to every driver factory.

    Parameters
    ----------
    environment : Environment
        Environment of the running process. Only drivers declaring this
        environment are mounted, unless ``test`` is set.
    test : bool
        Test mode. Bypasses environment gating for requested drivers and
        switches drivers to throwaway storage (``test_data`` directory,
        in-memory sqlite, ``pyodb_test`` database) that is removed on close.
    fs_root : Path or None
        Root directory of the filesystem driver. Defaults to ``fs_data``
        (``test_data`` in test mode) under the working directory.
    sqlite_path : str or None
        Database file of the sqlite driver. Defaults to ``odb.sqlite3``
        (``:memory:`` in test mode).
    mongo_url : str or None
        MongoDB connection string. Required by the mongodb driver.
    mongo_database : str or None
        MongoDB database name. Required outside test mode; ignored in
        test mode, which always uses ``pyodb_test``.
    mongo_timeout_ms : int
        Server selection timeout passed to the MongoDB client.
    """

    environment: Environment = Environment.SERVER
    test: bool = False
    fs_root: Path | None = None
    sqlite_path: str | None = None
    mongo_url: str | None = None
    mongo_database: str | None = None
    mongo_timeout_ms: int = 1000

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "environment", Environment(self.environment))
        except ValueError as exc:
            raise OdbConfigError(f"Unknown environment: {self.environment!r}") from exc
        if self.fs_root is not None and not isinstance(self.fs_root, Path):
            object.__setattr__(self, "fs_root", Path(self.fs_root))

    def resolved_fs_root(self) -> Path:
        """Directory the filesystem driver stores collections under."""
        if self.fs_root is not None:
            return self.fs_root
        return Path.cwd() / ("test_data" if self.test else "fs_data")

    def resolved_sqlite_path(self) -> str:
        """Database path the sqlite driver connects to."""
        if self.sqlite_path:
            return self.sqlite_path
        return ":memory:" if self.test else "odb.sqlite3"

    @classmethod
    def from_env(cls, **overrides: Any) -> OdbConfig:
        """Create configuration from environment variables.

        Reads ``ODB_*`` variables. ``DB`` and ``DB_TABLE`` are accepted as
        fallbacks for the MongoDB URL and database name. Explicit keyword
        arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        environment = env.get("ODB_ENVIRONMENT")
        if environment is not None:
            config_kwargs["environment"] = environment.strip().lower()

        if "test" not in overrides:
            config_kwargs["test"] = _env_bool(env.get("ODB_TEST"), False)

        fs_root = env.get("ODB_FS_ROOT")
        if fs_root:
            config_kwargs["fs_root"] = Path(fs_root)

        sqlite_path = env.get("ODB_SQLITE_PATH")
        if sqlite_path:
            config_kwargs["sqlite_path"] = sqlite_path

        mongo_url = env.get("ODB_MONGO_URL") or env.get("DB")
        if mongo_url:
            config_kwargs["mongo_url"] = mongo_url

        mongo_database = env.get("ODB_MONGO_DATABASE") or env.get("DB_TABLE")
        if mongo_database:
            config_kwargs["mongo_database"] = mongo_database

        timeout_env = env.get("ODB_MONGO_TIMEOUT_MS")
        if timeout_env is not None and "mongo_timeout_ms" not in overrides:
            try:
                config_kwargs["mongo_timeout_ms"] = int(timeout_env)
            except ValueError as exc:
                raise OdbConfigError(f"ODB_MONGO_TIMEOUT_MS must be an integer, got {timeout_env!r}") from exc

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
