from __future__ import annotations

from pathlib import Path

import pytest

from pyodb.config import Environment, OdbConfig
from pyodb.exceptions import OdbConfigError

_VARS = (
    "ODB_ENVIRONMENT",
    "ODB_TEST",
    "ODB_FS_ROOT",
    "ODB_SQLITE_PATH",
    "ODB_MONGO_URL",
    "ODB_MONGO_DATABASE",
    "ODB_MONGO_TIMEOUT_MS",
    "DB",
    "DB_TABLE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    config = OdbConfig.from_env()

    assert config.environment is Environment.SERVER
    assert config.test is False
    assert config.mongo_url is None
    assert config.mongo_timeout_ms == 1000


def test_reads_odb_variables(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ODB_ENVIRONMENT", " Client ")
    monkeypatch.setenv("ODB_TEST", "yes")
    monkeypatch.setenv("ODB_FS_ROOT", str(tmp_path))
    monkeypatch.setenv("ODB_SQLITE_PATH", "local.db")
    monkeypatch.setenv("ODB_MONGO_URL", "mongodb://db:27017")
    monkeypatch.setenv("ODB_MONGO_DATABASE", "app")
    monkeypatch.setenv("ODB_MONGO_TIMEOUT_MS", "250")

    config = OdbConfig.from_env()

    assert config.environment is Environment.CLIENT
    assert config.test is True
    assert config.fs_root == tmp_path
    assert config.sqlite_path == "local.db"
    assert config.mongo_url == "mongodb://db:27017"
    assert config.mongo_database == "app"
    assert config.mongo_timeout_ms == 250


def test_legacy_database_variables_are_fallbacks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DB", "mongodb://legacy:27017")
    monkeypatch.setenv("DB_TABLE", "legacy")

    config = OdbConfig.from_env()
    assert config.mongo_url == "mongodb://legacy:27017"
    assert config.mongo_database == "legacy"

    monkeypatch.setenv("ODB_MONGO_URL", "mongodb://new:27017")
    assert OdbConfig.from_env().mongo_url == "mongodb://new:27017"


def test_overrides_win_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ODB_TEST", "1")
    monkeypatch.setenv("ODB_MONGO_TIMEOUT_MS", "not a number")

    config = OdbConfig.from_env(test=False, mongo_timeout_ms=50)

    assert config.test is False
    assert config.mongo_timeout_ms == 50


def test_invalid_values_are_config_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    with pytest.raises(OdbConfigError):
        OdbConfig(environment="browser")  # type: ignore[arg-type]

    monkeypatch.setenv("ODB_MONGO_TIMEOUT_MS", "soon")
    with pytest.raises(OdbConfigError):
        OdbConfig.from_env()


def test_resolved_paths_follow_test_mode(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)

    assert OdbConfig().resolved_fs_root() == tmp_path / "fs_data"
    assert OdbConfig(test=True).resolved_fs_root() == tmp_path / "test_data"
    assert OdbConfig(fs_root=str(tmp_path / "custom")).resolved_fs_root() == tmp_path / "custom"  # type: ignore[arg-type]
    assert OdbConfig().resolved_sqlite_path() == "odb.sqlite3"
    assert OdbConfig(test=True).resolved_sqlite_path() == ":memory:"
