from __future__ import annotations

import json
from pathlib import Path

import pytest

from pyodb.config import OdbConfig
from pyodb.context import OdbContext
from pyodb.drivers.fs import FsDriver, create_fs_driver
from pyodb.observable import to_state_tree


def _stored(root: Path, collection: str) -> list[dict[str, object]]:
    return [json.loads(path.read_text(encoding="utf-8")) for path in sorted((root / collection).glob("*.json"))]


@pytest.mark.asyncio
async def test_documents_are_stored_one_file_each(tmp_path: Path) -> None:
    driver = FsDriver(tmp_path)

    created = await driver.create("users", {"name": "ada", "langs": ["en"]})

    path = tmp_path / "users" / f"{created['id']}.json"
    record = json.loads(path.read_text(encoding="utf-8"))
    assert record["id"] == created["id"]
    assert record["state_json"] == {"name": "ada", "langs": ["en"]}
    assert record["state_tree"] == to_state_tree({"name": "ada", "langs": ["en"]})
    assert created["state_tree"] == record["state_tree"]


@pytest.mark.asyncio
async def test_query_update_and_remove(tmp_path: Path) -> None:
    driver = FsDriver(tmp_path)
    first = await driver.create("users", {"name": "ada"})
    await driver.create("users", {"name": "grace"})

    found = await driver.query("users", driver.transform_query({"name": "ada"}))
    assert found is not None
    assert found["id"] == first["id"]

    assert await driver.update("users", first["id"], {"name": "ada", "role": "admin"}) is True
    record = json.loads((tmp_path / "users" / f"{first['id']}.json").read_text(encoding="utf-8"))
    assert record["state_json"] == {"name": "ada", "role": "admin"}
    found = await driver.query("users", driver.transform_query({"role": "admin"}))
    assert found is not None and found["id"] == first["id"]

    assert await driver.remove("users", first["id"]) is True
    assert await driver.remove("users", first["id"]) is False
    assert await driver.query("users", driver.transform_query({"name": "ada"})) is None
    assert await driver.update("users", first["id"], {"name": "ada"}) is False


@pytest.mark.asyncio
async def test_temporary_files_are_ignored(tmp_path: Path) -> None:
    driver = FsDriver(tmp_path)
    await driver.create("users", {"name": "ada"})
    (tmp_path / "users" / ".tmp-partial.json").write_text("{not json", encoding="utf-8")

    found = await driver.query("users", driver.transform_query({"name": "ada"}))

    assert found is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("collection", ["", "..", "a/b"])
async def test_invalid_collection_names_are_rejected(tmp_path: Path, collection: str) -> None:
    driver = FsDriver(tmp_path)

    with pytest.raises(ValueError):
        await driver.create(collection, {"a": 1})


@pytest.mark.asyncio
async def test_mutations_reach_disk_through_the_context(tmp_path: Path) -> None:
    ctx = OdbContext(OdbConfig(fs_root=tmp_path))
    assert await ctx.init(["fs"]) == {"fs": True}

    live = await ctx.odb("fs", "users", {"name": "ada"}, {"name": "ada", "langs": []})
    assert live is not False
    live["langs"].append("en")
    await ctx.flush()

    records = _stored(tmp_path, "users")
    assert len(records) == 1
    assert records[0]["id"] == ctx.document_id(live)
    assert records[0]["state_json"] == {"name": "ada", "langs": ["en"]}
    await ctx.close()
    assert (tmp_path / "users").exists()


@pytest.mark.asyncio
async def test_test_mode_root_is_removed_on_close(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    driver = await create_fs_driver(OdbConfig(test=True))
    assert driver.root == tmp_path / "test_data"
    await driver.create("things", {"a": 1})
    assert (tmp_path / "test_data" / "things").is_dir()

    await driver.close()

    assert not (tmp_path / "test_data").exists()
