import json
import os

import pytest

from relay.errors import StorageError
from relay.lib import store


@pytest.mark.asyncio
async def test_put_then_get_returns_record(test_relay):
    await store.put("agents", "a-1", {"id": "a-1", "name": "one"})

    assert await store.get("agents", "a-1") == {"id": "a-1", "name": "one"}


@pytest.mark.asyncio
async def test_collections_created_lazily(test_relay):
    assert not (test_relay / "messages").exists()

    assert await store.list_all("messages") == []
    assert (test_relay / "messages").is_dir()


@pytest.mark.asyncio
async def test_get_missing_returns_none(test_relay):
    assert await store.get("agents", "nobody") is None


@pytest.mark.asyncio
async def test_put_writes_one_pretty_json_file(test_relay):
    await store.put("messages", "m-1", {"id": "m-1"})

    path = test_relay / "messages" / "m-1.json"
    assert json.loads(path.read_text()) == {"id": "m-1"}
    assert "\n  " in path.read_text()


@pytest.mark.asyncio
async def test_put_replaces_whole_record(test_relay):
    await store.put("agents", "a-1", {"id": "a-1", "old": True})
    await store.put("agents", "a-1", {"id": "a-1"})

    assert await store.get("agents", "a-1") == {"id": "a-1"}
    leftovers = [p.name for p in (test_relay / "agents").iterdir()]
    assert leftovers == ["a-1.json"]


@pytest.mark.asyncio
async def test_list_all_skips_corrupted_entries(test_relay):
    await store.put("messages", "good", {"id": "good"})
    directory = test_relay / "messages"
    (directory / "broken.json").write_text("{not json")
    (directory / "array.json").write_text("[1, 2]")
    (directory / "notes.txt").write_text("ignored")

    records = await store.list_all("messages")

    assert records == [{"id": "good"}]


@pytest.mark.asyncio
async def test_get_corrupted_returns_none(test_relay):
    (test_relay / "agents").mkdir()
    (test_relay / "agents" / "bad.json").write_text("")

    assert await store.get("agents", "bad") is None


@pytest.mark.asyncio
async def test_list_all_ignores_temp_files(test_relay):
    await store.put("agents", "a-1", {"id": "a-1"})
    (test_relay / "agents" / ".tmp-abc.json").write_text('{"id": "partial"}')

    assert await store.list_all("agents") == [{"id": "a-1"}]
    assert await store.keys("agents") == ["a-1"]


@pytest.mark.asyncio
async def test_delete_is_idempotent(test_relay):
    await store.put("messages", "m-1", {"id": "m-1"})

    assert await store.delete("messages", "m-1") is True
    assert await store.delete("messages", "m-1") is False
    assert await store.get("messages", "m-1") is None


@pytest.mark.asyncio
async def test_modified_at_tracks_mtime(test_relay):
    await store.put("messages", "m-1", {"id": "m-1"})
    path = test_relay / "messages" / "m-1.json"
    os.utime(path, (1_000_000, 1_000_000))

    assert await store.modified_at("messages", "m-1") == 1_000_000
    assert await store.modified_at("messages", "gone") is None


@pytest.mark.asyncio
async def test_put_failure_raises_storage_error(test_relay):
    (test_relay / "agents").write_text("a file where a directory should be")

    with pytest.raises((StorageError, OSError)):
        await store.put("agents", "a-1", {"id": "a-1"})


@pytest.mark.parametrize("key", ["", "../escape", ".hidden", "a/b", "a\x00b"])
def test_record_path_rejects_unsafe_keys(test_relay, key):
    with pytest.raises(ValueError, match="Invalid record key"):
        store.record_path("messages", key)


@pytest.mark.asyncio
async def test_unsafe_keys_are_misses_on_read_and_delete(test_relay):
    assert await store.get("agents", "../config") is None
    assert await store.delete("agents", "../config") is False
    assert await store.modified_at("agents", "") is None
    assert await store.get("agents", "a\x00b") is None
    assert await store.delete("agents", "a\x00b") is False
    assert await store.modified_at("agents", "a\x00b") is None
