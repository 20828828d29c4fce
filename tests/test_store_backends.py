#!/usr/bin/env python3
"""
Store backends and the store manager.

Redis is exercised against a mocked redis.asyncio client, no server
needed.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from filelock import Timeout

from sievequota.config import QuotaSettings
from sievequota.store.file import FileStoreBackend
from sievequota.store.manager import BackendType, StoreManager
from sievequota.store.memory import MemoryStoreBackend

# ── Fixtures ───────────────────────────────────────────────────


@pytest_asyncio.fixture(params=["memory", "file"])
async def backend(request, tmp_path: Path):
    if request.param == "memory":
        store = MemoryStoreBackend()
    else:
        store = FileStoreBackend(tmp_path / "state", save_interval=3600)
    await store.connect()
    yield store
    await store.disconnect()


# ── Shared contract ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_get_set_exists(backend):
    assert await backend.get("k") is None
    assert await backend.exists("k") is False

    await backend.set("k", "v")
    assert await backend.get("k") == "v"
    assert await backend.exists("k") is True


@pytest.mark.asyncio
async def test_delete_reports_count(backend):
    await backend.set("k", "v")
    assert await backend.delete("k") == 1
    assert await backend.delete("k") == 0
    assert await backend.get("k") is None


@pytest.mark.asyncio
async def test_incr_creates_and_accumulates(backend):
    assert await backend.incr("c", 5) == 5
    assert await backend.incr("c", -8) == -3
    assert await backend.incr("c") == -2
    assert await backend.get("c") == "-2"


@pytest.mark.asyncio
async def test_incr_rejects_non_integer(backend):
    await backend.set("c", "abc")
    with pytest.raises(ValueError):
        await backend.incr("c", 1)


@pytest.mark.asyncio
async def test_scan_pagination(backend):
    for i in range(5):
        await backend.set(f"a:{i}", "1")
    await backend.set("b:0", "1")

    cursor, first = await backend.scan(0, match="a:*", count=3)
    assert cursor != 0
    cursor, second = await backend.scan(cursor, match="a:*", count=3)
    assert cursor == 0
    assert sorted(first + second) == [f"a:{i}" for i in range(5)]


@pytest.mark.asyncio
async def test_ping_and_stats(backend):
    assert await backend.ping() is True
    await backend.set("k", "v")
    stats = backend.get_stats()
    assert stats["type"] in ("memory", "file")
    assert stats["keys"] == 1


# ── File persistence ───────────────────────────────────────────


@pytest.mark.asyncio
async def test_file_backend_survives_restart(tmp_path: Path):
    store = FileStoreBackend(tmp_path, save_interval=3600)
    await store.connect()
    await store.set("q", "500")
    await store.incr("s", 42)
    await store.disconnect()

    on_disk = json.loads((tmp_path / "ledger.json").read_text(encoding="utf-8"))
    assert on_disk == {"q": "500", "s": "42"}

    reopened = FileStoreBackend(tmp_path, save_interval=3600)
    await reopened.connect()
    assert await reopened.get("q") == "500"
    assert await reopened.incr("s", 1) == 43
    await reopened.disconnect()


@pytest.mark.asyncio
async def test_file_backend_persists_deletes(tmp_path: Path):
    store = FileStoreBackend(tmp_path, save_interval=3600)
    await store.connect()
    await store.set("q", "1")
    await store.disconnect()

    store = FileStoreBackend(tmp_path, save_interval=3600)
    await store.connect()
    assert await store.delete("q") == 1
    await store.disconnect()

    store = FileStoreBackend(tmp_path, save_interval=3600)
    await store.connect()
    assert await store.exists("q") is False
    await store.disconnect()


@pytest.mark.asyncio
async def test_file_backend_refuses_corrupt_snapshot(tmp_path: Path):
    (tmp_path / "ledger.json").write_text("{not json", encoding="utf-8")
    store = FileStoreBackend(tmp_path)
    with pytest.raises(json.JSONDecodeError):
        await store.connect()


# ── Redis (mocked client) ──────────────────────────────────────


@pytest.fixture
def redis_backend():
    from sievequota.store.redis import RedisStoreBackend

    backend = RedisStoreBackend("redis://example:6379/3")
    client = AsyncMock()
    backend._client = client
    return backend, client


@pytest.mark.asyncio
async def test_redis_delete_maps_to_del(redis_backend):
    backend, client = redis_backend
    client.delete.return_value = 1
    assert await backend.delete("k") == 1
    client.delete.assert_awaited_once_with("k")


@pytest.mark.asyncio
async def test_redis_incr_maps_to_incrby(redis_backend):
    backend, client = redis_backend
    client.incrby.return_value = 70
    assert await backend.incr("k", -30) == 70
    client.incrby.assert_awaited_once_with("k", -30)


@pytest.mark.asyncio
async def test_redis_incr_response_error_becomes_value_error(redis_backend):
    import redis.asyncio as redis

    backend, client = redis_backend
    client.incrby.side_effect = redis.ResponseError("value is not an integer or out of range")
    with pytest.raises(ValueError):
        await backend.incr("k", 1)


@pytest.mark.asyncio
async def test_redis_get_set_exists_scan(redis_backend):
    backend, client = redis_backend
    client.get.return_value = "10"
    client.exists.return_value = 0
    client.scan.return_value = (0, ["a", "b"])

    assert await backend.get("k") == "10"
    await backend.set("k", "11")
    client.set.assert_awaited_once_with("k", "11")
    assert await backend.exists("k") is False
    assert await backend.scan(0, match="*", count=10) == (0, ["a", "b"])
    assert backend.get_stats() == {"type": "redis", "url": "redis://example:6379/3"}


@pytest.mark.asyncio
async def test_redis_requires_connect():
    from sievequota.store.redis import RedisStoreBackend

    backend = RedisStoreBackend()
    with pytest.raises(RuntimeError):
        await backend.get("k")
    assert await backend.ping() is False


# ── StoreManager ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_manager_requires_connect():
    manager = StoreManager(BackendType.MEMORY)
    with pytest.raises(RuntimeError):
        _ = manager.backend


@pytest.mark.asyncio
async def test_manager_memory_lifecycle():
    manager = StoreManager(BackendType.MEMORY)
    await manager.connect()
    assert isinstance(manager.backend, MemoryStoreBackend)
    assert await manager.ping() is True
    await manager.disconnect()
    with pytest.raises(RuntimeError):
        _ = manager.backend


@pytest.mark.asyncio
async def test_manager_from_settings(tmp_path: Path):
    settings = QuotaSettings(store_backend="file", storage_path=tmp_path / "q", save_interval=1, lock_timeout=2)
    manager = StoreManager.from_settings(settings)
    assert manager.backend_type == BackendType.FILE

    await manager.connect()
    backend = manager.backend
    assert isinstance(backend, FileStoreBackend)
    assert backend.state_file == tmp_path / "q" / "ledger.json"
    assert backend.save_interval == 1
    assert backend.lock_timeout == 2
    await manager.disconnect()


def test_manager_builds_redis_backend():
    from sievequota.store.redis import RedisStoreBackend

    manager = StoreManager(BackendType.REDIS, redis_url="redis://example:6379/1")
    backend = manager._create_backend()
    assert isinstance(backend, RedisStoreBackend)
    assert backend.redis_url == "redis://example:6379/1"


def test_unknown_backend_type():
    with pytest.raises(ValueError):
        StoreManager("cassandra")  # type: ignore[arg-type]


# ── Scan cursors ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_scan_keeps_surviving_keys_when_earlier_keys_are_deleted(backend):
    names = [f"u{i:03d}" for i in range(150)]
    for name in names:
        await backend.set(name, "1")

    cursor, first = await backend.scan(0, match="u*", count=100)
    assert len(first) == 100
    await backend.delete("u000")
    await backend.set("a-new-key", "1")

    seen = list(first)
    while cursor != 0:
        cursor, batch = await backend.scan(cursor, match="u*", count=100)
        seen.extend(batch)

    assert sorted(seen) == names


@pytest.mark.asyncio
async def test_scan_rejects_unknown_cursor(backend):
    await backend.set("k", "1")
    with pytest.raises(ValueError):
        await backend.scan(12345, match="*")


@pytest.mark.asyncio
async def test_escape_pattern_matches_literally(backend):
    await backend.set("t[1]:x", "1")
    await backend.set("t1:x", "1")
    await backend.set("t*:x", "1")
    await backend.set("tz:x", "1")

    _, keys = await backend.scan(0, match=backend.escape_pattern("t[1]:") + "*", count=100)
    assert keys == ["t[1]:x"]
    _, keys = await backend.scan(0, match=backend.escape_pattern("t*:") + "*", count=100)
    assert keys == ["t*:x"]


def test_redis_escape_pattern():
    from sievequota.store.redis import RedisStoreBackend

    backend = RedisStoreBackend()
    assert backend.escape_pattern("tenant[1]:a*b?c\\") == "tenant\\[1\\]:a\\*b\\?c\\\\"
    assert backend.escape_pattern("sieve:sieve_quota:") == "sieve:sieve_quota:"


def test_redis_errors_are_store_errors():
    import redis.asyncio as redis

    from sievequota.store.redis import RedisStoreBackend

    assert issubclass(redis.ConnectionError, RedisStoreBackend.errors)
    assert not issubclass(TypeError, RedisStoreBackend.errors)


# ── File lock ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_file_backend_second_holder_times_out(tmp_path: Path):
    first = FileStoreBackend(tmp_path, save_interval=3600)
    await first.connect()
    try:
        second = FileStoreBackend(tmp_path, save_interval=3600, lock_timeout=0.1)
        with pytest.raises(Timeout):
            await second.connect()
    finally:
        await first.disconnect()


@pytest.mark.asyncio
async def test_file_backends_on_same_path_do_not_lose_writes(tmp_path: Path):
    first = FileStoreBackend(tmp_path, save_interval=3600)
    await first.connect()

    second = FileStoreBackend(tmp_path, save_interval=3600, lock_timeout=10)
    waiting = asyncio.create_task(second.connect())
    await asyncio.sleep(0.1)
    assert not waiting.done()

    await first.set("sieve:sieve_quota:alice:quota", "1000")
    await first.disconnect()

    await waiting
    assert await second.get("sieve:sieve_quota:alice:quota") == "1000"
    await second.set("sieve:sieve_quota:bob:quota", "2000")
    await second.disconnect()

    reopened = FileStoreBackend(tmp_path, save_interval=3600, lock_timeout=1)
    await reopened.connect()
    assert await reopened.get("sieve:sieve_quota:alice:quota") == "1000"
    assert await reopened.get("sieve:sieve_quota:bob:quota") == "2000"
    await reopened.disconnect()


@pytest.mark.asyncio
async def test_file_backend_releases_lock_after_failed_load(tmp_path: Path):
    (tmp_path / "ledger.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(json.JSONDecodeError):
        await FileStoreBackend(tmp_path).connect()

    (tmp_path / "ledger.json").write_text('{"k": "1"}', encoding="utf-8")
    store = FileStoreBackend(tmp_path, lock_timeout=0.1)
    await store.connect()
    assert await store.get("k") == "1"
    await store.disconnect()
