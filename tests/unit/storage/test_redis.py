"""Unit tests for RedisStorageAdapter against fakeredis.

fakeredis implements the Redis command set (Lua included) in process, so
these tests exercise the real redis.asyncio client code paths.
"""

import pytest
from fakeredis import aioredis as fake_aioredis
from redis.exceptions import ConnectionError as RedisConnectionError

from webhook_idempotency.exceptions import StorageError
from webhook_idempotency.storage.redis import RedisStorageAdapter


@pytest.fixture
def redis_storage():
    return RedisStorageAdapter(fake_aioredis.FakeRedis(decode_responses=True))


@pytest.mark.asyncio
async def test_get_missing(redis_storage):
    assert await redis_storage.get("missing") is None


@pytest.mark.asyncio
async def test_set_and_get(redis_storage):
    await redis_storage.set("k", "v", ttl_seconds=60)

    assert await redis_storage.get("k") == "v"
    assert 0 < await redis_storage.ttl("k") <= 60


@pytest.mark.asyncio
async def test_set_without_ttl(redis_storage):
    await redis_storage.set("k", "v", ttl_seconds=None)
    assert await redis_storage.ttl("k") is None


@pytest.mark.asyncio
async def test_set_if_absent(redis_storage):
    assert await redis_storage.set_if_absent("lock", "a", ttl_seconds=30) is True
    assert await redis_storage.set_if_absent("lock", "b", ttl_seconds=30) is False
    assert await redis_storage.get("lock") == "a"


@pytest.mark.asyncio
async def test_compare_and_delete(redis_storage):
    await redis_storage.set_if_absent("lock", "a", ttl_seconds=30)

    assert await redis_storage.compare_and_delete("lock", "b") is False
    assert await redis_storage.get("lock") == "a"

    assert await redis_storage.compare_and_delete("lock", "a") is True
    assert await redis_storage.get("lock") is None


@pytest.mark.asyncio
async def test_compare_and_set(redis_storage):
    await redis_storage.set("k", "processing-a", ttl_seconds=30)

    assert await redis_storage.compare_and_set("k", "processing-b", "completed-b", 3600) is False
    assert await redis_storage.get("k") == "processing-a"

    assert await redis_storage.compare_and_set("k", "processing-a", "completed-a", 3600) is True
    assert await redis_storage.get("k") == "completed-a"
    assert 30 < await redis_storage.ttl("k") <= 3600


@pytest.mark.asyncio
async def test_compare_and_set_missing_key(redis_storage):
    assert await redis_storage.compare_and_set("k", "processing-a", "completed-a", 3600) is False
    assert await redis_storage.get("k") is None


@pytest.mark.asyncio
async def test_expire(redis_storage):
    await redis_storage.set("k", "v", ttl_seconds=None)

    assert await redis_storage.expire("k", 120) is True
    assert 0 < await redis_storage.ttl("k") <= 120
    assert await redis_storage.expire("missing", 120) is False


@pytest.mark.asyncio
async def test_delete(redis_storage):
    await redis_storage.set("k", "v", ttl_seconds=60)
    await redis_storage.delete("k")
    assert await redis_storage.get("k") is None


@pytest.mark.asyncio
async def test_delete_missing_key_is_noop(redis_storage):
    await redis_storage.delete("missing")
    assert await redis_storage.get("missing") is None


@pytest.mark.asyncio
async def test_scan(redis_storage):
    for i in range(5):
        await redis_storage.set(f"idempotency:venmo:default:{i}", "v", 60)
    await redis_storage.set("idempotency:sms:default:x", "v", 60)

    venmo = await redis_storage.scan("idempotency:venmo:*", limit=100)
    limited = await redis_storage.scan("idempotency:*", limit=2)

    assert len(venmo) == 5
    assert len(limited) == 2


@pytest.mark.asyncio
async def test_redis_errors_become_storage_errors(monkeypatch, redis_storage):
    async def broken_get(key):
        raise RedisConnectionError("connection refused")

    monkeypatch.setattr(redis_storage._client, "get", broken_get)

    with pytest.raises(StorageError) as exc_info:
        await redis_storage.get("k")

    assert isinstance(exc_info.value.cause, RedisConnectionError)
    assert "get" in exc_info.value.message


def test_from_url_decodes_responses():
    adapter = RedisStorageAdapter.from_url("redis://localhost:6379/0")
    assert adapter._client.connection_pool.connection_kwargs["decode_responses"] is True
