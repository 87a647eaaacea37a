"""Redis storage adapter for multi-process and multi-host deployments.

Every worker points at the same Redis instance, which becomes the single
source of truth for ledger records and processing locks.

Atomic primitives:
    - set_if_absent: ``SET key value NX EX ttl``
    - compare_and_delete: Lua script comparing the token before ``DEL``
    - compare_and_set: Lua script comparing the value before ``SET ... EX``
    - expire: ``EXPIRE key ttl``

Examples:
    From a URL::

        from webhook_idempotency.storage.redis import RedisStorageAdapter

        storage = RedisStorageAdapter.from_url("redis://cache:6379/0")

    With an existing client::

        import redis.asyncio as aioredis

        client = aioredis.Redis(host="cache", decode_responses=True)
        storage = RedisStorageAdapter(client)
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from webhook_idempotency.exceptions import StorageError
from webhook_idempotency.observability.metrics import record_store_error
from webhook_idempotency.storage.base import StorageAdapter

R = TypeVar("R")

COMPARE_AND_DELETE_SCRIPT = """
local key = KEYS[1]
local expected_token = ARGV[1]
local current_token = redis.call('GET', key)

if current_token == expected_token then
    redis.call('DEL', key)
    return 1
else
    return 0
end
"""

COMPARE_AND_SET_SCRIPT = """
local key = KEYS[1]
local expected = ARGV[1]

if redis.call('GET', key) == expected then
    redis.call('SET', key, ARGV[2], 'EX', ARGV[3])
    return 1
else
    return 0
end
"""

SCAN_BATCH_SIZE = 500


class RedisStorageAdapter(StorageAdapter):
    """StorageAdapter backed by ``redis.asyncio``.

    The client must be created with ``decode_responses=True`` so values come
    back as ``str``.

    Attributes:
        _client: The asyncio Redis client.
    """

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RedisStorageAdapter":
        """Create an adapter with a new connection pool for ``url``."""
        kwargs.setdefault("decode_responses", True)
        return cls(aioredis.from_url(url, **kwargs))

    async def _call(self, operation: str, key: str, fn: Callable[[], Awaitable[R]]) -> R:
        try:
            return await fn()
        except RedisError as e:
            record_store_error(operation)
            raise StorageError(f"Redis {operation} failed for {key}: {e}", cause=e) from e

    async def get(self, key: str) -> str | None:
        return await self._call("get", key, lambda: self._client.get(key))

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        created = await self._call(
            "set_if_absent",
            key,
            lambda: self._client.set(key, value, nx=True, ex=ttl_seconds),
        )
        return bool(created)

    async def set(self, key: str, value: str, ttl_seconds: int | None) -> None:
        await self._call("set", key, lambda: self._client.set(key, value, ex=ttl_seconds))

    async def delete(self, key: str) -> None:
        await self._call("delete", key, lambda: self._client.delete(key))

    async def ttl(self, key: str) -> int | None:
        remaining = await self._call("ttl", key, lambda: self._client.ttl(key))
        # -2: key missing, -1: key has no expiry
        if remaining is None or remaining < 0:
            return None
        return int(remaining)

    async def compare_and_delete(self, key: str, expected: str) -> bool:
        deleted = await self._call(
            "compare_and_delete",
            key,
            lambda: self._client.eval(COMPARE_AND_DELETE_SCRIPT, 1, key, expected),
        )
        return bool(deleted)

    async def compare_and_set(
        self, key: str, expected: str, value: str, ttl_seconds: int
    ) -> bool:
        replaced = await self._call(
            "compare_and_set",
            key,
            lambda: self._client.eval(COMPARE_AND_SET_SCRIPT, 1, key, expected, value, ttl_seconds),
        )
        return bool(replaced)

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        applied = await self._call("expire", key, lambda: self._client.expire(key, ttl_seconds))
        return bool(applied)

    async def scan(self, pattern: str, limit: int) -> list[str]:
        async def collect() -> list[str]:
            keys: list[str] = []
            async for key in self._client.scan_iter(match=pattern, count=SCAN_BATCH_SIZE):
                keys.append(key)
                if len(keys) >= limit:
                    break
            return keys

        return await self._call("scan", pattern, collect)

    async def close(self) -> None:
        await self._client.aclose()
