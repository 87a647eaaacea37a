"""In-memory storage adapter with asyncio concurrency control.

This module provides a single-process implementation of the StorageAdapter
protocol. An asyncio.Lock makes every operation atomic with respect to other
tasks in the same event loop, which emulates the atomic primitives of a
shared store such as Redis.

The MemoryStorageAdapter is suitable for:
    - Development and testing
    - Single-process deployments where all workers share one event loop

For multiple processes or hosts, use RedisStorageAdapter instead.

Expiry:
    - Each entry carries an optional absolute expiry timestamp
    - Expired entries are treated as absent and removed lazily on access
    - The clock is injectable so tests can advance time deterministically

Examples:
    Basic usage::

        from webhook_idempotency.storage.memory import MemoryStorageAdapter

        storage = MemoryStorageAdapter()
        created = await storage.set_if_absent("idempotency:k:lock", "token", 30)

    Fake clock::

        now = [1_000.0]
        storage = MemoryStorageAdapter(clock=lambda: now[0])
        await storage.set("k", "v", ttl_seconds=10)
        now[0] += 11
        assert await storage.get("k") is None
"""

import asyncio
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from fnmatch import fnmatchcase

from webhook_idempotency.storage.base import StorageAdapter


@dataclass
class _Entry:
    value: str
    expires_at: float | None


class MemoryStorageAdapter(StorageAdapter):
    """In-memory key-value store with TTLs.

    Attributes:
        _entries: Mapping of keys to values and expiry timestamps.
        _lock: Lock serializing every operation.
        _clock: Callable returning the current time in epoch seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """Initialize an empty store.

        Args:
            clock: Source of the current time in seconds. Defaults to time.time.
        """
        self._entries: dict[str, _Entry] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def _live(self, key: str) -> _Entry | None:
        """Return the entry for ``key`` unless it has expired.

        Must be called with ``_lock`` held.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry

    def _expiry(self, ttl_seconds: int | None) -> float | None:
        if ttl_seconds is None:
            return None
        return self._clock() + ttl_seconds

    async def get(self, key: str) -> str | None:
        async with self._lock:
            entry = self._live(key)
            return entry.value if entry is not None else None

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        async with self._lock:
            if self._live(key) is not None:
                return False
            self._entries[key] = _Entry(value=value, expires_at=self._expiry(ttl_seconds))
            return True

    async def set(self, key: str, value: str, ttl_seconds: int | None) -> None:
        async with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._expiry(ttl_seconds))

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def ttl(self, key: str) -> int | None:
        async with self._lock:
            entry = self._live(key)
            if entry is None or entry.expires_at is None:
                return None
            return math.ceil(entry.expires_at - self._clock())

    async def compare_and_delete(self, key: str, expected: str) -> bool:
        async with self._lock:
            entry = self._live(key)
            if entry is None or entry.value != expected:
                return False
            del self._entries[key]
            return True

    async def compare_and_set(
        self, key: str, expected: str, value: str, ttl_seconds: int
    ) -> bool:
        async with self._lock:
            entry = self._live(key)
            if entry is None or entry.value != expected:
                return False
            self._entries[key] = _Entry(value=value, expires_at=self._expiry(ttl_seconds))
            return True

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        async with self._lock:
            entry = self._live(key)
            if entry is None:
                return False
            entry.expires_at = self._expiry(ttl_seconds)
            return True

    async def scan(self, pattern: str, limit: int) -> list[str]:
        """Return up to ``limit`` live keys matching ``pattern``.

        Expired entries encountered during the scan are purged.
        """
        matched: list[str] = []
        async with self._lock:
            for key in list(self._entries):
                if len(matched) >= limit:
                    break
                if self._live(key) is not None and fnmatchcase(key, pattern):
                    matched.append(key)
        return matched

    async def close(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
