"""
Pytest configuration and shared fixtures for webhook_idempotency tests.
"""

import asyncio
import time

import pytest

from webhook_idempotency.config import IdempotencyConfig
from webhook_idempotency.exceptions import StorageError
from webhook_idempotency.storage.memory import MemoryStorageAdapter


class FakeClock:
    """Manually advanced clock in epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FlakyStorageAdapter(MemoryStorageAdapter):
    """Memory store whose individual operations can be made to fail."""

    def __init__(self, clock=time.time) -> None:
        super().__init__(clock=clock)
        self.failing: set[str] = set()

    def _check(self, operation: str) -> None:
        if operation in self.failing:
            raise StorageError(f"simulated {operation} outage")

    async def get(self, key):
        self._check("get")
        return await super().get(key)

    async def set_if_absent(self, key, value, ttl_seconds):
        self._check("set_if_absent")
        return await super().set_if_absent(key, value, ttl_seconds)

    async def set(self, key, value, ttl_seconds):
        self._check("set")
        return await super().set(key, value, ttl_seconds)

    async def compare_and_delete(self, key, expected):
        self._check("compare_and_delete")
        return await super().compare_and_delete(key, expected)

    async def compare_and_set(self, key, expected, value, ttl_seconds):
        self._check("compare_and_set")
        return await super().compare_and_set(key, expected, value, ttl_seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage(clock: FakeClock) -> MemoryStorageAdapter:
    """Memory store driven by the fake clock."""
    return MemoryStorageAdapter(clock=clock)


@pytest.fixture
def flaky_storage(clock: FakeClock) -> FlakyStorageAdapter:
    return FlakyStorageAdapter(clock=clock)


@pytest.fixture
def config() -> IdempotencyConfig:
    """Short delays so contended callers settle quickly in tests."""
    return IdempotencyConfig(
        default_ttl_seconds=3600,
        lock_ttl_seconds=30,
        max_retries=5,
        base_delay_ms=10,
    )


@pytest.fixture
def fake_sleep(clock: FakeClock):
    """Sleep that advances the fake clock instead of waiting."""
    delays: list[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)
        clock.advance(seconds)
        await asyncio.sleep(0)

    sleep.delays = delays  # type: ignore[attr-defined]
    return sleep
