"""Scenario 6: Store Outages

This module tests behavior while the shared store misbehaves:
- Ledger reads fail open: the operation still runs and the claim is counted
- Lock writes fail closed: the operation is not run, the failure is retriable
- A failed PROCESSING write is retriable and releases the lock
- A failed terminal write does not change the caller's outcome
- Backoff honors an explicit deadline
"""

import pytest
from prometheus_client import REGISTRY

from webhook_idempotency.core.manager import (
    LOCK_NOT_ACQUIRED,
    STORE_UNAVAILABLE,
    IdempotencyManager,
)
from webhook_idempotency.exceptions import StorageError
from webhook_idempotency.keys import generate_key
from webhook_idempotency.models import FailureEvent, OperationStatus
from webhook_idempotency.storage.memory import MemoryStorageAdapter

KEY = generate_key("sms", "m1")


class Recorder:
    def __init__(self) -> None:
        self.calls = 0
        self.alerts: list[FailureEvent] = []

    async def operation(self) -> dict:
        self.calls += 1
        return {"response": "ok"}

    async def alert(self, event: FailureEvent) -> None:
        self.alerts.append(event)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def manager(flaky_storage, config, clock, fake_sleep, recorder):
    return IdempotencyManager(
        flaky_storage, config, alert_hook=recorder.alert, clock=clock, sleep=fake_sleep
    )


@pytest.mark.asyncio
async def test_read_outage_fails_open(manager, flaky_storage, recorder):
    flaky_storage.failing.add("get")

    result = await manager.execute_with_idempotency("sms", "m1", recorder.operation)

    assert result.status is OperationStatus.COMPLETED
    assert recorder.calls == 1


def _fail_open_claims(provider: str) -> float:
    value = REGISTRY.get_sample_value(
        "webhook_idempotency_fail_open_claims_total", {"provider": provider}
    )
    return value or 0.0


@pytest.mark.asyncio
async def test_read_outage_claim_is_counted(manager, flaky_storage, recorder):
    before = _fail_open_claims("sms")
    flaky_storage.failing.add("get")

    await manager.execute_with_idempotency("sms", "m1", recorder.operation)

    assert _fail_open_claims("sms") == before + 1


@pytest.mark.asyncio
async def test_readable_ledger_claim_not_counted(manager, recorder):
    before = _fail_open_claims("sms")

    await manager.execute_with_idempotency("sms", "m1", recorder.operation)

    assert _fail_open_claims("sms") == before


@pytest.mark.asyncio
async def test_read_outage_allows_duplicate_execution(manager, flaky_storage, recorder):
    """Availability is preferred over consistency while reads fail."""
    await manager.execute_with_idempotency("sms", "m1", recorder.operation)
    flaky_storage.failing.add("get")

    result = await manager.execute_with_idempotency("sms", "m1", recorder.operation)

    assert result.is_duplicate is False
    assert recorder.calls == 2


@pytest.mark.asyncio
async def test_lock_outage_fails_closed(manager, flaky_storage, recorder):
    flaky_storage.failing.add("set_if_absent")

    result = await manager.execute_with_idempotency("sms", "m1", recorder.operation)

    assert result.status is OperationStatus.FAILED
    assert result.retriable is True
    assert result.error == STORE_UNAVAILABLE
    assert recorder.calls == 0
    assert len(recorder.alerts) == 1
    assert recorder.alerts[0].retriable is True


@pytest.mark.asyncio
async def test_recovers_after_lock_outage(manager, flaky_storage, recorder):
    flaky_storage.failing.add("set_if_absent")
    await manager.execute_with_idempotency("sms", "m1", recorder.operation)
    flaky_storage.failing.clear()

    result = await manager.execute_with_idempotency("sms", "m1", recorder.operation)

    assert result.status is OperationStatus.COMPLETED
    assert recorder.calls == 1


@pytest.mark.asyncio
async def test_processing_write_outage_fails_closed(manager, flaky_storage, recorder):
    flaky_storage.failing.add("set")

    result = await manager.execute_with_idempotency("sms", "m1", recorder.operation)

    assert result.retriable is True
    assert result.error == STORE_UNAVAILABLE
    assert recorder.calls == 0
    assert await manager.locks.is_held(KEY) is False


@pytest.mark.asyncio
async def test_lock_release_outage_still_returns_result(manager, flaky_storage, recorder):
    flaky_storage.failing.add("compare_and_delete")

    result = await manager.execute_with_idempotency("sms", "m1", recorder.operation)

    assert result.status is OperationStatus.COMPLETED
    # The lock is left to expire on its own
    assert await manager.locks.is_held(KEY) is True


class TerminalWriteFailingStorage(MemoryStorageAdapter):
    """Accepts PROCESSING writes but rejects the terminal one."""

    async def compare_and_set(self, key, expected, value, ttl_seconds):
        raise StorageError("replica lost")


@pytest.mark.asyncio
async def test_terminal_write_outage_keeps_outcome(clock, config, fake_sleep, recorder):
    storage = TerminalWriteFailingStorage(clock=clock)
    manager = IdempotencyManager(storage, config, clock=clock, sleep=fake_sleep)

    result = await manager.execute_with_idempotency("sms", "m1", recorder.operation)

    assert result.status is OperationStatus.COMPLETED
    assert result.result == {"response": "ok"}
    assert await manager.locks.is_held(KEY) is False
    # Left PROCESSING; reclaimed under the orphan policy later
    assert (await manager.ledger.check_duplicate(KEY)).status is OperationStatus.PROCESSING


@pytest.mark.asyncio
async def test_contended_lock_exhausts_retries(manager, recorder):
    held = await manager.locks.acquire(KEY)

    result = await manager.execute_with_idempotency("sms", "m1", recorder.operation)

    assert result.retriable is True
    assert result.error == LOCK_NOT_ACQUIRED
    assert recorder.calls == 0
    assert await manager.locks.release(KEY, held.token) is True


@pytest.mark.asyncio
async def test_explicit_timeout_shortens_backoff(manager, fake_sleep, recorder):
    await manager.locks.acquire(KEY)

    result = await manager.execute_with_idempotency(
        "sms", "m1", recorder.operation, timeout=0.035
    )

    assert result.error == LOCK_NOT_ACQUIRED
    assert fake_sleep.delays == [0.01, 0.02]
