"""Execution wrapper giving externally triggered operations an exactly-once effect.

This module orchestrates the whole idempotency flow for one inbound event:

1. Derive the idempotency key from provider, transaction id and context
2. Check the ledger; return stored terminal outcomes as duplicates
3. Acquire the processing lock (or back off while another worker runs)
4. Re-check the ledger under the lock
5. Mark PROCESSING, run the operation, mark COMPLETED or FAILED
6. Release the lock on every exit path, cancellation included

Coordination happens only through the shared store, so any number of
processes on any number of hosts may call ``execute_with_idempotency`` for
the same key at once: exactly one runs the operation, the rest observe its
outcome or a retriable failure.

Failure policy:
    - Ledger reads fail open: an unreadable store is treated as PENDING.
      During an outage whose reads fail but whose writes succeed, a duplicate
      execution is possible. Availability is preferred here on purpose.
    - The lock write fails closed: without a lock the operation is not run
      and the caller gets a retriable FAILED result.
    - Operation errors become FAILED records, are alerted, and are returned.
    - A worker that outlives its lock does not overwrite the record of the
      worker that reclaimed the key. If that worker already settled, its
      stored outcome is returned as a duplicate.

Examples:
    Wrapping a payment webhook::

        manager = IdempotencyManager(RedisStorageAdapter.from_url(url), config)

        async def credit_account():
            return await payments.credit(payload.amount)

        result = await manager.execute_with_idempotency(
            provider="venmo",
            transaction_id=payload.id,
            operation=credit_account,
            context="payment",
        )
        if result.retriable:
            return Response(status_code=503)
"""

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic_core import PydanticSerializationError, to_json

from webhook_idempotency.config import IdempotencyConfig
from webhook_idempotency.core.ledger import StatusLedger
from webhook_idempotency.core.locks import LockManager
from webhook_idempotency.core.retry import RetryController
from webhook_idempotency.exceptions import StaleOwnerError, StorageError
from webhook_idempotency.keys import generate_key
from webhook_idempotency.models import (
    DuplicateCheck,
    ExecutionResult,
    FailureEvent,
    LockOutcome,
    OperationRecord,
    OperationStatus,
)
from webhook_idempotency.observability.logging import event_context, get_logger
from webhook_idempotency.observability.metrics import (
    record_execution,
    record_execution_time,
    record_fail_open_claim,
)
from webhook_idempotency.storage.base import StorageAdapter

logger = get_logger(__name__)

LOCK_NOT_ACQUIRED = "could not acquire processing lock"
STORE_UNAVAILABLE = "idempotency store unavailable"

Operation = Callable[[], Awaitable[Any]]
AlertHook = Callable[[FailureEvent], Awaitable[None]]


class _Event:
    """Identity of the inbound event being processed."""

    def __init__(
        self,
        key: str,
        provider: str,
        transaction_id: str,
        context: str | None,
    ) -> None:
        self.key = key
        self.provider = provider
        self.transaction_id = transaction_id
        self.context = context

    @property
    def provider_label(self) -> str:
        return self.key.split(":", 1)[0]


class IdempotencyManager:
    """Runs operations at most once per idempotency key.

    Create one instance at process start and share it by reference.

    Attributes:
        storage: Shared store
        config: Configuration object
        ledger: Status ledger
        locks: Lock manager
        retry: Retry/backoff controller
        alert_hook: Optional coroutine receiving FailureEvents
    """

    def __init__(
        self,
        storage: StorageAdapter,
        config: IdempotencyConfig | None = None,
        alert_hook: AlertHook | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the manager.

        Args:
            storage: Shared store reachable by every worker
            config: Configuration (defaults if not provided)
            alert_hook: Called with a FailureEvent for every failed outcome
            clock: Wall clock in epoch seconds, used for record timestamps
            sleep: Coroutine used for backoff delays
        """
        self.storage = storage
        self.config = config or IdempotencyConfig()
        self.ledger = StatusLedger(storage, self.config, clock=clock)
        self.locks = LockManager(storage, self.config)
        self.retry = RetryController(self.config, sleep=sleep)
        self.alert_hook = alert_hook

    async def execute_with_idempotency(
        self,
        provider: str,
        transaction_id: str,
        operation: Operation,
        context: str | None = None,
        timeout: float | None = None,
    ) -> ExecutionResult:
        """Run ``operation`` unless this event was already handled.

        Args:
            provider: Upstream sender identifier
            transaction_id: The sender's transaction or message id
            operation: Zero-argument callable returning an awaitable
            context: Optional use-case tag
            timeout: Deadline in seconds for the backoff phase

        Returns:
            ExecutionResult. Infrastructure and operation errors are reported
            through it rather than raised.

        Raises:
            ValueError: If provider, transaction_id or context is invalid.
        """
        key = generate_key(provider, transaction_id, context)
        event = _Event(key, provider, transaction_id, context)

        with event_context(key, provider, transaction_id):
            check = await self.ledger.check_duplicate(key)
            outcome = await self._settle(event, check, operation)
            if outcome is not None:
                return outcome

            async for attempt in self.retry.attempts(timeout):
                check = await self.ledger.check_duplicate(key)
                logger.debug("retry.poll", attempt=attempt, status=check.status.value)
                outcome = await self._settle(event, check, operation)
                if outcome is not None:
                    return outcome

            logger.warning("execution.retry_exhausted", max_retries=self.config.max_retries)
            return await self._fail_transient(event, LOCK_NOT_ACQUIRED, "exhausted")

    async def close(self) -> None:
        await self.storage.close()

    async def _settle(
        self,
        event: _Event,
        check: DuplicateCheck,
        operation: Operation,
    ) -> ExecutionResult | None:
        """Final result for the observed state, or None while another worker runs."""
        if self.ledger.is_reclaimable(check):
            return await self._claim(event, operation)
        if check.status.is_terminal:
            return self._duplicate(event, check)
        return None

    async def _claim(self, event: _Event, operation: Operation) -> ExecutionResult | None:
        """Take the lock and run the operation, or return None on contention."""
        lock = await self.locks.acquire(event.key)
        if lock.outcome is LockOutcome.UNAVAILABLE:
            return await self._fail_transient(event, STORE_UNAVAILABLE, "unavailable")
        if not lock.acquired or lock.token is None:
            return None

        token = lock.token
        try:
            # The previous holder may have settled between our read and the acquire
            current = await self.ledger.check_duplicate(event.key)
            if not self.ledger.is_reclaimable(current):
                if current.status.is_terminal:
                    return self._duplicate(event, current)
                return None

            if not current.store_available:
                logger.warning("execution.claimed_without_ledger_read")
                record_fail_open_claim(event.provider_label)
            elif current.status is not OperationStatus.PENDING:
                logger.info(
                    "execution.reclaimed",
                    previous_status=current.status.value,
                    previous_attempts=current.record.attempts if current.record else None,
                )

            try:
                processing = await self.ledger.mark_processing(
                    event.key, owner=token, previous=current.record
                )
            except StorageError as e:
                logger.error("ledger.processing_write_failed_closed", error=e.message)
                return await self._fail_transient(event, STORE_UNAVAILABLE, "unavailable")

            return await self._run(event, operation, token, processing)
        finally:
            await self.locks.release(event.key, token)

    async def _run(
        self,
        event: _Event,
        operation: Operation,
        token: str,
        processing: OperationRecord,
    ) -> ExecutionResult:
        started = time.perf_counter()
        try:
            value = await operation()
        except Exception as e:
            record_execution_time(time.perf_counter() - started)
            error = str(e) or type(e).__name__
            logger.warning(
                "execution.operation_failed",
                error=error,
                error_type=type(e).__name__,
            )
            superseded = await self._store_outcome(
                event,
                OperationStatus.FAILED,
                self.ledger.mark_failed(event.key, error, owner=token, previous=processing),
            )
            if superseded is not None:
                return superseded
            record_execution("failed", event.provider_label)
            await self._alert(event, error, retriable=False)
            return ExecutionResult(status=OperationStatus.FAILED, key=event.key, error=error)

        elapsed = time.perf_counter() - started
        record_execution_time(elapsed)
        payload = self._normalize(event, value)

        superseded = await self._store_outcome(
            event,
            OperationStatus.COMPLETED,
            self.ledger.mark_completed(event.key, payload, owner=token, previous=processing),
        )
        if superseded is not None:
            return superseded

        record_execution("completed", event.provider_label)
        logger.info("execution.completed", elapsed_seconds=round(elapsed, 4))
        return ExecutionResult(status=OperationStatus.COMPLETED, key=event.key, result=payload)

    async def _store_outcome(
        self,
        event: _Event,
        status: OperationStatus,
        write: Awaitable[OperationRecord],
    ) -> ExecutionResult | None:
        """Persist a terminal record.

        Returns the stored outcome as a duplicate when another worker
        reclaimed the key and already settled it, otherwise None. A failed
        write is logged and the caller's own outcome stands.
        """
        try:
            await write
        except StaleOwnerError:
            current = await self.ledger.check_duplicate(event.key)
            if current.status.is_terminal:
                return self._duplicate(event, current)
            logger.warning("execution.superseded_while_running", status=status.value)
        except StorageError as e:
            logger.error("ledger.terminal_write_failed", status=status.value, error=e.message)
        return None

    def _normalize(self, event: _Event, value: Any) -> Any:
        """Convert a result to the JSON form duplicates will receive."""
        try:
            return json.loads(to_json(value))
        except PydanticSerializationError as e:
            logger.warning("execution.result_not_serializable", error=str(e))
            return repr(value)

    def _duplicate(self, event: _Event, check: DuplicateCheck) -> ExecutionResult:
        record_execution("duplicate", event.provider_label)
        logger.info("execution.duplicate", status=check.status.value)
        return ExecutionResult(
            status=check.status,
            key=event.key,
            result=check.result,
            error=check.error,
            is_duplicate=True,
        )

    async def _fail_transient(self, event: _Event, reason: str, outcome: str) -> ExecutionResult:
        record_execution(outcome, event.provider_label)
        await self._alert(event, reason, retriable=True)
        return ExecutionResult(
            status=OperationStatus.FAILED,
            key=event.key,
            error=reason,
            retriable=True,
        )

    async def _alert(self, event: _Event, error: str, retriable: bool) -> None:
        if self.alert_hook is None:
            return
        failure = FailureEvent(
            key=event.key,
            provider=event.provider,
            transaction_id=event.transaction_id,
            context=event.context,
            error=error,
            retriable=retriable,
        )
        try:
            await self.alert_hook(failure)
        except Exception as e:
            logger.error(
                "alert.delivery_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
