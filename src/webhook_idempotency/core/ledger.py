"""Status ledger: persisted lifecycle records for idempotency keys.

This module owns the record stored at ``<prefix>:<key>`` and the state
machine it follows:

    PENDING (no record) -> PROCESSING -> COMPLETED | FAILED

- PENDING -> PROCESSING only by the lock holder
- PROCESSING -> COMPLETED/FAILED only by the same holder. Terminal writes
  replace the stored PROCESSING record atomically and are rejected with
  StaleOwnerError once another worker has reclaimed the key
- TTL expiry returns any state to PENDING
- An orphaned PROCESSING record (lock gone, age >= lock TTL) may be claimed
  again by a new lock holder

Reads fail open: when the store cannot be read the key is reported as
PENDING so that an outage does not block every webhook. This trades
consistency for availability and can cause a duplicate execution while the
store is degraded. Writes raise StorageError and the execution wrapper
decides how to react.

Examples:
    Recording a successful run::

        ledger = StatusLedger(storage, config)
        processing = await ledger.mark_processing(key, owner=token)
        await ledger.mark_completed(key, {"response": "ok"}, owner=token, previous=processing)

        check = await ledger.check_duplicate(key)
        assert check.status == OperationStatus.COMPLETED
"""

import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from webhook_idempotency.config import IdempotencyConfig
from webhook_idempotency.exceptions import MalformedRecordError, StaleOwnerError, StorageError
from webhook_idempotency.keys import ledger_key
from webhook_idempotency.models import DuplicateCheck, OperationRecord, OperationStatus
from webhook_idempotency.observability.logging import get_logger
from webhook_idempotency.storage.base import StorageAdapter

logger = get_logger(__name__)


def parse_record(key: str, raw: str) -> OperationRecord:
    """Deserialize a stored record.

    Raises:
        MalformedRecordError: If ``raw`` is not a valid record, or claims PENDING.
    """
    try:
        record = OperationRecord.model_validate_json(raw)
    except ValidationError as e:
        raise MalformedRecordError(f"Malformed ledger record for {key}: {e}", key=key) from e
    if record.status is OperationStatus.PENDING:
        raise MalformedRecordError(f"Ledger record for {key} stores PENDING", key=key)
    return record


class StatusLedger:
    """Reads and writes lifecycle records in the shared store.

    Attributes:
        storage: Shared store
        config: Configuration providing prefix and TTLs
    """

    def __init__(
        self,
        storage: StorageAdapter,
        config: IdempotencyConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage = storage
        self.config = config
        self._clock = clock

    def now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), UTC)

    def _ledger_key(self, key: str) -> str:
        return ledger_key(self.config.key_prefix, key)

    async def check_duplicate(self, key: str) -> DuplicateCheck:
        """Look up the current state of ``key``.

        Never raises for store or data problems: an unreadable store or a
        malformed record both yield PENDING.

        Args:
            key: Idempotency key

        Returns:
            DuplicateCheck describing the stored state
        """
        try:
            raw = await self.storage.get(self._ledger_key(key))
        except StorageError as e:
            logger.warning(
                "ledger.read_failed_open",
                key=key,
                error=e.message,
            )
            return DuplicateCheck.pending(store_available=False)

        if raw is None:
            return DuplicateCheck.pending()

        try:
            record = parse_record(key, raw)
        except MalformedRecordError as e:
            logger.error("ledger.malformed_record", key=key, error=e.message)
            return DuplicateCheck.pending()

        return DuplicateCheck.from_record(record)

    def is_reclaimable(self, check: DuplicateCheck) -> bool:
        """Whether a caller may claim ``key`` given its last observed state.

        - PENDING: always
        - PROCESSING: when orphan reclaim is enabled and the record has not
          changed for at least the lock TTL
        - FAILED: only when retry_failed_after_seconds is configured and has
          elapsed
        - COMPLETED: never
        """
        if check.status is OperationStatus.PENDING:
            return True
        record = check.record
        if record is None:
            return False

        age = record.age_seconds(self.now())
        if check.status is OperationStatus.PROCESSING:
            return self.config.reclaim_orphaned and age >= self.config.lock_ttl_seconds
        if check.status is OperationStatus.FAILED:
            retry_after = self.config.retry_failed_after_seconds
            return retry_after is not None and age >= retry_after
        return False

    async def _write(self, key: str, record: OperationRecord) -> OperationRecord:
        await self.storage.set(
            self._ledger_key(key),
            record.model_dump_json(),
            self.config.default_ttl_seconds,
        )
        logger.debug(
            "ledger.transition",
            key=key,
            status=record.status.value,
            attempts=record.attempts,
        )
        return record

    async def mark_processing(
        self,
        key: str,
        owner: str | None = None,
        previous: OperationRecord | None = None,
    ) -> OperationRecord:
        """Write a PROCESSING record for ``key``.

        Args:
            key: Idempotency key
            owner: Lock token of the caller
            previous: Record being reclaimed, if any. Its creation time is
                kept and its attempt count incremented.

        Raises:
            StorageError: If the write fails.
        """
        now = self.now()
        record = OperationRecord(
            status=OperationStatus.PROCESSING,
            created_at=previous.created_at if previous else now,
            updated_at=now,
            attempts=previous.attempts + 1 if previous else 1,
            owner=owner,
        )
        return await self._write(key, record)

    async def mark_completed(
        self,
        key: str,
        result: Any,
        owner: str | None = None,
        previous: OperationRecord | None = None,
    ) -> OperationRecord:
        """Write a COMPLETED record; the TTL restarts at the full retention window.

        When ``previous`` is the PROCESSING record returned by
        ``mark_processing``, the write only applies if that record is still
        the stored one.

        Raises:
            StaleOwnerError: If another worker has replaced ``previous``.
            StorageError: If the write fails.
        """
        record = self._terminal(OperationStatus.COMPLETED, owner, previous, result=result)
        return await self._finish(key, record, previous)

    async def mark_failed(
        self,
        key: str,
        error: str,
        owner: str | None = None,
        previous: OperationRecord | None = None,
    ) -> OperationRecord:
        """Write a FAILED record; the TTL restarts at the full retention window.

        Raises:
            StaleOwnerError: If another worker has replaced ``previous``.
            StorageError: If the write fails.
        """
        record = self._terminal(OperationStatus.FAILED, owner, previous, error=error)
        return await self._finish(key, record, previous)

    async def _finish(
        self,
        key: str,
        record: OperationRecord,
        previous: OperationRecord | None,
    ) -> OperationRecord:
        if previous is None or previous.status is not OperationStatus.PROCESSING:
            return await self._write(key, record)

        replaced = await self.storage.compare_and_set(
            self._ledger_key(key),
            previous.model_dump_json(),
            record.model_dump_json(),
            self.config.default_ttl_seconds,
        )
        if not replaced:
            logger.warning(
                "ledger.stale_owner",
                key=key,
                status=record.status.value,
                owner=record.owner,
            )
            raise StaleOwnerError(f"Ledger record for {key} is owned by another worker", key=key)
        logger.debug(
            "ledger.transition",
            key=key,
            status=record.status.value,
            attempts=record.attempts,
        )
        return record

    def _terminal(
        self,
        status: OperationStatus,
        owner: str | None,
        previous: OperationRecord | None,
        result: Any = None,
        error: str | None = None,
    ) -> OperationRecord:
        now = self.now()
        return OperationRecord(
            status=status,
            result=result,
            error=error,
            created_at=previous.created_at if previous else now,
            updated_at=now,
            attempts=previous.attempts if previous else 1,
            owner=owner,
        )
