"""Processing locks held in the shared store.

Each idempotency key has at most one lock at ``<prefix>:<key>:lock``. The
lock value is a random owner token generated per acquisition, so release is
a compare-and-delete: a slow worker whose lock already expired can never
delete the newer lock of another worker.

Acquisition never raises. Its outcome is typed:

    ACQUIRED     this caller owns the key until release or expiry
    CONTENDED    another owner holds the lock
    UNAVAILABLE  the store write failed; callers must not proceed

Examples:
    Holding a lock around critical work::

        locks = LockManager(storage, config)
        result = await locks.acquire(key)
        if result.acquired:
            try:
                ...
            finally:
                await locks.release(key, result.token)
"""

import uuid

from webhook_idempotency.config import IdempotencyConfig
from webhook_idempotency.exceptions import StorageError
from webhook_idempotency.keys import lock_key
from webhook_idempotency.models import LockOutcome, LockResult
from webhook_idempotency.observability.logging import get_logger
from webhook_idempotency.observability.metrics import record_lock_contention
from webhook_idempotency.storage.base import StorageAdapter

logger = get_logger(__name__)


class LockManager:
    """Acquires and releases per-key processing locks.

    Attributes:
        storage: Shared store holding lock keys
        config: Configuration providing the key prefix and lock TTL
    """

    def __init__(self, storage: StorageAdapter, config: IdempotencyConfig) -> None:
        self.storage = storage
        self.config = config

    def _lock_key(self, key: str) -> str:
        return lock_key(self.config.key_prefix, key)

    async def acquire(self, key: str, ttl_seconds: int | None = None) -> LockResult:
        """Try to take the lock for ``key``.

        Args:
            key: Idempotency key
            ttl_seconds: Lock lifetime; defaults to config.lock_ttl_seconds

        Returns:
            LockResult with the owner token when acquired
        """
        ttl = ttl_seconds if ttl_seconds is not None else self.config.lock_ttl_seconds
        token = str(uuid.uuid4())

        try:
            created = await self.storage.set_if_absent(self._lock_key(key), token, ttl)
        except StorageError as e:
            logger.error(
                "lock.acquire_failed_closed",
                key=key,
                error=e.message,
            )
            return LockResult(outcome=LockOutcome.UNAVAILABLE)

        if not created:
            record_lock_contention()
            logger.debug("lock.contended", key=key)
            return LockResult(outcome=LockOutcome.CONTENDED)

        logger.debug("lock.acquired", key=key, ttl_seconds=ttl)
        return LockResult(outcome=LockOutcome.ACQUIRED, token=token)

    async def release(self, key: str, token: str) -> bool:
        """Release the lock for ``key`` if ``token`` still owns it.

        Store failures are logged rather than raised: the lock then expires
        on its own after its TTL.

        Returns:
            True if the lock was deleted, False if it expired, was taken over,
            or the store was unreachable.
        """
        try:
            released = await self.storage.compare_and_delete(self._lock_key(key), token)
        except StorageError as e:
            logger.error("lock.release_failed", key=key, error=e.message)
            return False

        if not released:
            logger.warning("lock.release_not_owner", key=key)
        return released

    async def is_held(self, key: str) -> bool:
        """Whether any worker currently holds the lock for ``key``."""
        return await self.storage.get(self._lock_key(key)) is not None
