"""Background sweep repairing ledger and lock keys that lack an expiry.

Every key this package writes carries a TTL, but entries can still end up
without one: a record inserted by hand while debugging, a bug in an older
release, or a backend restored from a snapshot without expiries. Such keys
would pin an event as a duplicate forever, or block it behind a lock that
never expires.

The sweep:
1. Scans up to ``sweep_scan_limit`` keys under ``<prefix>:*``
2. Gives ledger keys with no expiry the default retention TTL
3. Gives lock keys with no expiry the lock TTL
4. Reports metrics and logs for observability

Examples:
    Start the sweep in the background::

        from webhook_idempotency.core.cleanup import start_cleanup_task, stop_cleanup_task

        task = await start_cleanup_task(storage, config)

        # Later, when shutting down
        await stop_cleanup_task(task)

    Integrate with FastAPI lifespan::

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            task = await start_cleanup_task(storage, config)
            yield
            await stop_cleanup_task(task)
"""

import asyncio
from dataclasses import dataclass

from webhook_idempotency.config import IdempotencyConfig
from webhook_idempotency.keys import is_lock_key, provider_pattern
from webhook_idempotency.models import SweepReport
from webhook_idempotency.observability.logging import get_logger
from webhook_idempotency.observability.metrics import record_sweep
from webhook_idempotency.storage.base import StorageAdapter

logger = get_logger(__name__)


async def sweep_missing_ttl(storage: StorageAdapter, config: IdempotencyConfig) -> SweepReport:
    """Apply the configured TTL to every scanned key that has none.

    Args:
        storage: Shared store
        config: Configuration providing prefix, TTLs and the scan cap

    Returns:
        SweepReport with the number of keys scanned and repaired

    Raises:
        StorageError: If the store cannot be scanned or updated.
    """
    keys = await storage.scan(provider_pattern(config.key_prefix), config.sweep_scan_limit)

    repaired = 0
    for key in keys:
        if await storage.ttl(key) is not None:
            continue
        ttl = config.lock_ttl_seconds if is_lock_key(key) else config.default_ttl_seconds
        # expire() is False when the key vanished since the scan
        if await storage.expire(key, ttl):
            repaired += 1
            logger.info("cleanup.ttl_repaired", store_key=key, ttl_seconds=ttl)

    return SweepReport(scanned=len(keys), repaired=repaired)


async def cleanup_loop(
    storage: StorageAdapter,
    config: IdempotencyConfig,
    stop_event: asyncio.Event,
) -> None:
    """Sweep every ``config.cleanup_interval_seconds`` until ``stop_event`` is set.

    A failed sweep is logged and retried on the next tick.
    """
    logger.info("cleanup.started", interval_seconds=config.cleanup_interval_seconds)

    while not stop_event.is_set():
        try:
            report = await sweep_missing_ttl(storage, config)
        except Exception as e:
            logger.error("cleanup.failed", error=str(e), error_type=type(e).__name__)
        else:
            record_sweep(report.repaired)
            log = logger.info if report.repaired else logger.debug
            log("cleanup.completed", keys_scanned=report.scanned, keys_repaired=report.repaired)

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=config.cleanup_interval_seconds)
        except asyncio.TimeoutError:
            pass

    logger.info("cleanup.stopped")


@dataclass
class CleanupTask:
    """Handle on a running cleanup loop."""

    task: asyncio.Task[None]
    stop_event: asyncio.Event

    def done(self) -> bool:
        return self.task.done()


async def start_cleanup_task(storage: StorageAdapter, config: IdempotencyConfig) -> CleanupTask:
    """Run ``cleanup_loop`` in the background; pass the handle to ``stop_cleanup_task``."""
    stop_event = asyncio.Event()
    task = asyncio.create_task(cleanup_loop(storage, config, stop_event))
    return CleanupTask(task=task, stop_event=stop_event)


async def stop_cleanup_task(handle: CleanupTask, timeout: float = 5.0) -> None:
    """Signal the loop to stop, cancelling it if it has not exited after ``timeout``."""
    handle.stop_event.set()

    try:
        await asyncio.wait_for(handle.task, timeout=timeout)
    except asyncio.TimeoutError:
        # wait_for already cancelled the task
        logger.warning("cleanup.stop_timeout", timeout_seconds=timeout)
