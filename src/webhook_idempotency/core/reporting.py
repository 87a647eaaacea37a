"""Per-status counts of ledger records for dashboards.

Snapshots are taken from a bounded scan so that a large ledger never turns
a metrics request into a full keyspace walk. When the cap is hit the
snapshot is marked ``truncated`` and its counts describe a sample.
"""

from webhook_idempotency.config import IdempotencyConfig
from webhook_idempotency.core.ledger import parse_record
from webhook_idempotency.exceptions import MalformedRecordError
from webhook_idempotency.keys import is_lock_key, provider_pattern
from webhook_idempotency.models import MetricsSnapshot, OperationStatus
from webhook_idempotency.observability.logging import get_logger
from webhook_idempotency.observability.metrics import record_ledger_counts
from webhook_idempotency.storage.base import StorageAdapter

logger = get_logger(__name__)

MALFORMED = "malformed"


class MetricsReporter:
    """Tallies ledger records per lifecycle state."""

    def __init__(self, storage: StorageAdapter, config: IdempotencyConfig) -> None:
        self.storage = storage
        self.config = config

    async def snapshot(self, provider: str | None = None, limit: int | None = None) -> MetricsSnapshot:
        """Count records per status.

        Args:
            provider: Only count keys of this provider
            limit: Maximum keys to scan; capped at config.metrics_scan_limit

        Returns:
            MetricsSnapshot with counts for PROCESSING, COMPLETED, FAILED and
            malformed records

        Raises:
            StorageError: If the store cannot be scanned.
        """
        cap = min(limit or self.config.metrics_scan_limit, self.config.metrics_scan_limit)
        prefix_len = len(self.config.key_prefix) + 1

        # One extra key tells a full scan apart from a capped one
        keys = await self.storage.scan(provider_pattern(self.config.key_prefix, provider), cap + 1)
        truncated = len(keys) > cap
        ledger_keys = [key for key in keys[:cap] if not is_lock_key(key)]

        counts = {
            OperationStatus.PROCESSING.value: 0,
            OperationStatus.COMPLETED.value: 0,
            OperationStatus.FAILED.value: 0,
            MALFORMED: 0,
        }
        for store_key in ledger_keys:
            raw = await self.storage.get(store_key)
            if raw is None:
                continue
            try:
                record = parse_record(store_key[prefix_len:], raw)
            except MalformedRecordError:
                counts[MALFORMED] += 1
                continue
            counts[record.status.value] += 1

        record_ledger_counts(counts)
        logger.debug(
            "metrics.snapshot",
            provider=provider,
            scanned=len(ledger_keys),
            truncated=truncated,
        )
        return MetricsSnapshot(
            counts=counts,
            scanned=len(ledger_keys),
            truncated=truncated,
            provider=provider,
        )
