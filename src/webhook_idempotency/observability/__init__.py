"""Observability utilities for the webhook idempotency layer.

This package provides monitoring and debugging capabilities:
- Prometheus metrics for execution outcomes, contention and store health
- Structured logging with contextual information
"""

from webhook_idempotency.observability.logging import (
    configure_logging,
    event_context,
    get_logger,
)
from webhook_idempotency.observability.metrics import (
    record_execution,
    record_execution_time,
    record_ledger_counts,
    record_lock_contention,
    record_store_error,
    record_sweep,
)

__all__ = [
    "configure_logging",
    "event_context",
    "get_logger",
    "record_execution",
    "record_execution_time",
    "record_ledger_counts",
    "record_lock_contention",
    "record_store_error",
    "record_sweep",
]
