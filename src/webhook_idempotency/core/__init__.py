"""Core logic for idempotent webhook execution.

This package contains the components coordinating through the shared store:
- Manager: check -> lock -> mark PROCESSING -> run -> mark terminal -> unlock
- Ledger: lifecycle records (PENDING -> PROCESSING -> COMPLETED/FAILED)
- Locks: per-key processing locks with owner tokens
- Retry: exponential backoff for contended callers
- Cleanup: repair of keys written without an expiry
- Reporting: per-status counts for dashboards
"""

from webhook_idempotency.core.ledger import StatusLedger
from webhook_idempotency.core.locks import LockManager
from webhook_idempotency.core.manager import (
    LOCK_NOT_ACQUIRED,
    STORE_UNAVAILABLE,
    IdempotencyManager,
)
from webhook_idempotency.core.reporting import MetricsReporter
from webhook_idempotency.core.retry import RetryController

__all__ = [
    "IdempotencyManager",
    "LockManager",
    "MetricsReporter",
    "RetryController",
    "StatusLedger",
    "LOCK_NOT_ACQUIRED",
    "STORE_UNAVAILABLE",
]
