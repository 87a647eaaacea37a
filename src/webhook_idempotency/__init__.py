"""
Exactly-once effects for externally triggered operations.

This package deduplicates webhook, SMS and email-derived events that
upstream senders may deliver more than once, coordinating concurrent
workers through a shared key-value store.
"""

from webhook_idempotency.config import IdempotencyConfig
from webhook_idempotency.core.manager import IdempotencyManager
from webhook_idempotency.keys import generate_key
from webhook_idempotency.models import ExecutionResult, FailureEvent, OperationStatus

__version__ = "0.1.0"

__all__ = [
    "ExecutionResult",
    "FailureEvent",
    "IdempotencyConfig",
    "IdempotencyManager",
    "OperationStatus",
    "generate_key",
    "__version__",
]
