"""Utility modules for the webhook idempotency layer."""

from .headers import (
    IDEMPOTENCY_KEY_HEADER,
    REPLAY_HEADER,
    RETRY_AFTER_HEADER,
    add_replay_headers,
    add_retry_after,
    get_header_value,
)

__all__ = [
    "add_replay_headers",
    "add_retry_after",
    "get_header_value",
    "IDEMPOTENCY_KEY_HEADER",
    "REPLAY_HEADER",
    "RETRY_AFTER_HEADER",
]
