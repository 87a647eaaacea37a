"""Header helpers for webhook responses built from execution results.

This module provides functions for:
- Adding idempotency metadata to responses (key, replay flag)
- Advertising when a sender should redeliver
- Case-insensitive header lookup on inbound requests
"""

from webhook_idempotency.models import ExecutionResult

IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"
REPLAY_HEADER = "Idempotent-Replay"
RETRY_AFTER_HEADER = "Retry-After"


def add_replay_headers(
    headers: dict[str, str],
    result: ExecutionResult,
) -> dict[str, str]:
    """Add idempotency-specific headers to a response.

    Args:
        headers: Existing response headers
        result: Outcome of the execution

    Returns:
        New headers dict with replay metadata added

    Example:
        >>> add_replay_headers({"Content-Type": "application/json"}, duplicate_result)
        {
            'Content-Type': 'application/json',
            'Idempotent-Replay': 'true',
            'Idempotency-Key': 'venmo:default:9c1d...'
        }
    """
    merged = headers.copy()
    merged[REPLAY_HEADER] = "true" if result.is_duplicate else "false"
    merged[IDEMPOTENCY_KEY_HEADER] = result.key
    return merged


def add_retry_after(headers: dict[str, str], seconds: int) -> dict[str, str]:
    """Return a copy of ``headers`` advertising a redelivery delay."""
    merged = headers.copy()
    merged[RETRY_AFTER_HEADER] = str(max(1, seconds))
    return merged


def get_header_value(
    headers: dict[str, str],
    header_name: str,
    default: str | None = None,
) -> str | None:
    """Get header value with case-insensitive lookup.

    Example:
        >>> get_header_value({"X-Message-Id": "m1"}, "x-message-id")
        'm1'
        >>> get_header_value({}, "missing", "default")
        'default'
    """
    header_name_lower = header_name.lower()

    for key, value in headers.items():
        if key.lower() == header_name_lower:
            return value

    return default
