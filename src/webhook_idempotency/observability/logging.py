"""Structured logging for the webhook idempotency layer.

Log lines are structlog event dicts with dotted event names
(``execution.completed``, ``lock.contended``, ``ledger.read_failed_open``).
While an event is being handled its identity is bound through
``structlog.contextvars``, so lines emitted by the ledger, the lock manager
and the storage adapters all carry the same ``key``, ``provider`` and
``transaction_id`` without passing them around.

Examples:
    Configure once at startup::

        from webhook_idempotency.observability.logging import configure_logging

        configure_logging(level="INFO", json_output=True)

    Bind an event for the duration of its handling::

        with event_context(key, provider="venmo", transaction_id="txn_1"):
            logger.info("execution.completed", elapsed_seconds=0.012)

    Output (JSON)::

        {
            "event": "execution.completed",
            "elapsed_seconds": 0.012,
            "logger": "webhook_idempotency.core.manager",
            "key": "venmo:default:9c1d...",
            "provider": "venmo",
            "transaction_id": "txn_1",
            "level": "info",
            "timestamp": "2024-01-01T00:00:00.000000Z"
        }
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Emit JSON lines when True, colored console output otherwise
    """
    numeric_level = getattr(logging, level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Logger that tags every line with the emitting module's ``name``."""
    return structlog.get_logger(name).bind(logger=name)


@contextmanager
def event_context(key: str, provider: str, transaction_id: str) -> Iterator[None]:
    """Bind an inbound event's identity to all log lines in the current task."""
    with structlog.contextvars.bound_contextvars(
        key=key,
        provider=provider,
        transaction_id=transaction_id,
    ):
        yield
