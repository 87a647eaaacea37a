"""Unit tests for logging helpers."""

import structlog
from structlog.testing import capture_logs

from webhook_idempotency.observability.logging import event_context, get_logger


def test_event_context_binds_and_unbinds():
    with event_context("sms:default:abc", provider="sms", transaction_id="m1"):
        assert structlog.contextvars.get_contextvars() == {
            "key": "sms:default:abc",
            "provider": "sms",
            "transaction_id": "m1",
        }

    assert structlog.contextvars.get_contextvars() == {}


def test_get_logger_tags_module_name():
    with capture_logs() as logs:
        get_logger("webhook_idempotency.core.locks").info("lock.acquired", key="k")

    assert logs == [
        {
            "event": "lock.acquired",
            "key": "k",
            "logger": "webhook_idempotency.core.locks",
            "log_level": "info",
        }
    ]
