"""Demo FastAPI application with idempotent webhook handlers.

This application demonstrates duplicate-safe payment webhooks and SMS
commands. Run with: python demo_app.py
Then redeliver the same event twice:

    curl -X POST localhost:8000/webhooks/venmo \\
        -H 'content-type: application/json' \\
        -d '{"id": "txn_1", "username": "alice", "amount": 25.0}'
"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime

import uvicorn
from fastapi import Depends, FastAPI, Request
from pydantic import BaseModel

from webhook_idempotency.adapters.fastapi import (
    get_manager,
    header_transaction_id,
    install,
    to_response,
)
from webhook_idempotency.config import IdempotencyConfig
from webhook_idempotency.core.cleanup import start_cleanup_task, stop_cleanup_task
from webhook_idempotency.core.manager import IdempotencyManager
from webhook_idempotency.core.reporting import MetricsReporter
from webhook_idempotency.models import FailureEvent
from webhook_idempotency.observability.logging import configure_logging, get_logger
from webhook_idempotency.storage import build_storage

configure_logging(level="INFO", json_output=False)
logger = get_logger("demo_app")

config = IdempotencyConfig.from_env()
storage = build_storage(config)

# Account balances of the demo; a real handler would call the ledger service
balances: dict[str, float] = {}


async def alert(event: FailureEvent) -> None:
    logger.warning("demo.alert", **event.model_dump(mode="json"))


manager = IdempotencyManager(storage, config, alert_hook=alert)
reporter = MetricsReporter(storage, config)


@asynccontextmanager
async def lifespan(app: FastAPI):
    task = await start_cleanup_task(storage, config)
    yield
    await stop_cleanup_task(task)
    await manager.close()


app = FastAPI(
    title="Webhook Idempotency Demo",
    description="Duplicate-safe webhook handlers",
    version="0.1.0",
    lifespan=lifespan,
)
install(app, manager)


class VenmoPayment(BaseModel):
    id: str
    username: str
    amount: float


class SmsCommand(BaseModel):
    sender: str
    body: str


@app.post("/webhooks/venmo")
async def venmo_webhook(payment: VenmoPayment, manager: IdempotencyManager = Depends(get_manager)):
    """Credit a payment exactly once per Venmo transaction id."""

    async def credit() -> dict:
        if payment.amount <= 0:
            raise ValueError("Invalid payment amount")
        balances[payment.username] = balances.get(payment.username, 0.0) + payment.amount
        return {
            "credited": payment.amount,
            "balance": balances[payment.username],
            "processed_at": datetime.now(UTC).isoformat(),
        }

    result = await manager.execute_with_idempotency(
        "venmo", payment.id, credit, context="payment"
    )
    return to_response(result)


@app.post("/webhooks/sms")
async def sms_webhook(
    command: SmsCommand,
    request: Request,
    manager: IdempotencyManager = Depends(get_manager),
):
    """Answer an SMS command once per provider message id."""
    message_id = header_transaction_id(request, "X-Message-Id")

    async def respond() -> dict:
        return {"response": "ok", "to": command.sender, "command": command.body.strip().upper()}

    result = await manager.execute_with_idempotency("sms", message_id, respond, context="sms")
    return to_response(result)


@app.get("/metrics/ledger")
async def ledger_metrics(provider: str | None = None):
    """Per-status record counts from a bounded scan."""
    snapshot = await reporter.snapshot(provider=provider)
    return snapshot.model_dump()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
