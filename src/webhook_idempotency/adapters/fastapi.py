"""FastAPI/Starlette helpers for webhook endpoints.

Webhook handlers run their side effects through the shared
IdempotencyManager and turn the ExecutionResult into an HTTP response the
upstream sender understands:

    COMPLETED             200  result JSON
    FAILED (permanent)    422  {"error": ...}   sender should stop redelivering
    FAILED (retriable)    503  {"error": ...}   with Retry-After

Every response carries ``Idempotency-Key`` and ``Idempotent-Replay``.

Examples:
    FastAPI integration::

        from fastapi import Depends, FastAPI
        from webhook_idempotency.adapters.fastapi import get_manager, install, to_response

        app = FastAPI()
        install(app, IdempotencyManager(storage, config))

        @app.post("/webhooks/venmo")
        async def venmo_webhook(event: VenmoEvent, manager=Depends(get_manager)):
            result = await manager.execute_with_idempotency(
                "venmo", event.id, lambda: credit(event), context="payment"
            )
            return to_response(result)
"""

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from webhook_idempotency.core.manager import IdempotencyManager
from webhook_idempotency.models import ExecutionResult
from webhook_idempotency.utils.headers import add_replay_headers, add_retry_after, get_header_value

DEFAULT_RETRY_AFTER_SECONDS = 5

_STATE_ATTRIBUTE = "idempotency_manager"


def install(app: FastAPI, manager: IdempotencyManager) -> None:
    """Attach the process-wide manager to ``app`` for ``get_manager``."""
    setattr(app.state, _STATE_ATTRIBUTE, manager)


def get_manager(request: Request) -> IdempotencyManager:
    """FastAPI dependency returning the manager attached by ``install``.

    Raises:
        RuntimeError: If ``install`` was never called for this app.
    """
    manager = getattr(request.app.state, _STATE_ATTRIBUTE, None)
    if manager is None:
        raise RuntimeError("IdempotencyManager not installed; call install(app, manager)")
    return manager


def header_transaction_id(request: Request, header_name: str) -> str:
    """Read the sender's message id from a request header.

    Raises:
        HTTPException: 400 if the header is missing or blank.
    """
    value = get_header_value(dict(request.headers), header_name)
    if value is None or not value.strip():
        raise HTTPException(status_code=400, detail=f"Missing {header_name} header")
    return value.strip()


def to_response(
    result: ExecutionResult,
    retry_after_seconds: int = DEFAULT_RETRY_AFTER_SECONDS,
) -> JSONResponse:
    """Convert an ExecutionResult into a JSONResponse.

    Args:
        result: Outcome returned by execute_with_idempotency
        retry_after_seconds: Redelivery hint for retriable failures

    Returns:
        JSONResponse with status, body and idempotency headers
    """
    headers = add_replay_headers({}, result)

    if result.succeeded:
        return JSONResponse(status_code=200, content=result.result, headers=headers)

    if result.retriable:
        return JSONResponse(
            status_code=503,
            content={"error": result.error, "retriable": True},
            headers=add_retry_after(headers, retry_after_seconds),
        )

    return JSONResponse(
        status_code=422,
        content={"error": result.error, "retriable": False},
        headers=headers,
    )
