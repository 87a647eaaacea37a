"""Framework adapters for the webhook idempotency layer.

This package turns execution results into framework responses:

- fastapi.py: FastAPI/Starlette webhook helpers

The core manager is framework-agnostic; adapters only translate its
ExecutionResult for the web layer.
"""

from webhook_idempotency.adapters.fastapi import get_manager, install, to_response

__all__ = ["get_manager", "install", "to_response"]
