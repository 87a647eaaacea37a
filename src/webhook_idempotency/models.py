"""Core type definitions and models for the webhook idempotency layer.

This module provides the data structures shared by the ledger, the lock
manager and the execution wrapper: lifecycle states, the persisted
operation record, and the typed results returned to callers.

Examples:
    Creating a processing record::

        from datetime import UTC, datetime
        from webhook_idempotency.models import OperationRecord, OperationStatus

        now = datetime.now(UTC)
        record = OperationRecord(
            status=OperationStatus.PROCESSING,
            created_at=now,
            updated_at=now,
            attempts=1,
        )
        raw = record.model_dump_json()

    Reading a typed payload from a result::

        receipt = result.result_as(PaymentReceipt)
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, Field, TypeAdapter

T = TypeVar("T")


class OperationStatus(str, Enum):
    """Lifecycle state of an idempotent operation.

    Attributes:
        PENDING: No record exists; the key is free to be claimed.
        PROCESSING: A worker holding the lock is executing the operation.
        COMPLETED: The operation succeeded and its result is stored.
        FAILED: The operation raised and its error is stored.
    """

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationStatus.COMPLETED, OperationStatus.FAILED)


class OperationRecord(BaseModel):
    """Persisted lifecycle record for one idempotency key.

    Serialized to JSON at the store boundary. The payload is kept opaque
    (any JSON-compatible value) so the ledger stays type-agnostic.

    Attributes:
        status: Current lifecycle state. Never PENDING once persisted.
        result: JSON-compatible payload returned by the operation.
        error: Error message when the operation failed.
        created_at: When the key was first claimed.
        updated_at: When the record last changed state.
        attempts: How many times the key has been claimed.
        owner: Lock token of the worker that wrote this record.
    """

    status: OperationStatus = Field(
        ...,
        description="Current lifecycle state",
        examples=[OperationStatus.PROCESSING, OperationStatus.COMPLETED],
    )
    result: Any = Field(
        default=None,
        description="JSON-compatible operation result (COMPLETED only)",
    )
    error: str | None = Field(
        default=None,
        description="Error message (FAILED only)",
        examples=["insufficient funds"],
    )
    created_at: datetime = Field(
        ...,
        description="Timestamp of the first claim",
    )
    updated_at: datetime = Field(
        ...,
        description="Timestamp of the last state transition",
    )
    attempts: int = Field(
        default=1,
        ge=1,
        description="Number of times the key has been claimed",
    )
    owner: str | None = Field(
        default=None,
        description="Lock token of the writer",
    )

    def age_seconds(self, now: datetime) -> float:
        """Seconds elapsed since the last state transition."""
        return (now - self.updated_at).total_seconds()


class DuplicateCheck(BaseModel):
    """Outcome of looking up a key in the ledger.

    Attributes:
        status: Stored status, or PENDING when no readable record exists.
        is_duplicate: True when a record exists for the key.
        result: Stored result for COMPLETED records.
        error: Stored error for FAILED records.
        record: The full record, when one was read.
        store_available: False when the read failed and the check fell open.
    """

    status: OperationStatus
    is_duplicate: bool = False
    result: Any = None
    error: str | None = None
    record: OperationRecord | None = None
    store_available: bool = True

    @classmethod
    def pending(cls, store_available: bool = True) -> "DuplicateCheck":
        return cls(status=OperationStatus.PENDING, store_available=store_available)

    @classmethod
    def from_record(cls, record: OperationRecord) -> "DuplicateCheck":
        return cls(
            status=record.status,
            is_duplicate=True,
            result=record.result,
            error=record.error,
            record=record,
        )


class LockOutcome(str, Enum):
    """Result of a lock acquisition attempt."""

    ACQUIRED = "ACQUIRED"
    CONTENDED = "CONTENDED"
    UNAVAILABLE = "UNAVAILABLE"


class LockResult(BaseModel):
    """Typed outcome of ``LockManager.acquire``.

    Attributes:
        outcome: ACQUIRED, CONTENDED (another owner holds it), or
            UNAVAILABLE (the store write failed).
        token: Owner token when acquired, None otherwise.
    """

    outcome: LockOutcome
    token: str | None = None

    @property
    def acquired(self) -> bool:
        return self.outcome is LockOutcome.ACQUIRED


class ExecutionResult(BaseModel):
    """Value returned to every caller of ``execute_with_idempotency``.

    Attributes:
        status: COMPLETED or FAILED (PROCESSING is never returned).
        key: The idempotency key derived for the event.
        result: JSON-compatible result of the operation.
        error: Failure reason when status is FAILED.
        is_duplicate: True when this caller did not run the operation.
        retriable: True when the failure is transient (lock never acquired,
            store unavailable) and the sender should redeliver later.

    Examples:
        >>> result = ExecutionResult(
        ...     status=OperationStatus.COMPLETED,
        ...     key="sms:default:0f1e",
        ...     result={"response": "ok"},
        ... )
        >>> result.succeeded
        True
    """

    status: OperationStatus
    key: str
    result: Any = None
    error: str | None = None
    is_duplicate: bool = False
    retriable: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status is OperationStatus.COMPLETED

    def result_as(self, type_: type[T]) -> T:
        """Validate the stored payload into ``type_``.

        Args:
            type_: Any type pydantic can validate (models, dataclasses,
                TypedDicts, builtins).

        Returns:
            The payload parsed as ``type_``.

        Raises:
            ValidationError: If the payload does not fit ``type_``.
        """
        return TypeAdapter(type_).validate_python(self.result)


class FailureEvent(BaseModel):
    """Failure forwarded to the alerting collaborator.

    Attributes:
        key: Idempotency key of the event.
        provider: Upstream provider identifier.
        transaction_id: Provider transaction or message id.
        context: Optional use-case tag.
        error: Failure reason.
        retriable: Whether the failure is transient.
        occurred_at: When the failure was observed.
    """

    key: str
    provider: str
    transaction_id: str
    context: str | None = None
    error: str
    retriable: bool = False
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class MetricsSnapshot(BaseModel):
    """Per-status tallies from a bounded ledger scan.

    Attributes:
        counts: Number of records per status name, plus ``malformed``.
        scanned: Ledger keys examined.
        truncated: True when the scan hit its key cap.
        provider: Provider filter applied, if any.
    """

    counts: dict[str, int] = Field(default_factory=dict)
    scanned: int = 0
    truncated: bool = False
    provider: str | None = None


class SweepReport(BaseModel):
    """Result of one cleanup sweep."""

    scanned: int = 0
    repaired: int = 0
