"""Custom exceptions for the webhook idempotency layer.

Only infrastructure and data problems are modelled as exceptions. Lock
contention and retry exhaustion are ordinary outcomes and are reported
through ``ExecutionResult`` instead.

Examples:
    Wrapping a backend failure in a storage adapter::

        from webhook_idempotency.exceptions import StorageError

        try:
            value = await redis.get(key)
        except RedisError as e:
            raise StorageError(f"GET failed for {key}: {e}", cause=e) from e

    Failing open on a ledger read::

        try:
            raw = await storage.get(key)
        except StorageError as e:
            logger.warning("ledger.read_failed_open", error=e.message)
            raw = None
"""


class IdempotencyError(Exception):
    """Base exception for all idempotency-related errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class StorageError(IdempotencyError):
    """The shared key-value store could not complete an operation.

    Raised by storage adapters for network failures, timeouts and backend
    outages. Callers decide whether to fail open (ledger reads) or fail
    closed (lock acquisition, the PROCESSING write).

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception that caused the storage error.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize the storage error with details.

        Args:
            message: Human-readable error description.
            cause: The underlying exception that caused the storage error.
        """
        super().__init__(message)
        self.cause = cause


class MalformedRecordError(IdempotencyError):
    """A ledger entry could not be deserialized.

    The ledger logs this and treats the key as reclaimable rather than
    leaving it permanently poisoned.

    Attributes:
        message: Human-readable error description.
        key: The idempotency key whose record is malformed.
    """

    def __init__(self, message: str, key: str) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error description.
            key: The idempotency key whose record is malformed.
        """
        super().__init__(message)
        self.key = key


class StaleOwnerError(IdempotencyError):
    """A terminal write was rejected because the caller no longer owns the key.

    Raised by the ledger when the stored record is no longer the PROCESSING
    record the caller wrote, typically because its lock expired and another
    worker reclaimed the key. The stored record is left untouched.

    Attributes:
        message: Human-readable error description.
        key: The idempotency key whose record changed owner.
    """

    def __init__(self, message: str, key: str) -> None:
        super().__init__(message)
        self.key = key
