"""Storage adapter protocol for the webhook idempotency layer.

This module defines the minimal key-value contract the ledger and the lock
manager depend on. Values are strings serialized by the caller, so adapters
never need to know about records or results.

Examples:
    Implementing a custom storage adapter::

        from webhook_idempotency.storage.base import StorageAdapter

        class MyStorageAdapter:
            async def get(self, key: str) -> str | None:
                return await self.backend.get(key)

            async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
                # Must be a single atomic compare-and-set on the backend
                ...

Atomicity Requirements:
    All StorageAdapter implementations MUST guarantee:

    1. **Atomic claim**: set_if_absent() checks for and creates the key in
       one step. Exactly one of N concurrent callers for a key sees True.
       Without this the mutual-exclusion guarantee cannot hold.

    2. **Atomic release**: compare_and_delete() deletes only when the stored
       value equals the expected token, in one step.

    3. **Atomic replace**: compare_and_set() overwrites only when the stored
       value equals the expected one, in one step. Terminal ledger writes
       use it so a worker whose lock expired cannot overwrite the record of
       the worker that reclaimed the key.

    4. **Expiration handling**: keys past their TTL are treated as absent by
       every operation.

    5. **Uniform errors**: infrastructure failures raise StorageError, never
       backend-specific exceptions.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class StorageAdapter(Protocol):
    """Protocol defining the key-value operations of the shared store.

    All methods are async and must be safe to call concurrently from many
    tasks and many processes.
    """

    async def get(self, key: str) -> str | None:
        """Return the value stored at ``key``, or None if absent or expired."""
        ...

    async def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Atomically store ``value`` only if ``key`` does not exist.

        Args:
            key: Store key.
            value: Serialized value.
            ttl_seconds: Expiry applied when the key is created.

        Returns:
            True if this call created the key, False if it already existed.
        """
        ...

    async def set(self, key: str, value: str, ttl_seconds: int | None) -> None:
        """Store ``value`` unconditionally, replacing any previous value.

        Args:
            key: Store key.
            value: Serialized value.
            ttl_seconds: Expiry in seconds, or None for no expiry.
        """
        ...

    async def delete(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""
        ...

    async def ttl(self, key: str) -> int | None:
        """Remaining lifetime of ``key`` in whole seconds.

        Returns:
            Seconds until expiry, or None if the key is absent or has no expiry.
        """
        ...

    async def compare_and_delete(self, key: str, expected: str) -> bool:
        """Atomically delete ``key`` if its value equals ``expected``.

        Returns:
            True if the key was deleted, False otherwise.
        """
        ...

    async def compare_and_set(
        self, key: str, expected: str, value: str, ttl_seconds: int
    ) -> bool:
        """Atomically replace ``key`` with ``value`` if it currently holds ``expected``.

        Args:
            key: Store key.
            expected: Value the key must hold for the write to apply.
            value: Replacement value.
            ttl_seconds: Expiry applied to the replacement.

        Returns:
            True if the value was replaced, False if the key is absent or
            holds something else.
        """
        ...

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Set the expiry of an existing key without touching its value.

        Returns:
            True if the key existed and its TTL was set, False otherwise.
        """
        ...

    async def scan(self, pattern: str, limit: int) -> list[str]:
        """Return up to ``limit`` live keys matching a glob ``pattern``."""
        ...

    async def close(self) -> None:
        """Release backend resources."""
        ...
