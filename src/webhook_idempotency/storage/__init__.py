"""Storage adapters for the webhook idempotency layer.

This package provides the key-value backends that hold ledger records and
processing locks. All adapters implement the StorageAdapter protocol
defined in base.py.

Available Adapters:
    - MemoryStorageAdapter: In-memory storage for tests and single-process use
    - RedisStorageAdapter: Redis-backed storage shared by all workers
"""

from webhook_idempotency.config import IdempotencyConfig
from webhook_idempotency.storage.base import StorageAdapter
from webhook_idempotency.storage.memory import MemoryStorageAdapter
from webhook_idempotency.storage.redis import RedisStorageAdapter


def build_storage(config: IdempotencyConfig) -> StorageAdapter:
    """Create the storage adapter selected by ``config.storage_adapter``."""
    if config.storage_adapter == "redis":
        return RedisStorageAdapter.from_url(config.redis_url)
    return MemoryStorageAdapter()


__all__ = [
    "StorageAdapter",
    "MemoryStorageAdapter",
    "RedisStorageAdapter",
    "build_storage",
]
