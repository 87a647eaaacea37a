"""Configuration module for the webhook idempotency layer.

This module provides the IdempotencyConfig class controlling record
retention, lock lifetimes, retry/backoff behaviour, maintenance scans and
the storage backend.

Example:
    Basic usage with defaults:

        >>> config = IdempotencyConfig()
        >>> config.default_ttl_seconds
        86400
        >>> config.lock_ttl_seconds
        30

    Custom configuration:

        >>> config = IdempotencyConfig(
        ...     default_ttl_seconds=3600,
        ...     lock_ttl_seconds=60,
        ...     storage_adapter="redis",
        ...     redis_url="redis://myhost:6379/0"
        ... )

    Loading from environment:

        >>> import os
        >>> os.environ['IDEMPOTENCY_LOCK_TTL_SECONDS'] = '45'
        >>> os.environ['IDEMPOTENCY_MAX_RETRIES'] = '5'
        >>> config = IdempotencyConfig.from_env()
"""

import os
import re
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

# Seven days, the longest retention a webhook sender is expected to redeliver within
MAX_TTL_SECONDS = 604800

KEY_PREFIX_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class IdempotencyConfig(BaseModel):
    """Configuration for the idempotency manager.

    Attributes:
        key_prefix: Namespace for every key written to the shared store. Ledger
            records live at ``<prefix>:<key>`` and locks at ``<prefix>:<key>:lock``.
        default_ttl_seconds: Retention window for ledger records (1-604800).
            Duplicates arriving within this window receive the stored outcome.
        lock_ttl_seconds: Lifetime of a processing lock (1-3600). Bounds how
            long a crashed worker can hold exclusivity. Must not exceed
            default_ttl_seconds.
        max_retries: Number of backoff polls a contended caller makes before
            giving up with a retriable failure (0-10).
        base_delay_ms: Delay before the first poll. Attempt k waits
            ``base_delay_ms * 2**(k-1)`` milliseconds.
        retry_timeout_seconds: Overall deadline for the backoff phase. None
            means the retry count alone bounds it.
        reclaim_orphaned: Whether a PROCESSING record whose lock has expired
            and whose age exceeds lock_ttl_seconds may be claimed again.
        retry_failed_after_seconds: When set, a FAILED record older than this
            may be claimed again before its TTL expires. None keeps FAILED
            terminal for the full retention window.
        metrics_scan_limit: Maximum keys examined by a metrics snapshot.
        sweep_scan_limit: Maximum keys examined per cleanup sweep.
        cleanup_interval_seconds: Time between background cleanup sweeps.
        storage_adapter: Backend used by ``build_storage``.
        redis_url: Connection URL when storage_adapter is "redis".

    Note:
        This class is immutable (frozen=True). Create a new instance if you
        need different settings.
    """

    key_prefix: str = Field(
        default="idempotency",
        description="Namespace for ledger and lock keys",
    )
    default_ttl_seconds: int = Field(
        default=86400,
        description="Retention window for ledger records (1-604800)",
    )
    lock_ttl_seconds: int = Field(
        default=30,
        description="Lifetime of a processing lock in seconds (1-3600)",
    )
    max_retries: int = Field(
        default=3,
        description="Backoff polls made by a contended caller (0-10)",
    )
    base_delay_ms: int = Field(
        default=1000,
        description="Delay before the first backoff poll in milliseconds",
    )
    retry_timeout_seconds: float | None = Field(
        default=None,
        description="Overall deadline for the backoff phase (None=unbounded)",
    )
    reclaim_orphaned: bool = Field(
        default=True,
        description="Allow re-claiming PROCESSING records whose lock has expired",
    )
    retry_failed_after_seconds: int | None = Field(
        default=None,
        description="Allow re-running FAILED records older than this (None=never)",
    )
    metrics_scan_limit: int = Field(
        default=1000,
        description="Maximum keys examined by a metrics snapshot",
    )
    sweep_scan_limit: int = Field(
        default=10000,
        description="Maximum keys examined per cleanup sweep",
    )
    cleanup_interval_seconds: int = Field(
        default=300,
        description="Seconds between background cleanup sweeps",
    )
    storage_adapter: Literal["memory", "redis"] = Field(
        default="memory",
        description="Type of storage backend",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Connection URL for the Redis storage adapter",
    )

    model_config = {"frozen": True}

    @field_validator("key_prefix")
    @classmethod
    def validate_key_prefix(cls, v: str) -> str:
        """Reject prefixes that would break key parsing or glob scans.

        Raises:
            ValueError: If the prefix is empty or contains ':' or glob characters.
        """
        if not KEY_PREFIX_PATTERN.match(v):
            raise ValueError(
                f"key_prefix must match {KEY_PREFIX_PATTERN.pattern}, got {v!r}"
            )
        return v

    @field_validator("default_ttl_seconds")
    @classmethod
    def validate_default_ttl_seconds(cls, v: int) -> int:
        """Validate TTL is within acceptable range.

        Raises:
            ValueError: If TTL is not between 1 and 604800 (7 days).
        """
        if not (1 <= v <= MAX_TTL_SECONDS):
            raise ValueError(
                f"default_ttl_seconds must be between 1 and {MAX_TTL_SECONDS} (7 days), got {v}"
            )
        return v

    @field_validator("lock_ttl_seconds")
    @classmethod
    def validate_lock_ttl_seconds(cls, v: int) -> int:
        if not (1 <= v <= 3600):
            raise ValueError(f"lock_ttl_seconds must be between 1 and 3600, got {v}")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if not (0 <= v <= 10):
            raise ValueError(f"max_retries must be between 0 and 10, got {v}")
        return v

    @field_validator("base_delay_ms")
    @classmethod
    def validate_base_delay_ms(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"base_delay_ms must be >= 1, got {v}")
        return v

    @field_validator("retry_timeout_seconds")
    @classmethod
    def validate_retry_timeout_seconds(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError(f"retry_timeout_seconds must be > 0, got {v}")
        return v

    @field_validator("retry_failed_after_seconds")
    @classmethod
    def validate_retry_failed_after_seconds(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError(f"retry_failed_after_seconds must be >= 0, got {v}")
        return v

    @field_validator("metrics_scan_limit", "sweep_scan_limit", "cleanup_interval_seconds")
    @classmethod
    def validate_positive(cls, v: int, info: Any) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1, got {v}")
        return v

    @model_validator(mode="after")
    def validate_lock_within_retention(self) -> "IdempotencyConfig":
        """Ensure a lock can never outlive the record it protects.

        Raises:
            ValueError: If lock_ttl_seconds exceeds default_ttl_seconds.
        """
        if self.lock_ttl_seconds > self.default_ttl_seconds:
            raise ValueError(
                f"lock_ttl_seconds ({self.lock_ttl_seconds}) must not exceed "
                f"default_ttl_seconds ({self.default_ttl_seconds})"
            )
        return self

    @property
    def base_delay_seconds(self) -> float:
        return self.base_delay_ms / 1000.0

    @classmethod
    def from_env(cls, prefix: str = "IDEMPOTENCY_") -> "IdempotencyConfig":
        """Create configuration from environment variables.

        Variable names are uppercase field names with the prefix, e.g.
        ``IDEMPOTENCY_LOCK_TTL_SECONDS``. Missing variables use defaults.

        Args:
            prefix: Prefix for environment variable names.

        Returns:
            IdempotencyConfig instance populated from environment variables.

        Example:
            >>> import os
            >>> os.environ['IDEMPOTENCY_STORAGE_ADAPTER'] = 'redis'
            >>> os.environ['IDEMPOTENCY_RECLAIM_ORPHANED'] = 'false'
            >>> config = IdempotencyConfig.from_env()
            >>> config.reclaim_orphaned
            False
        """
        config_dict: dict[str, Any] = {}

        # Map of field names to their types for proper conversion
        field_types = {
            "key_prefix": str,
            "default_ttl_seconds": int,
            "lock_ttl_seconds": int,
            "max_retries": int,
            "base_delay_ms": int,
            "retry_timeout_seconds": float,
            "reclaim_orphaned": bool,
            "retry_failed_after_seconds": int,
            "metrics_scan_limit": int,
            "sweep_scan_limit": int,
            "cleanup_interval_seconds": int,
            "storage_adapter": str,
            "redis_url": str,
        }

        for field_name, field_type in field_types.items():
            env_var = f"{prefix}{field_name.upper()}"
            env_value = os.environ.get(env_var)

            if env_value is None:
                continue
            if field_type is int:
                config_dict[field_name] = int(env_value)
            elif field_type is float:
                config_dict[field_name] = float(env_value)
            elif field_type is bool:
                config_dict[field_name] = env_value.strip().lower() in ("1", "true", "yes", "on")
            else:
                config_dict[field_name] = env_value

        return cls(**config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "IdempotencyConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)
