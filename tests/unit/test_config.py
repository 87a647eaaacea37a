"""Unit tests for configuration module.

Tests the IdempotencyConfig class including validation, factory methods,
and immutability.
"""

import pytest
from pydantic import ValidationError

from webhook_idempotency.config import IdempotencyConfig


class TestIdempotencyConfigDefaults:
    """Tests for default configuration values."""

    def test_default_values(self) -> None:
        config = IdempotencyConfig()

        assert config.key_prefix == "idempotency"
        assert config.default_ttl_seconds == 86400
        assert config.lock_ttl_seconds == 30
        assert config.max_retries == 3
        assert config.base_delay_ms == 1000
        assert config.retry_timeout_seconds is None
        assert config.reclaim_orphaned is True
        assert config.retry_failed_after_seconds is None
        assert config.metrics_scan_limit == 1000
        assert config.sweep_scan_limit == 10000
        assert config.cleanup_interval_seconds == 300
        assert config.storage_adapter == "memory"
        assert config.redis_url == "redis://localhost:6379/0"

    def test_base_delay_seconds(self) -> None:
        assert IdempotencyConfig(base_delay_ms=1500).base_delay_seconds == 1.5


class TestTTLValidation:
    """Tests for TTL fields and their relationship."""

    def test_ttl_bounds_accepted(self) -> None:
        assert IdempotencyConfig(default_ttl_seconds=604800).default_ttl_seconds == 604800
        assert IdempotencyConfig(default_ttl_seconds=1, lock_ttl_seconds=1).default_ttl_seconds == 1

    @pytest.mark.parametrize("ttl", [0, -5, 604801])
    def test_default_ttl_out_of_range(self, ttl: int) -> None:
        with pytest.raises(ValidationError) as exc_info:
            IdempotencyConfig(default_ttl_seconds=ttl)
        assert "default_ttl_seconds must be between 1 and 604800" in str(exc_info.value)

    @pytest.mark.parametrize("ttl", [0, 3601])
    def test_lock_ttl_out_of_range(self, ttl: int) -> None:
        with pytest.raises(ValidationError) as exc_info:
            IdempotencyConfig(lock_ttl_seconds=ttl)
        assert "lock_ttl_seconds must be between 1 and 3600" in str(exc_info.value)

    def test_lock_ttl_may_equal_record_ttl(self) -> None:
        config = IdempotencyConfig(default_ttl_seconds=60, lock_ttl_seconds=60)
        assert config.lock_ttl_seconds == config.default_ttl_seconds

    def test_lock_ttl_longer_than_record_ttl_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            IdempotencyConfig(default_ttl_seconds=60, lock_ttl_seconds=61)
        assert "must not exceed default_ttl_seconds" in str(exc_info.value)


class TestRetryValidation:
    def test_max_retries_zero_allowed(self) -> None:
        assert IdempotencyConfig(max_retries=0).max_retries == 0

    @pytest.mark.parametrize("retries", [-1, 11])
    def test_max_retries_out_of_range(self, retries: int) -> None:
        with pytest.raises(ValidationError):
            IdempotencyConfig(max_retries=retries)

    def test_base_delay_must_be_positive(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            IdempotencyConfig(base_delay_ms=0)
        assert "base_delay_ms must be >= 1" in str(exc_info.value)

    def test_retry_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            IdempotencyConfig(retry_timeout_seconds=0)

    def test_retry_failed_after_negative_rejected(self) -> None:
        with pytest.raises(ValidationError):
            IdempotencyConfig(retry_failed_after_seconds=-1)

    @pytest.mark.parametrize(
        "field", ["metrics_scan_limit", "sweep_scan_limit", "cleanup_interval_seconds"]
    )
    def test_scan_and_interval_fields_positive(self, field: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            IdempotencyConfig(**{field: 0})
        assert f"{field} must be >= 1" in str(exc_info.value)


class TestKeyPrefixValidation:
    def test_custom_prefix(self) -> None:
        assert IdempotencyConfig(key_prefix="webhooks.v2").key_prefix == "webhooks.v2"

    @pytest.mark.parametrize("prefix", ["", "has:colon", "glob*", "space here"])
    def test_invalid_prefix(self, prefix: str) -> None:
        with pytest.raises(ValidationError):
            IdempotencyConfig(key_prefix=prefix)


class TestStorageAdapterValidation:
    def test_redis_adapter(self) -> None:
        config = IdempotencyConfig(storage_adapter="redis", redis_url="redis://cache:6379/1")
        assert config.storage_adapter == "redis"

    def test_unknown_adapter(self) -> None:
        with pytest.raises(ValidationError):
            IdempotencyConfig(storage_adapter="dynamodb")  # type: ignore[arg-type]


class TestImmutability:
    def test_frozen(self) -> None:
        config = IdempotencyConfig()
        with pytest.raises(ValidationError):
            config.max_retries = 7  # type: ignore[misc]


class TestFactories:
    def test_from_dict(self) -> None:
        config = IdempotencyConfig.from_dict({"lock_ttl_seconds": 45, "max_retries": 2})
        assert config.lock_ttl_seconds == 45
        assert config.max_retries == 2

    def test_from_dict_invalid(self) -> None:
        with pytest.raises(ValidationError):
            IdempotencyConfig.from_dict({"default_ttl_seconds": 10, "lock_ttl_seconds": 20})

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("IDEMPOTENCY_LOCK_TTL_SECONDS", "45")
        monkeypatch.setenv("IDEMPOTENCY_BASE_DELAY_MS", "250")
        monkeypatch.setenv("IDEMPOTENCY_RETRY_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("IDEMPOTENCY_RECLAIM_ORPHANED", "false")
        monkeypatch.setenv("IDEMPOTENCY_STORAGE_ADAPTER", "redis")

        config = IdempotencyConfig.from_env()

        assert config.lock_ttl_seconds == 45
        assert config.base_delay_ms == 250
        assert config.retry_timeout_seconds == 2.5
        assert config.reclaim_orphaned is False
        assert config.storage_adapter == "redis"
        assert config.default_ttl_seconds == 86400

    def test_from_env_custom_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WEBHOOKS_MAX_RETRIES", "6")
        monkeypatch.setenv("WEBHOOKS_RECLAIM_ORPHANED", "yes")

        config = IdempotencyConfig.from_env(prefix="WEBHOOKS_")

        assert config.max_retries == 6
        assert config.reclaim_orphaned is True

    def test_from_env_invalid_integer(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("IDEMPOTENCY_MAX_RETRIES", "many")
        with pytest.raises(ValueError):
            IdempotencyConfig.from_env()
