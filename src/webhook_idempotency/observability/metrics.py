"""Prometheus metrics for the webhook idempotency layer.

This module provides Prometheus collectors describing execution outcomes,
lock contention, store health and ledger maintenance:

- Execution counters by outcome and provider
- Execution time histogram (first attempts only)
- Lock contention and store error counters
- Fail-open claims made without a readable ledger
- Cleanup sweep counters
- Ledger record gauge fed by the metrics reporter

Examples:
    Recording an execution::

        from webhook_idempotency.observability.metrics import record_execution

        record_execution(outcome="completed", provider="venmo")

    Recording a store failure::

        from webhook_idempotency.observability.metrics import record_store_error

        record_store_error("set_if_absent")
"""

from prometheus_client import Counter, Gauge, Histogram

# Labels: outcome (completed, failed, duplicate, exhausted, unavailable), provider
executions_total = Counter(
    "webhook_idempotency_executions_total",
    "Total number of idempotent executions by outcome",
    ["outcome", "provider"],
)

# Only tracks operations that actually ran, not duplicates
execution_time_seconds = Histogram(
    "webhook_idempotency_execution_time_seconds",
    "Wrapped operation execution time in seconds (first attempts only)",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10],
)

lock_contentions_total = Counter(
    "webhook_idempotency_lock_contentions_total",
    "Lock acquisitions lost to another worker",
)

store_errors_total = Counter(
    "webhook_idempotency_store_errors_total",
    "Shared store operations that failed",
    ["operation"],
)

fail_open_claims_total = Counter(
    "webhook_idempotency_fail_open_claims_total",
    "Operations started while the ledger could not be read",
    ["provider"],
)

sweep_operations = Counter(
    "webhook_idempotency_sweep_operations_total",
    "Total number of cleanup sweeps performed",
)

sweep_keys_repaired = Counter(
    "webhook_idempotency_sweep_keys_repaired_total",
    "Total number of keys given a missing TTL by the cleanup sweep",
)

ledger_records = Gauge(
    "webhook_idempotency_ledger_records",
    "Ledger records per status in the latest metrics snapshot",
    ["status"],
)


def record_execution(outcome: str, provider: str) -> None:
    """Record the outcome of one ``execute_with_idempotency`` call."""
    executions_total.labels(outcome=outcome, provider=provider).inc()


def record_execution_time(elapsed_seconds: float) -> None:
    """Record the run time of a wrapped operation."""
    execution_time_seconds.observe(elapsed_seconds)


def record_lock_contention() -> None:
    lock_contentions_total.inc()


def record_store_error(operation: str) -> None:
    store_errors_total.labels(operation=operation).inc()


def record_fail_open_claim(provider: str) -> None:
    fail_open_claims_total.labels(provider=provider).inc()


def record_sweep(keys_repaired: int) -> None:
    """Record a cleanup sweep.

    Args:
        keys_repaired: Number of keys that received a TTL
    """
    sweep_operations.inc()
    sweep_keys_repaired.inc(keys_repaired)


def record_ledger_counts(counts: dict[str, int]) -> None:
    """Publish per-status counts from a metrics snapshot."""
    for status, count in counts.items():
        ledger_records.labels(status=status).set(count)
