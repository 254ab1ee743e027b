"""Prometheus metrics for cleankiss.

Metrics include:

- Idempotency outcomes by result type (bypass, replay, recorded, ...)
- Execution time of first-time (non-replayed) keyed requests
- Authorization denials by requirement kind
- Store failures by operation (the fail-open path)
- Cleanup operation tracking

Examples:
    Recording a replayed request::

        from cleankiss.observability.metrics import record_idempotency

        record_idempotency(result="replay", status_code=201)

    Recording a denial::

        from cleankiss.observability.metrics import record_denial

        record_denial(kind="permission")
"""

from prometheus_client import Counter, Histogram

# Labels: result (bypass, replay, recorded, unrecorded, in_progress, timeout,
# rejected, fail_open), status_code
idempotency_requests_total = Counter(
    "cleankiss_idempotency_requests_total",
    "Total number of requests seen by the idempotency middleware",
    ["result", "status_code"],
)

# Only tracks keyed first executions, not replays
execution_time_seconds = Histogram(
    "cleankiss_idempotency_execution_time_seconds",
    "Downstream execution time for keyed requests that were not replayed",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

authorization_denials_total = Counter(
    "cleankiss_authorization_denials_total",
    "Handler invocations short-circuited by the authorization decorator",
    ["kind"],
)

store_errors_total = Counter(
    "cleankiss_store_errors_total",
    "Idempotency store operations that failed and were bypassed",
    ["operation"],
)

cleanup_operations = Counter(
    "cleankiss_cleanup_operations_total",
    "Total number of cleanup operations performed",
)

cleanup_records_removed = Counter(
    "cleankiss_cleanup_records_removed_total",
    "Total number of expired entries removed by cleanup",
)


def record_idempotency(result: str, status_code: int) -> None:
    """Record an idempotency middleware outcome.

    Examples:
        >>> record_idempotency("replay", 201)
        >>> record_idempotency("fail_open", 201)
    """
    idempotency_requests_total.labels(result=result, status_code=str(status_code)).inc()


def record_execution_time(seconds: float) -> None:
    """Record downstream execution time for a first-time keyed request."""
    execution_time_seconds.observe(seconds)


def record_denial(kind: str) -> None:
    """Record an authorization denial (``permission`` or ``role``)."""
    authorization_denials_total.labels(kind=kind).inc()


def record_store_error(operation: str) -> None:
    """Record a store failure that was bypassed (``lookup``, ``reserve``, ...)."""
    store_errors_total.labels(operation=operation).inc()


def record_cleanup(records_removed: int) -> None:
    """Record a cleanup operation.

    Examples:
        >>> record_cleanup(42)
    """
    cleanup_operations.inc()
    cleanup_records_removed.inc(records_removed)
