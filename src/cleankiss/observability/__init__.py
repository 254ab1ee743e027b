"""Observability utilities for cleankiss.

This package provides monitoring and debugging capabilities:
- Prometheus metrics for idempotency and authorization behavior
- Structured logging with contextual information
"""

from cleankiss.observability.logging import configure_logging, get_logger
from cleankiss.observability.metrics import (
    record_cleanup,
    record_denial,
    record_execution_time,
    record_idempotency,
    record_store_error,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "record_idempotency",
    "record_execution_time",
    "record_denial",
    "record_store_error",
    "record_cleanup",
]
