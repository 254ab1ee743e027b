"""Utility modules for cleankiss."""

from .clock import Clock, ManualClock, SystemClock
from .headers import (
    AUTHORIZATION_HEADER,
    CORRELATION_ID_HEADER,
    IDEMPOTENCY_KEY_HEADER,
    REPLAYED_HEADER,
    add_replay_headers,
    extract_bearer_token,
    get_header_value,
)

__all__ = [
    "Clock",
    "ManualClock",
    "SystemClock",
    "AUTHORIZATION_HEADER",
    "CORRELATION_ID_HEADER",
    "IDEMPOTENCY_KEY_HEADER",
    "REPLAYED_HEADER",
    "add_replay_headers",
    "extract_bearer_token",
    "get_header_value",
]
