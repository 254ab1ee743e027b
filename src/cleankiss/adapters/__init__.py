"""Framework adapters for cleankiss."""

from cleankiss.adapters.asgi import (
    ASGIIdempotencyMiddleware,
    CorrelationIdMiddleware,
    ExceptionMiddleware,
    PrincipalMiddleware,
)

__all__ = [
    "ASGIIdempotencyMiddleware",
    "CorrelationIdMiddleware",
    "ExceptionMiddleware",
    "PrincipalMiddleware",
]
