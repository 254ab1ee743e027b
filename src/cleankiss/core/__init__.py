"""Request pipeline core: handler contract, authorization and idempotency."""

from cleankiss.core.authorization import AuthorizedHandler, Requirement, RequirementRegistry
from cleankiss.core.handler import Handler
from cleankiss.core.middleware import IdempotencyMiddleware, Request
from cleankiss.core.replay import BufferedResponse, replay_response

__all__ = [
    "AuthorizedHandler",
    "BufferedResponse",
    "Handler",
    "IdempotencyMiddleware",
    "Request",
    "Requirement",
    "RequirementRegistry",
    "replay_response",
]
