"""Access to the current request's principal.

The transport layer resolves credentials once per request and publishes the
resulting :class:`~cleankiss.models.Principal` in a context variable. Each
asyncio task (and so each request) sees its own value; outside a request the
principal is anonymous.

Examples:
    Publishing a principal for the duration of a request::

        token = set_current_principal(principal)
        try:
            await call_next(request)
        finally:
            reset_current_principal(token)

    Reading it from a service::

        user = ContextCurrentUser()
        user.principal.permissions
"""

from contextvars import ContextVar, Token
from typing import Protocol

from cleankiss.models import Principal

_ANONYMOUS = Principal.anonymous()

_current_principal: ContextVar[Principal] = ContextVar(
    "cleankiss_current_principal",
    default=_ANONYMOUS,
)


def get_current_principal() -> Principal:
    return _current_principal.get()


def set_current_principal(principal: Principal) -> Token[Principal]:
    return _current_principal.set(principal)


def reset_current_principal(token: Token[Principal]) -> None:
    _current_principal.reset(token)


class CurrentUser(Protocol):
    """Read-only view of whoever is making the current request."""

    @property
    def principal(self) -> Principal: ...


class ContextCurrentUser:
    """Reads the principal published by the transport layer."""

    @property
    def principal(self) -> Principal:
        return get_current_principal()


class StaticCurrentUser:
    """Always returns the same principal (scripts, background jobs, tests)."""

    def __init__(self, principal: Principal) -> None:
        self._principal = principal

    @property
    def principal(self) -> Principal:
        return self._principal
