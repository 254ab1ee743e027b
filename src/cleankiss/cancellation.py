"""Cooperative cancellation signal passed along the request path.

The transport layer cancels the token when the client goes away; handlers,
stores and repositories check it before doing work. A cancelled attempt
surfaces as :class:`asyncio.CancelledError`, which the idempotency
middleware treats as "do not record".

Examples:
    >>> token = CancellationToken()
    >>> token.is_cancelled
    False
    >>> token.cancel()
    >>> token.raise_if_cancelled()
    Traceback (most recent call last):
    ...
    asyncio.exceptions.CancelledError: request aborted
"""

import asyncio


class CancellationToken:
    """A one-way cancelled flag with an awaitable event."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise asyncio.CancelledError("request aborted")


def raise_if_cancelled(cancel: CancellationToken | None) -> None:
    """Check an optional token; no-op when none was supplied."""
    if cancel is not None:
        cancel.raise_if_cancelled()
