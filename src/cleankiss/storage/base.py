"""Idempotency store protocol.

This module defines the interface every idempotency backend implements. The
minimal contract is a lookup and an upsert:

- ``try_get`` never raises for an absent key; a miss is
  ``LookupResult(exists=False)``.
- ``store`` is last-writer-wins for a given key.

On its own that leaves a race: two concurrent requests with the same key can
both miss and both execute. The reserve-then-fill extension closes it:

- ``reserve`` atomically writes a placeholder if the key is absent. Exactly
  one of several concurrent callers gets ``True``.
- A pending placeholder is invisible to ``try_get`` (it reads as a miss).
- ``store`` replaces the placeholder with the recorded response.
- ``release`` removes the placeholder if the attempt was abandoned, so a
  later retry can execute.

Error Handling:
    Implementations raise :class:`cleankiss.exceptions.StorageError` for
    backend failures and never leak backend-specific exceptions. The
    middleware decides what a failure means (it fails open).

Examples:
    Implementing a custom store::

        class MyStore:
            async def try_get(self, key, cancel=None) -> LookupResult: ...
            async def store(self, key, status_code, body, ttl_seconds=None, cancel=None) -> None: ...
            async def reserve(self, key, ttl_seconds) -> bool: ...
            async def release(self, key) -> bool: ...
            async def cleanup_expired(self) -> int: ...
"""

from typing import Protocol, runtime_checkable

from cleankiss.cancellation import CancellationToken
from cleankiss.models import LookupResult

DEFAULT_TTL_SECONDS = 24 * 60 * 60


@runtime_checkable
class IdempotencyStore(Protocol):
    """Mapping from idempotency key to a previously recorded response.

    Keys passed to these methods are the raw client keys; implementations
    apply their own namespace prefix.
    """

    async def try_get(
        self,
        key: str,
        cancel: CancellationToken | None = None,
    ) -> LookupResult:
        """Look up a recorded response.

        Returns:
            ``LookupResult`` with ``exists=True`` and the recorded status and
            body, or a miss. Pending reservations read as a miss.
        """
        ...

    async def store(
        self,
        key: str,
        status_code: int,
        body: bytes,
        ttl_seconds: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Record a response for ``key``; replaces any existing entry.

        Args:
            key: The idempotency key.
            status_code: Status code of the captured response.
            body: Captured response body.
            ttl_seconds: Retention window, defaults to the store's default
                (24 hours).
            cancel: Optional cancellation signal.
        """
        ...

    async def reserve(self, key: str, ttl_seconds: int) -> bool:
        """Atomically claim ``key`` for execution if nothing is stored under it.

        Returns:
            True if this caller now owns the key, False otherwise.
        """
        ...

    async def release(self, key: str) -> bool:
        """Drop a still-pending reservation.

        Returns:
            True if a pending reservation was removed.
        """
        ...

    async def cleanup_expired(self) -> int:
        """Remove expired entries; returns the number removed."""
        ...
