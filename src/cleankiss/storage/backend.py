"""In-memory key-value backend with per-entry expiry.

The :class:`MemoryBackend` is the explicitly owned replacement for an ambient
process cache. One instance is created at composition time and handed to
every component that needs it (the idempotency store and the generic cache
service share it, each in its own key namespace).

Expiry is lazy: an entry whose ``expires_at`` has passed is treated as absent
on read and dropped; :meth:`MemoryBackend.purge_expired` reclaims the rest.

Examples:
    Basic usage::

        backend = MemoryBackend()
        await backend.set("student:42", dto, ttl_seconds=600)
        await backend.get("student:42")

    Set-if-absent::

        created = await backend.add("idempotency:order-123", marker, ttl_seconds=30)
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any

from cleankiss.utils.clock import Clock, SystemClock


class _Entry:
    __slots__ = ("value", "expires_at")

    def __init__(self, value: Any, expires_at: datetime) -> None:
        self.value = value
        self.expires_at = expires_at


class MemoryBackend:
    """Process-local key-value store with TTL support.

    Attributes:
        clock: Time source used to stamp and check expiry.

    Thread Safety:
        All mutating operations run under a single asyncio.Lock, so
        set-if-absent and compare-and-delete are atomic with respect to
        other coroutines on the same event loop.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self.clock: Clock = clock or SystemClock()
        self._entries: dict[str, _Entry] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def _live(self, key: str, now: datetime) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= now:
            del self._entries[key]
            return None
        return entry

    async def get(self, key: str) -> Any | None:
        """Return the live value for ``key`` or None."""
        async with self._lock:
            entry = self._live(key, self.clock.now())
            return None if entry is None else entry.value

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Insert or overwrite ``key``; last write wins."""
        async with self._lock:
            now = self.clock.now()
            self._entries[key] = _Entry(value, now + timedelta(seconds=ttl_seconds))

    async def add(self, key: str, value: Any, ttl_seconds: float) -> bool:
        """Insert ``key`` only if no live entry exists.

        Returns:
            True if the entry was created, False if one already existed.
        """
        async with self._lock:
            now = self.clock.now()
            if self._live(key, now) is not None:
                return False
            self._entries[key] = _Entry(value, now + timedelta(seconds=ttl_seconds))
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def compare_and_delete(self, key: str, expected: Any) -> bool:
        """Delete ``key`` only while it still holds ``expected`` (identity)."""
        async with self._lock:
            entry = self._live(key, self.clock.now())
            if entry is None or entry.value is not expected:
                return False
            del self._entries[key]
            return True

    async def purge_expired(self, prefix: str = "") -> int:
        """Remove expired entries whose key starts with ``prefix``.

        Returns:
            The number of entries removed.
        """
        async with self._lock:
            now = self.clock.now()
            expired = [
                key
                for key, entry in self._entries.items()
                if key.startswith(prefix) and entry.expires_at <= now
            ]
            for key in expired:
                del self._entries[key]
            return len(expired)
