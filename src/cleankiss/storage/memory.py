"""In-memory idempotency store.

Records live in a shared :class:`~cleankiss.storage.backend.MemoryBackend`
under a key prefix (``idempotency:`` by default), so the same backend can
also serve the generic cache without collisions.

Suitable for:
    - Single-process deployments
    - Development and testing

For multi-process deployments use
:class:`~cleankiss.storage.redis_store.RedisIdempotencyStore`.

Examples:
    Basic usage::

        backend = MemoryBackend()
        store = MemoryIdempotencyStore(backend)

        if await store.reserve("order-123", ttl_seconds=30):
            await store.store("order-123", 201, b'{"id": "42"}')

        lookup = await store.try_get("order-123")
        assert lookup.exists and lookup.status_code == 201
"""

from cleankiss.cancellation import CancellationToken, raise_if_cancelled
from cleankiss.models import LookupResult, StoredResponse
from cleankiss.storage.backend import MemoryBackend
from cleankiss.storage.base import DEFAULT_TTL_SECONDS


class _Pending:
    """Placeholder written by reserve()."""

    def __repr__(self) -> str:
        return "<pending>"


_PENDING = _Pending()


class MemoryIdempotencyStore:
    """Idempotency store backed by a :class:`MemoryBackend`.

    Attributes:
        backend: The shared in-memory backend.
        key_prefix: Namespace prepended to every key.
        default_ttl_seconds: Retention used when ``store`` gets no TTL.
    """

    def __init__(
        self,
        backend: MemoryBackend,
        key_prefix: str = "idempotency:",
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        self.backend = backend
        self.key_prefix = key_prefix
        self.default_ttl_seconds = default_ttl_seconds

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def try_get(
        self,
        key: str,
        cancel: CancellationToken | None = None,
    ) -> LookupResult:
        raise_if_cancelled(cancel)
        value = await self.backend.get(self._key(key))
        if isinstance(value, StoredResponse):
            return LookupResult.hit(value)
        return LookupResult.miss()

    async def store(
        self,
        key: str,
        status_code: int,
        body: bytes,
        ttl_seconds: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> None:
        raise_if_cancelled(cancel)
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        await self.backend.set(self._key(key), StoredResponse.from_body(status_code, body), ttl)

    async def reserve(self, key: str, ttl_seconds: int) -> bool:
        return await self.backend.add(self._key(key), _PENDING, ttl_seconds)

    async def release(self, key: str) -> bool:
        return await self.backend.compare_and_delete(self._key(key), _PENDING)

    async def cleanup_expired(self) -> int:
        return await self.backend.purge_expired(prefix=self.key_prefix)
