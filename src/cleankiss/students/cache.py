"""Cache-aside helper over the shared in-memory backend.

Cached values live in the same :class:`~cleankiss.storage.backend.MemoryBackend`
as idempotency records, under their own ``cache:`` namespace.

Examples:
    Cache-aside lookup::

        cache = CacheService(MemoryBackend())
        dto = await cache.get_or_create(
            CacheKeys.student(student_id),
            lambda: load_student(student_id),
            ttl_seconds=600,
        )
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from cleankiss.observability.logging import get_logger
from cleankiss.storage.backend import MemoryBackend

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_CACHE_TTL_SECONDS = 5 * 60


class CacheService:
    def __init__(
        self,
        backend: MemoryBackend,
        key_prefix: str = "cache:",
        default_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
    ) -> None:
        self.backend = backend
        self.key_prefix = key_prefix
        self.default_ttl_seconds = default_ttl_seconds

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Any | None:
        return await self.backend.get(self._key(key))

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        await self.backend.set(self._key(key), value, ttl)

    async def remove(self, key: str) -> None:
        await self.backend.delete(self._key(key))

    async def get_or_create(
        self,
        key: str,
        factory: Callable[[], Awaitable[T | None]],
        ttl_seconds: int | None = None,
    ) -> T | None:
        """Return the cached value or compute, cache and return it.

        ``None`` results are not cached, so a missing entity is looked up
        again on the next call.
        """
        cached = await self.get(key)
        if cached is not None:
            logger.debug("cache.hit", key=key)
            return cached

        logger.debug("cache.miss", key=key)
        value = await factory()
        if value is not None:
            await self.set(key, value, ttl_seconds)
        return value

    async def cleanup_expired(self) -> int:
        return await self.backend.purge_expired(prefix=self.key_prefix)
