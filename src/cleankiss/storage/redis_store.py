"""Redis-backed idempotency store.

Records are stored as JSON documents (``StoredResponse.model_dump_json()``)
under ``{key_prefix}{key}`` with a Redis-native expiry, so no sweep is
needed. The reserve-then-fill extension maps onto Redis primitives:

- ``reserve``: ``SET key <pending> NX EX ttl``
- ``release``: a Lua compare-and-delete that only removes the placeholder
- ``store``: ``SET key <json> EX ttl`` (overwrites the placeholder)

Every Redis failure is wrapped in :class:`~cleankiss.exceptions.StorageError`.

Examples:
    Connecting::

        store = RedisIdempotencyStore.from_url("redis://localhost:6379/0")
        lookup = await store.try_get("order-123")
        await store.close()
"""

from typing import Any

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import RedisError

from cleankiss.cancellation import CancellationToken, raise_if_cancelled
from cleankiss.exceptions import StorageError
from cleankiss.models import LookupResult, StoredResponse
from cleankiss.observability.logging import get_logger
from cleankiss.storage.base import DEFAULT_TTL_SECONDS

logger = get_logger(__name__)

PENDING_MARKER = b"__pending__"

# Deletes KEYS[1] only while it still holds the pending marker.
_RELEASE_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


class RedisIdempotencyStore:
    """Idempotency store backed by Redis.

    Attributes:
        key_prefix: Namespace prepended to every key.
        default_ttl_seconds: Retention used when ``store`` gets no TTL.
    """

    def __init__(
        self,
        client: Any,
        key_prefix: str = "idempotency:",
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        self._client = client
        self.key_prefix = key_prefix
        self.default_ttl_seconds = default_ttl_seconds

    @classmethod
    def from_url(cls, redis_url: str, **kwargs: Any) -> "RedisIdempotencyStore":
        """Build a store with its own connection pool."""
        client = aioredis.from_url(redis_url, decode_responses=False)
        logger.info("redis_store.connected", url=redis_url)
        return cls(client, **kwargs)

    async def close(self) -> None:
        await self._client.aclose()

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def try_get(
        self,
        key: str,
        cancel: CancellationToken | None = None,
    ) -> LookupResult:
        raise_if_cancelled(cancel)
        try:
            raw = await self._client.get(self._key(key))
        except RedisError as e:
            raise StorageError(f"Failed to read idempotency key from Redis: {e}", cause=e) from e

        if raw is None or raw == PENDING_MARKER:
            return LookupResult.miss()

        try:
            stored = StoredResponse.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"Corrupt idempotency record for key {key}", cause=e) from e
        return LookupResult.hit(stored)

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
        payload = StoredResponse.from_body(status_code, body).model_dump_json()
        try:
            await self._client.set(self._key(key), payload, ex=ttl)
        except RedisError as e:
            raise StorageError(f"Failed to write idempotency key to Redis: {e}", cause=e) from e

    async def reserve(self, key: str, ttl_seconds: int) -> bool:
        try:
            created = await self._client.set(self._key(key), PENDING_MARKER, nx=True, ex=ttl_seconds)
        except RedisError as e:
            raise StorageError(f"Failed to reserve idempotency key in Redis: {e}", cause=e) from e
        return bool(created)

    async def release(self, key: str) -> bool:
        try:
            removed = await self._client.eval(_RELEASE_SCRIPT, 1, self._key(key), PENDING_MARKER)
        except RedisError as e:
            raise StorageError(f"Failed to release idempotency key in Redis: {e}", cause=e) from e
        return bool(removed)

    async def cleanup_expired(self) -> int:
        # Redis expires keys natively
        return 0
