"""Storage for idempotency records and cached data.

All idempotency stores implement the IdempotencyStore protocol defined in
base.py.

Available stores:
    - MemoryIdempotencyStore: on top of a shared, injected MemoryBackend
    - RedisIdempotencyStore: Redis-based distributed storage
"""

from cleankiss.storage.backend import MemoryBackend
from cleankiss.storage.base import DEFAULT_TTL_SECONDS, IdempotencyStore
from cleankiss.storage.memory import MemoryIdempotencyStore

__all__ = [
    "DEFAULT_TTL_SECONDS",
    "IdempotencyStore",
    "MemoryBackend",
    "MemoryIdempotencyStore",
]
