"""
Pytest configuration and shared fixtures for cleankiss tests.
"""

import pytest

from cleankiss.auth.principal import StaticCurrentUser
from cleankiss.auth.service import AuthorizationService
from cleankiss.config import AuthConfig
from cleankiss.models import Principal
from cleankiss.storage.backend import MemoryBackend
from cleankiss.storage.memory import MemoryIdempotencyStore
from cleankiss.utils.clock import ManualClock


@pytest.fixture
def sample_idempotency_key() -> str:
    """Provide a sample idempotency key for tests."""
    return "order-123"


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def backend(clock: ManualClock) -> MemoryBackend:
    return MemoryBackend(clock=clock)


@pytest.fixture
def store(backend: MemoryBackend) -> MemoryIdempotencyStore:
    return MemoryIdempotencyStore(backend)


@pytest.fixture
def auth_config() -> AuthConfig:
    return AuthConfig(jwt_secret="test-secret-that-is-at-least-32-characters-long")


@pytest.fixture
def make_authorization():
    """Factory for an authorization service over a fixed authenticated principal."""

    def factory(
        permissions: list[str] | None = None,
        roles: list[str] | None = None,
        user_id: str = "user-1",
    ) -> AuthorizationService:
        principal = Principal(
            id=user_id,
            is_authenticated=True,
            permissions=frozenset(permissions or []),
            roles=frozenset(roles or []),
        )
        return AuthorizationService(StaticCurrentUser(principal))

    return factory
