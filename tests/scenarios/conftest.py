"""Shared fixtures for end-to-end scenarios against the full application."""

from collections.abc import Callable, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from cleankiss.api.app import create_app
from cleankiss.auth.permissions import Permissions
from cleankiss.auth.tokens import issue_token
from cleankiss.config import AppConfig, AuthConfig, IdempotencyConfig
from cleankiss.storage.backend import MemoryBackend
from cleankiss.utils.clock import ManualClock

ALL_STUDENT_PERMISSIONS = [
    Permissions.Students.VIEW,
    Permissions.Students.CREATE,
    Permissions.Students.DELETE,
]


@pytest.fixture
def idempotency_config() -> IdempotencyConfig:
    return IdempotencyConfig(default_ttl_seconds=3600)


@pytest.fixture
def app_config(idempotency_config: IdempotencyConfig, auth_config: AuthConfig) -> AppConfig:
    return AppConfig(idempotency=idempotency_config, auth=auth_config)


@pytest.fixture
def app(app_config: AppConfig, backend: MemoryBackend, clock: ManualClock) -> FastAPI:
    return create_app(app_config, backend=backend, clock=clock, poll_interval=0.01)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def token_for(auth_config: AuthConfig) -> Callable[..., str]:
    def factory(
        permissions: list[str] | None = None,
        roles: list[str] | None = None,
        subject: str = "user-1",
    ) -> str:
        return issue_token(
            auth_config,
            subject=subject,
            permissions=ALL_STUDENT_PERMISSIONS if permissions is None else permissions,
            roles=roles,
        )

    return factory


@pytest.fixture
def auth_headers(token_for: Callable[..., str]) -> dict[str, str]:
    """Bearer header for a caller holding every student permission."""
    return {"Authorization": f"Bearer {token_for()}"}
