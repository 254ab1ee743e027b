"""Scenario 2: Requests the middleware leaves alone

- Safe methods are never recorded, even with a key.
- Mutating requests without a key (or with a blank one) execute every time.
- Keys longer than 255 characters are rejected with 400 before execution.
"""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from cleankiss.utils.headers import IDEMPOTENCY_KEY_HEADER, REPLAYED_HEADER

STUDENT = {"name": "Ada Lovelace", "email": "ada@example.com"}


def test_get_with_key_is_not_recorded(
    client: TestClient, app: FastAPI, auth_headers: dict[str, str]
) -> None:
    created = client.post("/api/v1/students", json=STUDENT, headers=auth_headers).json()
    headers = {**auth_headers, IDEMPOTENCY_KEY_HEADER: "read-1"}

    first = client.get(f"/api/v1/students/{created['id']}", headers=headers)
    second = client.get(f"/api/v1/students/{created['id']}", headers=headers)

    assert first.status_code == second.status_code == 200
    assert REPLAYED_HEADER not in second.headers


def test_post_without_key_executes_each_time(
    client: TestClient, auth_headers: dict[str, str]
) -> None:
    first = client.post("/api/v1/students", json=STUDENT, headers=auth_headers)
    second = client.post("/api/v1/students", json=STUDENT, headers=auth_headers)

    assert first.status_code == 201
    assert second.status_code == 409
    assert REPLAYED_HEADER not in second.headers


def test_blank_key_is_treated_as_absent(client: TestClient, auth_headers: dict[str, str]) -> None:
    headers = {**auth_headers, IDEMPOTENCY_KEY_HEADER: "  "}

    first = client.post("/api/v1/students", json=STUDENT, headers=headers)
    second = client.post("/api/v1/students", json=STUDENT, headers=headers)

    assert first.status_code == 201
    assert second.status_code == 409


def test_overlong_key_rejected(
    client: TestClient, app: FastAPI, auth_headers: dict[str, str]
) -> None:
    headers = {**auth_headers, IDEMPOTENCY_KEY_HEADER: "k" * 256}

    response = client.post("/api/v1/students", json=STUDENT, headers=headers)

    assert response.status_code == 400
    assert "maximum length" in response.json()["error"]
    assert len(app.state.repository) == 0
