"""Unit tests for the framework-agnostic idempotency middleware.

Covers:
    - Method and key gating
    - Record then replay
    - Failure statuses are recorded, exceptions are not
    - Cancellation leaves nothing behind
    - Fail-open on store outage
    - Oversize responses are returned but not recorded
    - Concurrent duplicates and both wait policies
    - Keys scoped per caller
"""

import asyncio
import json

import pytest

from cleankiss.cancellation import CancellationToken
from cleankiss.config import IdempotencyConfig
from cleankiss.core.middleware import IdempotencyMiddleware, Request
from cleankiss.core.replay import BufferedResponse
from cleankiss.exceptions import StorageError
from cleankiss.storage.memory import MemoryIdempotencyStore
from cleankiss.utils.headers import REPLAYED_HEADER


class Downstream:
    """Counts executions and returns a fixed response."""

    def __init__(
        self,
        status: int = 201,
        body: bytes = b'{"id": "42"}',
        delay: float = 0.0,
    ) -> None:
        self.status = status
        self.body = body
        self.delay = delay
        self.calls = 0

    async def __call__(self, request: Request) -> BufferedResponse:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return BufferedResponse(
            status=self.status,
            headers={"content-type": "application/json", "x-handler": "yes"},
            body=self.body,
        )


class FailingStore:
    """Store whose selected operations raise StorageError."""

    def __init__(self, inner: MemoryIdempotencyStore, failing: set[str]) -> None:
        self.inner = inner
        self.failing = failing

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.failing:
            raise StorageError(f"{operation} unavailable", cause=ConnectionError("down"))

    async def try_get(self, key, cancel=None):
        self._maybe_fail("try_get")
        return await self.inner.try_get(key, cancel)

    async def store(self, key, status_code, body, ttl_seconds=None, cancel=None):
        self._maybe_fail("store")
        await self.inner.store(key, status_code, body, ttl_seconds, cancel)

    async def reserve(self, key, ttl_seconds):
        self._maybe_fail("reserve")
        return await self.inner.reserve(key, ttl_seconds)

    async def release(self, key):
        self._maybe_fail("release")
        return await self.inner.release(key)

    async def cleanup_expired(self):
        return await self.inner.cleanup_expired()


def keyed(method: str = "POST", key: str | None = "order-123") -> Request:
    headers = {"content-type": "application/json"}
    if key is not None:
        headers["X-Idempotency-Key"] = key
    return Request(method=method, path="/api/v1/students", headers=headers, body=b"{}")


@pytest.fixture
def middleware(store: MemoryIdempotencyStore) -> IdempotencyMiddleware:
    return IdempotencyMiddleware(store, IdempotencyConfig(), poll_interval=0.01)


# ============================================================================
# Gating
# ============================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["GET", "HEAD", "OPTIONS"])
async def test_safe_methods_bypass(
    middleware: IdempotencyMiddleware, store: MemoryIdempotencyStore, method: str
) -> None:
    downstream = Downstream(status=200)

    await middleware.process(keyed(method), downstream)
    second = await middleware.process(keyed(method), downstream)

    assert downstream.calls == 2
    assert REPLAYED_HEADER not in second.headers
    assert not (await store.try_get("order-123")).exists


@pytest.mark.asyncio
async def test_no_key_bypass(middleware: IdempotencyMiddleware) -> None:
    downstream = Downstream()
    await middleware.process(keyed(key=None), downstream)
    await middleware.process(keyed(key=None), downstream)
    assert downstream.calls == 2


@pytest.mark.asyncio
async def test_blank_key_bypass(middleware: IdempotencyMiddleware) -> None:
    downstream = Downstream()
    await middleware.process(keyed(key="   "), downstream)
    await middleware.process(keyed(key="   "), downstream)
    assert downstream.calls == 2


@pytest.mark.asyncio
async def test_overlong_key_rejected(middleware: IdempotencyMiddleware) -> None:
    downstream = Downstream()

    response = await middleware.process(keyed(key="k" * 256), downstream)

    assert response.status == 400
    assert "maximum length" in json.loads(response.body)["error"]
    assert downstream.calls == 0


@pytest.mark.asyncio
async def test_key_at_max_length_accepted(middleware: IdempotencyMiddleware) -> None:
    downstream = Downstream()
    response = await middleware.process(keyed(key="k" * 255), downstream)
    assert response.status == 201


@pytest.mark.asyncio
async def test_header_lookup_is_case_insensitive(middleware: IdempotencyMiddleware) -> None:
    downstream = Downstream()
    request = Request("POST", "/x", {"x-idempotency-key": "abc"}, b"")
    await middleware.process(request, downstream)
    replay = await middleware.process(request, downstream)
    assert downstream.calls == 1
    assert replay.headers[REPLAYED_HEADER] == "true"


# ============================================================================
# Record and replay
# ============================================================================


@pytest.mark.asyncio
async def test_first_request_recorded_second_replayed(
    middleware: IdempotencyMiddleware, store: MemoryIdempotencyStore
) -> None:
    downstream = Downstream()

    first = await middleware.process(keyed(), downstream)
    second = await middleware.process(keyed(), downstream)

    assert downstream.calls == 1
    assert first.status == 201
    assert first.headers["x-handler"] == "yes"
    assert REPLAYED_HEADER not in first.headers

    assert second.status == 201
    assert second.body == first.body
    assert second.headers[REPLAYED_HEADER] == "true"
    assert second.headers["content-type"] == "application/json"
    # only status and body are recorded
    assert "x-handler" not in second.headers

    lookup = await store.try_get("order-123")
    assert lookup.status_code == 201


@pytest.mark.asyncio
async def test_failure_status_is_recorded(middleware: IdempotencyMiddleware) -> None:
    downstream = Downstream(status=409, body=b'{"error": "dup"}')

    await middleware.process(keyed(), downstream)
    replay = await middleware.process(keyed(), downstream)

    assert downstream.calls == 1
    assert replay.status == 409
    assert replay.body == b'{"error": "dup"}'


@pytest.mark.asyncio
async def test_same_key_different_method_replays(middleware: IdempotencyMiddleware) -> None:
    downstream = Downstream()
    await middleware.process(keyed("POST"), downstream)
    replay = await middleware.process(keyed("PUT"), downstream)
    assert downstream.calls == 1
    assert replay.headers[REPLAYED_HEADER] == "true"


@pytest.mark.asyncio
async def test_record_uses_configured_ttl(
    store: MemoryIdempotencyStore, clock
) -> None:
    middleware = IdempotencyMiddleware(store, IdempotencyConfig(default_ttl_seconds=60))
    downstream = Downstream()

    await middleware.process(keyed(), downstream)
    clock.advance(seconds=61)
    await middleware.process(keyed(), downstream)

    assert downstream.calls == 2


# ============================================================================
# Exceptions and cancellation
# ============================================================================


@pytest.mark.asyncio
async def test_exception_releases_reservation(
    middleware: IdempotencyMiddleware, store: MemoryIdempotencyStore
) -> None:
    async def exploding(request: Request) -> BufferedResponse:
        raise RuntimeError("downstream crashed")

    with pytest.raises(RuntimeError):
        await middleware.process(keyed(), exploding)

    assert not (await store.try_get("order-123")).exists

    downstream = Downstream()
    response = await middleware.process(keyed(), downstream)
    assert response.status == 201
    assert downstream.calls == 1


@pytest.mark.asyncio
async def test_cancellation_after_execution_stores_nothing(
    middleware: IdempotencyMiddleware, store: MemoryIdempotencyStore
) -> None:
    cancel = CancellationToken()

    async def aborted(request: Request) -> BufferedResponse:
        cancel.cancel()
        return BufferedResponse(201, {}, b"{}")

    with pytest.raises(asyncio.CancelledError):
        await middleware.process(keyed(), aborted, cancel=cancel)

    assert not (await store.try_get("order-123")).exists
    assert await store.reserve("order-123", ttl_seconds=30) is True


@pytest.mark.asyncio
async def test_cancelled_before_lookup(middleware: IdempotencyMiddleware) -> None:
    cancel = CancellationToken()
    cancel.cancel()
    downstream = Downstream()

    with pytest.raises(asyncio.CancelledError):
        await middleware.process(keyed(), downstream, cancel=cancel)

    assert downstream.calls == 0


@pytest.mark.asyncio
async def test_task_cancellation_releases_reservation(
    middleware: IdempotencyMiddleware, store: MemoryIdempotencyStore
) -> None:
    downstream = Downstream(delay=10)
    task = asyncio.create_task(middleware.process(keyed(), downstream))
    await asyncio.sleep(0.05)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert await store.reserve("order-123", ttl_seconds=30) is True


# ============================================================================
# Fail-open
# ============================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize("failing", ["try_get", "reserve"])
async def test_lookup_or_reserve_failure_executes_unrecorded(
    store: MemoryIdempotencyStore, failing: str
) -> None:
    middleware = IdempotencyMiddleware(FailingStore(store, {failing}), IdempotencyConfig())
    downstream = Downstream()

    first = await middleware.process(keyed(), downstream)
    second = await middleware.process(keyed(), downstream)

    assert first.status == second.status == 201
    assert downstream.calls == 2
    assert not (await store.try_get("order-123")).exists


@pytest.mark.asyncio
async def test_store_failure_still_returns_response(store: MemoryIdempotencyStore) -> None:
    middleware = IdempotencyMiddleware(FailingStore(store, {"store"}), IdempotencyConfig())
    downstream = Downstream()

    response = await middleware.process(keyed(), downstream)

    assert response.status == 201
    assert downstream.calls == 1
    # reservation was released, so a retry executes again
    await middleware.process(keyed(), downstream)
    assert downstream.calls == 2


@pytest.mark.asyncio
async def test_release_failure_does_not_mask_original_error(
    store: MemoryIdempotencyStore,
) -> None:
    middleware = IdempotencyMiddleware(FailingStore(store, {"release"}), IdempotencyConfig())

    async def exploding(request: Request) -> BufferedResponse:
        raise ValueError("original")

    with pytest.raises(ValueError, match="original"):
        await middleware.process(keyed(), exploding)


@pytest.mark.asyncio
async def test_non_storage_errors_propagate(store: MemoryIdempotencyStore) -> None:
    class BrokenStore(FailingStore):
        async def try_get(self, key, cancel=None):
            raise KeyError("programming error")

    middleware = IdempotencyMiddleware(BrokenStore(store, set()), IdempotencyConfig())
    with pytest.raises(KeyError):
        await middleware.process(keyed(), Downstream())


# ============================================================================
# Size limit
# ============================================================================


@pytest.mark.asyncio
async def test_oversize_response_not_recorded(store: MemoryIdempotencyStore) -> None:
    middleware = IdempotencyMiddleware(store, IdempotencyConfig(max_buffered_body_bytes=10))
    downstream = Downstream(body=b"x" * 11)

    first = await middleware.process(keyed(), downstream)
    second = await middleware.process(keyed(), downstream)

    assert first.body == b"x" * 11
    assert REPLAYED_HEADER not in second.headers
    assert downstream.calls == 2


@pytest.mark.asyncio
async def test_response_at_limit_recorded(store: MemoryIdempotencyStore) -> None:
    middleware = IdempotencyMiddleware(store, IdempotencyConfig(max_buffered_body_bytes=10))
    downstream = Downstream(body=b"x" * 10)

    await middleware.process(keyed(), downstream)
    await middleware.process(keyed(), downstream)

    assert downstream.calls == 1


@pytest.mark.asyncio
async def test_truncated_response_not_recorded(store: MemoryIdempotencyStore) -> None:
    middleware = IdempotencyMiddleware(store, IdempotencyConfig(max_buffered_body_bytes=10))

    async def rest():
        yield b"y" * 10

    async def partial(request: Request) -> BufferedResponse:
        return BufferedResponse(status=201, headers={}, body=b"x" * 4, remainder=rest())

    response = await middleware.process(keyed(), partial)

    assert response.remainder is not None
    assert not (await store.try_get("order-123")).exists
    # the reservation was released, so the key is free again
    assert await store.reserve("order-123", 30)


@pytest.mark.asyncio
async def test_zero_limit_disables_recording_for_empty_bodies(
    store: MemoryIdempotencyStore,
) -> None:
    middleware = IdempotencyMiddleware(store, IdempotencyConfig(max_buffered_body_bytes=0))
    downstream = Downstream(status=204, body=b"")

    await middleware.process(keyed(method="DELETE"), downstream)
    second = await middleware.process(keyed(method="DELETE"), downstream)

    assert downstream.calls == 2
    assert REPLAYED_HEADER not in second.headers


    assert downstream.calls == 1


# ============================================================================
# Concurrency
# ============================================================================


@pytest.mark.asyncio
async def test_concurrent_duplicates_execute_once(store: MemoryIdempotencyStore) -> None:
    middleware = IdempotencyMiddleware(store, IdempotencyConfig(), poll_interval=0.01)
    downstream = Downstream(delay=0.1)

    responses = await asyncio.gather(*(middleware.process(keyed(), downstream) for _ in range(5)))

    assert downstream.calls == 1
    assert all(r.status == 201 for r in responses)
    assert all(r.body == b'{"id": "42"}' for r in responses)
    assert sum(1 for r in responses if r.headers.get(REPLAYED_HEADER) == "true") == 4


@pytest.mark.asyncio
async def test_no_wait_policy_returns_409(store: MemoryIdempotencyStore) -> None:
    middleware = IdempotencyMiddleware(store, IdempotencyConfig(wait_policy="no-wait"))
    downstream = Downstream(delay=0.1)

    first, second = await asyncio.gather(
        middleware.process(keyed(), downstream),
        middleware.process(keyed(), downstream),
    )

    assert sorted([first.status, second.status]) == [201, 409]
    assert downstream.calls == 1


@pytest.mark.asyncio
async def test_wait_takes_over_released_reservation(store: MemoryIdempotencyStore) -> None:
    middleware = IdempotencyMiddleware(store, IdempotencyConfig(), poll_interval=0.01)
    attempts = 0

    async def flaky(request: Request) -> BufferedResponse:
        nonlocal attempts
        attempts += 1
        await asyncio.sleep(0.05)
        if attempts == 1:
            raise RuntimeError("first attempt failed")
        return BufferedResponse(201, {}, b"second")

    results = await asyncio.gather(
        middleware.process(keyed(), flaky),
        middleware.process(keyed(), flaky),
        return_exceptions=True,
    )

    assert isinstance(results[0], RuntimeError)
    assert isinstance(results[1], BufferedResponse)
    assert results[1].body == b"second"
    assert attempts == 2


@pytest.mark.asyncio
async def test_wait_times_out_with_425(store: MemoryIdempotencyStore) -> None:
    middleware = IdempotencyMiddleware(
        store, IdempotencyConfig(execution_timeout_seconds=1), poll_interval=0.05
    )
    # a reservation nobody fills
    await store.reserve("order-123", ttl_seconds=300)
    downstream = Downstream()

    response = await middleware.process(keyed(), downstream)

    assert response.status == 425
    assert downstream.calls == 0


# ============================================================================
# Caller scoping
# ============================================================================


def keyed_as(subject: str | None) -> Request:
    request = keyed()
    request.subject = subject
    return request


@pytest.mark.asyncio
async def test_same_key_from_different_callers_is_not_shared(
    middleware: IdempotencyMiddleware, store: MemoryIdempotencyStore
) -> None:
    downstream = Downstream()

    await middleware.process(keyed_as("user-1"), downstream)
    other = await middleware.process(keyed_as("user-2"), downstream)
    anonymous = await middleware.process(keyed_as(None), downstream)
    replay = await middleware.process(keyed_as("user-1"), downstream)

    assert downstream.calls == 3
    assert REPLAYED_HEADER not in other.headers
    assert REPLAYED_HEADER not in anonymous.headers
    assert replay.headers[REPLAYED_HEADER] == "true"
    assert (await store.try_get("user-1:order-123")).exists
