"""Framework-agnostic idempotency middleware.

Requests that carry an idempotency key and use a mutating method have their
first response recorded; later requests with the same key get that response
replayed without the downstream handler running again.

The flow for a keyed request:

1. Look the key up. A hit is replayed immediately.
2. On a miss, reserve the key. Exactly one of several concurrent requests
   wins the reservation; the others follow ``wait_policy``.
3. The winner runs the downstream handler with a buffered response,
   records ``{status, body}`` and returns the buffered response. A body
   larger than ``max_buffered_body_bytes`` is passed through unrecorded.
4. If the handler raises or the request is cancelled, the reservation is
   released and nothing is recorded.

Store failures fail open: the request is served as if no key had been sent.

Keys are scoped to the authenticated caller (``Request.subject``), so the same
key sent by two users names two records. Anonymous requests share one
unscoped namespace.

Examples:
    Using the middleware directly::

        from cleankiss.core.middleware import IdempotencyMiddleware, Request
        from cleankiss.storage import MemoryBackend, MemoryIdempotencyStore

        store = MemoryIdempotencyStore(MemoryBackend())
        middleware = IdempotencyMiddleware(store, IdempotencyConfig())

        async def call_next(request):
            return BufferedResponse(status=201, headers={}, body=b'{"id": "42"}')

        response = await middleware.process(request, call_next)
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

from cleankiss.cancellation import CancellationToken, raise_if_cancelled
from cleankiss.config import IdempotencyConfig
from cleankiss.core.replay import BufferedResponse, error_response, replay_response
from cleankiss.exceptions import InvalidIdempotencyKeyError, StorageError
from cleankiss.models import LookupResult
from cleankiss.observability.logging import get_logger
from cleankiss.observability.metrics import (
    record_execution_time,
    record_idempotency,
    record_store_error,
)
from cleankiss.storage.base import IdempotencyStore
from cleankiss.utils.headers import get_header_value

logger = get_logger(__name__)


class Request:
    """Abstract request representation.

    Framework adapters convert their framework-specific request objects into
    this format.

    Attributes:
        method: HTTP method (GET, POST, etc.)
        path: URL path
        headers: Request headers as dict
        body: Request body as bytes
        subject: Authenticated caller id, or None for anonymous requests
    """

    def __init__(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        body: bytes = b"",
        subject: str | None = None,
    ) -> None:
        self.method = method
        self.path = path
        self.headers = headers
        self.body = body
        self.subject = subject


CallNext = Callable[[Request], Awaitable[BufferedResponse]]


class IdempotencyMiddleware:
    """Records and replays responses for keyed mutating requests.

    Attributes:
        store: Idempotency store holding recorded responses.
        config: Middleware configuration.
        poll_interval: Seconds between lookups while waiting on an in-flight
            request with the same key.
    """

    def __init__(
        self,
        store: IdempotencyStore,
        config: IdempotencyConfig | None = None,
        poll_interval: float = 0.1,
    ) -> None:
        self.store = store
        self.config = config or IdempotencyConfig()
        self.poll_interval = poll_interval
        self._methods = frozenset(self.config.enabled_methods)

    async def process(
        self,
        request: Request,
        call_next: CallNext,
        cancel: CancellationToken | None = None,
    ) -> BufferedResponse:
        """Run ``request`` through the idempotency flow.

        Args:
            request: The incoming request.
            call_next: Invokes the downstream pipeline and returns its
                buffered response.
            cancel: Fired by the transport when the client goes away.

        Returns:
            The replayed, freshly executed, or rejected response.

        Raises:
            asyncio.CancelledError: If the request was cancelled before its
                response was recorded.
            Exception: Anything the downstream pipeline raised.
        """
        if request.method.upper() not in self._methods:
            return await call_next(request)

        key = self._extract_key(request)
        if key is None:
            response = await call_next(request)
            record_idempotency("bypass", response.status)
            return response

        try:
            self._validate_key(key)
        except InvalidIdempotencyKeyError as e:
            logger.warning("idempotency.invalid_key", key_length=len(key), error=e.message)
            record_idempotency("rejected", 400)
            return error_response(400, e.message)

        key = self._scoped_key(key, request)
        log = logger.bind(idempotency_key=key, method=request.method, path=request.path)

        try:
            lookup = await self.store.try_get(key, cancel)
        except StorageError as e:
            return await self._fail_open(request, call_next, key, "lookup", e)

        if lookup.exists:
            return self._replay(lookup, key)

        try:
            reserved = await self.store.reserve(key, self.config.execution_timeout_seconds)
        except StorageError as e:
            return await self._fail_open(request, call_next, key, "reserve", e)

        if not reserved:
            return await self._handle_in_flight(request, call_next, key, cancel)

        log.debug("idempotency.reserved")
        return await self._execute_and_record(request, call_next, key, cancel)

    def _extract_key(self, request: Request) -> str | None:
        """Return the stripped key, or None when absent or blank."""
        value = get_header_value(request.headers, self.config.header_name)
        if value is None:
            return None
        value = value.strip()
        return value or None

    def _scoped_key(self, key: str, request: Request) -> str:
        """Namespace the key by caller so one caller cannot replay another's record."""
        if request.subject is None:
            return key
        return f"{request.subject}:{key}"

    def _validate_key(self, key: str) -> None:
        max_length = self.config.max_key_length
        if len(key) > max_length:
            raise InvalidIdempotencyKeyError(
                f"Idempotency key exceeds maximum length of {max_length} characters",
                key=key[:max_length],
            )

    def _replay(self, lookup: LookupResult, key: str) -> BufferedResponse:
        logger.info("idempotency.replayed", idempotency_key=key, status=lookup.status_code)
        record_idempotency("replay", lookup.status_code)
        return replay_response(lookup)

    async def _execute_and_record(
        self,
        request: Request,
        call_next: CallNext,
        key: str,
        cancel: CancellationToken | None,
    ) -> BufferedResponse:
        """Run downstream while holding the reservation, then record."""
        start = time.perf_counter()
        try:
            response = await call_next(request)
            raise_if_cancelled(cancel)
        except (Exception, asyncio.CancelledError) as e:
            logger.info(
                "idempotency.aborted",
                idempotency_key=key,
                error_type=type(e).__name__,
            )
            await self._release(key)
            raise
        record_execution_time(time.perf_counter() - start)

        if not self._recordable(response):
            logger.warning(
                "idempotency.response_too_large",
                idempotency_key=key,
                buffered_bytes=len(response.body),
                complete=response.is_complete,
                max_buffered_body_bytes=self.config.max_buffered_body_bytes,
            )
            await self._release(key)
            record_idempotency("unrecorded", response.status)
            return response

        try:
            await self.store.store(
                key,
                response.status,
                response.body,
                ttl_seconds=self.config.default_ttl_seconds,
                cancel=cancel,
            )
        except asyncio.CancelledError:
            await self._release(key)
            raise
        except StorageError as e:
            logger.error(
                "idempotency.store_failed",
                idempotency_key=key,
                operation="store",
                error=e.message,
            )
            record_store_error("store")
            await self._release(key)
            record_idempotency("fail_open", response.status)
            return response

        logger.info("idempotency.recorded", idempotency_key=key, status=response.status)
        record_idempotency("recorded", response.status)
        return response

    def _recordable(self, response: BufferedResponse) -> bool:
        """A limit of 0 disables recording, even for empty bodies."""
        limit = self.config.max_buffered_body_bytes
        return limit > 0 and response.is_complete and len(response.body) <= limit

    async def _handle_in_flight(
        self,
        request: Request,
        call_next: CallNext,
        key: str,
        cancel: CancellationToken | None,
    ) -> BufferedResponse:
        """Another request holds the reservation for ``key``."""
        if self.config.wait_policy == "no-wait":
            logger.info("idempotency.in_progress", idempotency_key=key)
            record_idempotency("in_progress", 409)
            return error_response(409, "A request with this idempotency key is already in progress")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.execution_timeout_seconds
        while loop.time() < deadline:
            await asyncio.sleep(self.poll_interval)
            raise_if_cancelled(cancel)

            try:
                lookup = await self.store.try_get(key, cancel)
                if lookup.exists:
                    return self._replay(lookup, key)
                # the holder gave up; take the key over
                reserved = await self.store.reserve(key, self.config.execution_timeout_seconds)
            except StorageError as e:
                return await self._fail_open(request, call_next, key, "wait", e)

            if reserved:
                logger.debug("idempotency.reservation_taken_over", idempotency_key=key)
                return await self._execute_and_record(request, call_next, key, cancel)

        logger.warning(
            "idempotency.wait_timeout",
            idempotency_key=key,
            timeout_seconds=self.config.execution_timeout_seconds,
        )
        record_idempotency("timeout", 425)
        return error_response(425, "A request with this idempotency key is still in progress")

    async def _fail_open(
        self,
        request: Request,
        call_next: CallNext,
        key: str,
        operation: str,
        error: StorageError,
    ) -> BufferedResponse:
        logger.error(
            "idempotency.store_unavailable",
            idempotency_key=key,
            operation=operation,
            error=error.message,
        )
        record_store_error(operation)
        response = await call_next(request)
        record_idempotency("fail_open", response.status)
        return response

    async def _release(self, key: str) -> None:
        try:
            await self.store.release(key)
        except StorageError as e:
            # the reservation still expires after execution_timeout_seconds
            logger.error(
                "idempotency.release_failed",
                idempotency_key=key,
                operation="release",
                error=e.message,
            )
            record_store_error("release")
