"""ASGI middleware for FastAPI and Starlette applications.

This module adapts the framework-agnostic pieces of cleankiss to Starlette's
``BaseHTTPMiddleware``:

- :class:`CorrelationIdMiddleware` binds a correlation id to every log event.
- :class:`ExceptionMiddleware` maps escaped exceptions to JSON errors.
- :class:`PrincipalMiddleware` resolves the bearer token to a principal.
- :class:`ASGIIdempotencyMiddleware` wraps
  :class:`~cleankiss.core.middleware.IdempotencyMiddleware`.

Starlette runs the most recently added middleware first, so add them in
reverse of the order a request passes through them.

Examples:
    FastAPI integration::

        from fastapi import FastAPI

        app = FastAPI()
        app.add_middleware(ASGIIdempotencyMiddleware, store=store, config=config.idempotency)
        app.add_middleware(PrincipalMiddleware, auth_config=config.auth)
        app.add_middleware(ExceptionMiddleware)
        app.add_middleware(CorrelationIdMiddleware)

        @app.post("/api/v1/students")
        async def register(data: RegisterStudentCommand):
            # replayed for repeated X-Idempotency-Key values
            ...
"""

import asyncio
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest
from starlette.responses import JSONResponse, Response, StreamingResponse

from cleankiss.auth.principal import (
    get_current_principal,
    reset_current_principal,
    set_current_principal,
)
from cleankiss.auth.tokens import decode_principal
from cleankiss.cancellation import CancellationToken
from cleankiss.config import AuthConfig, IdempotencyConfig
from cleankiss.core.middleware import IdempotencyMiddleware, Request
from cleankiss.core.replay import BufferedResponse
from cleankiss.exceptions import AuthenticationError, DomainValidationError
from cleankiss.models import Principal
from cleankiss.observability.logging import get_logger
from cleankiss.storage.base import IdempotencyStore
from cleankiss.utils.headers import CORRELATION_ID_HEADER, extract_bearer_token

logger = get_logger(__name__)

CallNext = Callable[[StarletteRequest], Awaitable[Response]]

# nginx convention for "client closed request"
CLIENT_CLOSED_REQUEST = 499


class ASGIIdempotencyMiddleware(BaseHTTPMiddleware):
    """ASGI wrapper around the core idempotency middleware.

    Attributes:
        store: Idempotency store for recorded responses
        config: Middleware configuration
        middleware: Core middleware instance
    """

    def __init__(
        self,
        app: Any,
        store: IdempotencyStore,
        config: IdempotencyConfig | None = None,
        poll_interval: float = 0.1,
    ) -> None:
        super().__init__(app)
        self.store = store
        self.config = config or IdempotencyConfig()
        self.middleware = IdempotencyMiddleware(store, self.config, poll_interval=poll_interval)

    async def dispatch(self, request: StarletteRequest, call_next: CallNext) -> Response:
        internal_request = await self._convert_request(request)
        cancel = CancellationToken()
        # shares the scope with downstream, so routes can hand it to handlers
        request.state.cancellation = cancel

        async def handler(_req: Request) -> BufferedResponse:
            response = await call_next(request)
            buffered = await self._buffer_response(response)
            # the request body was read up front, so this only sees a real disconnect
            if await request.is_disconnected():
                cancel.cancel()
                await _discard(buffered.remainder)
            return buffered

        try:
            result = await self.middleware.process(internal_request, handler, cancel=cancel)
        except asyncio.CancelledError:
            if not cancel.is_cancelled:
                raise
            logger.info("request.aborted", method=request.method, path=request.url.path)
            return Response(status_code=CLIENT_CLOSED_REQUEST)

        return self._convert_response(result)

    async def _convert_request(self, request: StarletteRequest) -> Request:
        body = await request.body()
        return Request(
            method=request.method,
            path=request.url.path,
            headers=dict(request.headers.items()),
            body=body,
            # set by PrincipalMiddleware, which runs outside this one
            subject=get_current_principal().id,
        )

    async def _buffer_response(self, response: Response) -> BufferedResponse:
        """Read the body up to ``max_buffered_body_bytes``.

        Past the limit the unread chunks stay in the iterator and travel as
        ``remainder``, so memory per request is bounded by the limit plus one
        chunk.
        """
        headers = dict(response.headers)
        if not hasattr(response, "body_iterator"):
            return BufferedResponse(
                status=response.status_code, headers=headers, body=bytes(response.body)
            )

        limit = self.config.max_buffered_body_bytes
        iterator = response.body_iterator
        chunks: list[bytes] = []
        size = 0
        overflowed = False
        async for chunk in iterator:
            data = chunk if isinstance(chunk, bytes) else str(chunk).encode()
            chunks.append(data)
            size += len(data)
            if size > limit:
                overflowed = True
                break

        return BufferedResponse(
            status=response.status_code,
            headers=headers,
            body=b"".join(chunks),
            remainder=iterator if overflowed else None,
        )

    def _convert_response(self, response: BufferedResponse) -> Response:
        if response.remainder is not None:
            return StreamingResponse(
                _prepend(response.body, response.remainder),
                status_code=response.status,
                headers=response.headers,
            )

        return Response(
            content=response.body,
            status_code=response.status,
            headers=response.headers,
        )


async def _prepend(prefix: bytes, rest: AsyncIterator[Any]) -> AsyncIterator[bytes]:
    yield prefix
    async for chunk in rest:
        yield chunk if isinstance(chunk, bytes) else str(chunk).encode()


async def _discard(rest: AsyncIterator[Any] | None) -> None:
    """Close an unread body stream so the downstream app stops producing it."""
    aclose = getattr(rest, "aclose", None)
    if aclose is not None:
        await aclose()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds ``X-Correlation-Id`` to structlog context and echoes it back.

    A missing header gets a freshly generated id.
    """

    async def dispatch(self, request: StarletteRequest, call_next: CallNext) -> Response:
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("correlation_id")

        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response


class PrincipalMiddleware(BaseHTTPMiddleware):
    """Publishes the caller's :class:`Principal` for the rest of the request.

    A missing or invalid bearer token yields the anonymous principal; handler
    requirements then decide whether that is enough.
    """

    def __init__(self, app: Any, auth_config: AuthConfig | None = None) -> None:
        super().__init__(app)
        self.auth_config = auth_config or AuthConfig()

    async def dispatch(self, request: StarletteRequest, call_next: CallNext) -> Response:
        principal = self._resolve(request)
        token = set_current_principal(principal)
        try:
            return await call_next(request)
        finally:
            reset_current_principal(token)

    def _resolve(self, request: StarletteRequest) -> Principal:
        bearer = extract_bearer_token(dict(request.headers.items()))
        if bearer is None:
            return Principal.anonymous()

        try:
            return decode_principal(self.auth_config, bearer)
        except AuthenticationError as e:
            logger.warning("auth.invalid_token", error=e.message, path=request.url.path)
            return Principal.anonymous()


class ExceptionMiddleware(BaseHTTPMiddleware):
    """Turns exceptions that escaped the pipeline into JSON error responses.

    - :class:`DomainValidationError` -> 400 with its message.
    - Anything else -> 500 with a generic message; details only go to the log.
    """

    async def dispatch(self, request: StarletteRequest, call_next: CallNext) -> Response:
        try:
            return await call_next(request)
        except DomainValidationError as e:
            logger.warning(
                "request.validation_failed",
                method=request.method,
                path=request.url.path,
                error=e.message,
            )
            return JSONResponse(status_code=400, content={"error": e.message})
        except Exception as e:
            logger.error(
                "request.failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={"error": "An unexpected error occurred"},
            )
