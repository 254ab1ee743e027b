"""Application factory.

:func:`create_app` composes the whole service: one shared
:class:`~cleankiss.storage.backend.MemoryBackend`, the idempotency store,
the student repository and cache, the authorization-wrapped handlers, the
routes and the middleware stack. Everything is injectable so tests can swap
in a manual clock or a preloaded repository.

Request path, outermost first::

    CorrelationIdMiddleware -> ExceptionMiddleware -> PrincipalMiddleware
        -> ASGIIdempotencyMiddleware -> route -> AuthorizedHandler -> handler

Examples:
    Running with uvicorn::

        app = create_app(AppConfig.from_env())
        uvicorn.run(app, host="0.0.0.0", port=8000)
"""

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from starlette.responses import Response

from cleankiss import __version__
from cleankiss.adapters.asgi import (
    ASGIIdempotencyMiddleware,
    CorrelationIdMiddleware,
    ExceptionMiddleware,
    PrincipalMiddleware,
)
from cleankiss.api.responses import result_to_response
from cleankiss.auth.principal import ContextCurrentUser
from cleankiss.auth.service import AuthorizationService
from cleankiss.cancellation import CancellationToken
from cleankiss.config import AppConfig, IdempotencyConfig
from cleankiss.core.authorization import AuthorizedHandler, RequirementRegistry
from cleankiss.core.cleanup import start_cleanup_task, stop_cleanup_task
from cleankiss.observability.logging import get_logger
from cleankiss.storage.backend import MemoryBackend
from cleankiss.storage.base import IdempotencyStore
from cleankiss.storage.memory import MemoryIdempotencyStore
from cleankiss.storage.redis_store import RedisIdempotencyStore
from cleankiss.students.cache import CacheService
from cleankiss.students.handlers import (
    DeleteStudentCommand,
    DeleteStudentHandler,
    GetStudentHandler,
    GetStudentQuery,
    RegisterStudentCommand,
    RegisterStudentHandler,
    student_requirements,
)
from cleankiss.students.repository import InMemoryStudentRepository, StudentRepository
from cleankiss.utils.clock import Clock

logger = get_logger(__name__)


def cancellation_of(request: Request) -> CancellationToken | None:
    """The token the idempotency middleware attached, if it saw this request."""
    return getattr(request.state, "cancellation", None)


def build_store(config: IdempotencyConfig, backend: MemoryBackend) -> IdempotencyStore:
    """Create the idempotency store selected by ``config.storage_adapter``."""
    if config.storage_adapter == "redis":
        return RedisIdempotencyStore.from_url(
            config.redis_url,
            key_prefix=config.key_prefix,
            default_ttl_seconds=config.default_ttl_seconds,
        )

    return MemoryIdempotencyStore(
        backend,
        key_prefix=config.key_prefix,
        default_ttl_seconds=config.default_ttl_seconds,
    )


def create_app(
    config: AppConfig | None = None,
    *,
    backend: MemoryBackend | None = None,
    store: IdempotencyStore | None = None,
    repository: StudentRepository | None = None,
    registry: RequirementRegistry | None = None,
    clock: Clock | None = None,
    poll_interval: float = 0.1,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Application configuration; defaults are used when omitted.
        backend: Shared in-memory backend; created from ``clock`` if omitted.
        store: Idempotency store; built from ``config.idempotency`` if omitted.
        repository: Student repository; an empty in-memory one if omitted.
        registry: Handler requirement table; the default student
            permissions if omitted.
        clock: Time source for the backend and new entities.
        poll_interval: Lookup interval while waiting on an in-flight key.

    Returns:
        The configured application. Components are exposed on ``app.state``.
    """
    config = config or AppConfig()
    if backend is None:
        backend = MemoryBackend(clock=clock)
    if store is None:
        store = build_store(config.idempotency, backend)
    if repository is None:
        repository = InMemoryStudentRepository()
    if registry is None:
        registry = student_requirements()
    cache = CacheService(backend)

    authorization = AuthorizationService(ContextCurrentUser())
    register = AuthorizedHandler(
        RegisterStudentHandler(repository, cache, clock=clock), authorization, registry
    )
    get_student = AuthorizedHandler(GetStudentHandler(repository, cache), authorization, registry)
    delete_student = AuthorizedHandler(
        DeleteStudentHandler(repository, cache), authorization, registry
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        task = await start_cleanup_task(
            [store, cache], interval_seconds=config.cleanup_interval_seconds
        )
        logger.info(
            "app.started",
            storage_adapter=config.idempotency.storage_adapter,
            wait_policy=config.idempotency.wait_policy,
        )
        try:
            yield
        finally:
            await stop_cleanup_task(task)
            close = getattr(store, "close", None)
            if close is not None:
                await close()
            logger.info("app.stopped")

    app = FastAPI(
        title="cleankiss",
        description="Student API with permission checks and idempotent writes",
        version=__version__,
        lifespan=lifespan,
    )

    router = APIRouter(prefix="/api/v1/students", tags=["students"])

    @router.post("", status_code=201)
    async def register_student(command: RegisterStudentCommand, request: Request) -> Response:
        result = await register.handle(command, cancellation_of(request))
        return result_to_response(result)

    @router.get("/{student_id}")
    async def read_student(student_id: uuid.UUID, request: Request) -> Response:
        query = GetStudentQuery(student_id=student_id)
        return result_to_response(await get_student.handle(query, cancellation_of(request)))

    @router.delete("/{student_id}", status_code=204)
    async def remove_student(student_id: uuid.UUID, request: Request) -> Response:
        command = DeleteStudentCommand(student_id=student_id)
        return result_to_response(await delete_student.handle(command, cancellation_of(request)))

    app.include_router(router)

    # added innermost first
    app.add_middleware(
        ASGIIdempotencyMiddleware,
        store=store,
        config=config.idempotency,
        poll_interval=poll_interval,
    )
    app.add_middleware(PrincipalMiddleware, auth_config=config.auth)
    app.add_middleware(ExceptionMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    app.state.config = config
    app.state.backend = backend
    app.state.store = store
    app.state.repository = repository
    app.state.cache = cache
    app.state.registry = registry
    return app
