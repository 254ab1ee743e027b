"""Permission-based authorization decorator for handlers.

Requirements are declared per handler type in a :class:`RequirementRegistry`,
a registration table built once at composition time. The decorator looks its
wrapped handler up in that table when it is constructed, then on every call:

1. No requirements: delegate immediately.
2. Otherwise check each requirement in declaration order. A permission is
   checked with ``has_permission``, a role with ``is_in_role``. The first
   failure returns ``Result.forbidden(...)`` without evaluating the rest and
   without invoking the wrapped handler.
3. All passed: delegate and return the inner result unchanged.

A requirement naming neither a permission nor a role checks nothing and
always passes. Exceptions raised by the authorization service propagate.

Examples:
    Declarative registration::

        registry = RequirementRegistry()

        @registry.requires(permission=Permissions.Students.CREATE)
        class RegisterStudentHandler:
            async def handle(self, command, cancel=None): ...

    Explicit registration at composition time::

        registry.register(DeleteStudentHandler, Requirement.for_permission("students:delete"))

    Wrapping::

        handler = AuthorizedHandler(RegisterStudentHandler(...), authorization, registry)
        result = await handler.handle(command)
"""

from collections.abc import Callable
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from cleankiss.auth.service import AuthorizationService
from cleankiss.cancellation import CancellationToken
from cleankiss.core.handler import Handler
from cleankiss.observability.logging import get_logger
from cleankiss.observability.metrics import record_denial
from cleankiss.results import Result

logger = get_logger(__name__)

RequestT = TypeVar("RequestT")
ResponseT = TypeVar("ResponseT")
HandlerType = TypeVar("HandlerType", bound=type)


class Requirement(BaseModel):
    """A permission and/or role a caller must hold.

    Attributes:
        permission: Required permission string, if any.
        role: Required role, if any.
    """

    permission: str | None = None
    role: str | None = None

    model_config = {"frozen": True}

    @classmethod
    def for_permission(cls, permission: str) -> "Requirement":
        return cls(permission=permission)

    @classmethod
    def for_role(cls, role: str) -> "Requirement":
        return cls(role=role)


class RequirementRegistry:
    """Handler type -> ordered requirements, populated during startup wiring."""

    def __init__(self) -> None:
        self._table: dict[type, tuple[Requirement, ...]] = {}

    def register(self, handler_type: type, *requirements: Requirement) -> None:
        """Append requirements for ``handler_type`` in the given order."""
        self._table[handler_type] = self._table.get(handler_type, ()) + tuple(requirements)

    def requires(
        self,
        permission: str | None = None,
        role: str | None = None,
    ) -> Callable[[HandlerType], HandlerType]:
        """Class decorator form of :meth:`register`.

        Stacked decorators keep top-to-bottom reading order: the topmost one
        is evaluated first.
        """
        requirement = Requirement(permission=permission, role=role)

        def decorate(handler_type: HandlerType) -> HandlerType:
            # decorators apply bottom-up, so prepend
            self._table[handler_type] = (requirement,) + self._table.get(handler_type, ())
            return handler_type

        return decorate

    def requirements_for(self, handler: Any) -> tuple[Requirement, ...]:
        """Requirements registered for ``handler`` (an instance or a type)."""
        handler_type = handler if isinstance(handler, type) else type(handler)
        return self._table.get(handler_type, ())


class AuthorizedHandler(Generic[RequestT, ResponseT]):
    """Wraps a handler and enforces its registered requirements first.

    Attributes:
        inner: The wrapped handler.
        requirements: Requirements resolved for ``inner`` at construction.
    """

    def __init__(
        self,
        inner: Handler[RequestT, ResponseT],
        authorization: AuthorizationService,
        registry: RequirementRegistry,
    ) -> None:
        self.inner = inner
        self._authorization = authorization
        self.requirements = registry.requirements_for(inner)

    async def handle(
        self,
        request: RequestT,
        cancel: CancellationToken | None = None,
    ) -> Result[ResponseT]:
        if not self.requirements:
            return await self.inner.handle(request, cancel)

        denial = self._check_requirements()
        if denial is not None:
            return denial

        return await self.inner.handle(request, cancel)

    def _check_requirements(self) -> Result[ResponseT] | None:
        for requirement in self.requirements:
            if requirement.permission is not None:
                if not self._authorization.has_permission(requirement.permission):
                    return self._deny("permission", requirement.permission)

            if requirement.role is not None:
                if not self._authorization.is_in_role(requirement.role):
                    return self._deny("role", requirement.role)

        return None

    def _deny(self, kind: str, name: str) -> Result[ResponseT]:
        logger.warning(
            "authorization.denied",
            handler=type(self.inner).__name__,
            requirement_kind=kind,
            requirement=name,
            user_id=self._authorization.get_user_id(),
        )
        record_denial(kind)
        return Result.forbidden(f"Missing {kind}: {name}")
