"""Tagged success/failure outcome shared by every layer.

Handlers return a :class:`Result` instead of raising for expected business
outcomes. The outcome code is framework agnostic; the HTTP boundary
(:mod:`cleankiss.api.responses`) maps it to transport semantics later.

Examples:
    Returning outcomes from a handler::

        if await repository.exists_by_email(command.email):
            return Result.conflict("A student with this email already exists")
        return Result.created(to_dto(student))

    Folding a result::

        message = result.match(
            on_success=lambda dto: f"registered {dto.id}",
            on_failure=lambda error: f"rejected: {error}",
        )
"""

from collections.abc import Callable
from enum import IntEnum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, model_validator

T = TypeVar("T")
R = TypeVar("R")


class OutcomeCode(IntEnum):
    """Closed set of outcome codes a handler may produce."""

    OK = 200
    CREATED = 201
    NO_CONTENT = 204
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409

    @property
    def is_success(self) -> bool:
        return 200 <= self.value < 300


class Result(BaseModel, Generic[T]):
    """Immutable outcome of a handler invocation.

    Exactly one of ``value`` and ``error`` is meaningful, decided by whether
    ``error`` is set. Operations with no value use ``Result[None]``.

    Attributes:
        value: Success payload (``None`` on failure or for value-less success).
        error: Failure message; ``None`` means success.
        status_code: Outcome code driving the boundary mapping.
    """

    value: T | None = Field(default=None, description="Success payload")
    error: str | None = Field(default=None, description="Failure message")
    status_code: OutcomeCode = Field(..., description="Outcome code")

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @model_validator(mode="after")
    def validate_outcome(self) -> "Result[T]":
        """Reject results whose error and outcome code disagree."""
        if self.error is None and not self.status_code.is_success:
            raise ValueError(f"Success result cannot carry status {int(self.status_code)}")
        if self.error is not None and self.status_code.is_success:
            raise ValueError(f"Failure result cannot carry status {int(self.status_code)}")
        return self

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    # Success

    @classmethod
    def success(cls, value: Any = None) -> "Result[T]":
        return cls(value=value, status_code=OutcomeCode.OK)

    @classmethod
    def created(cls, value: Any) -> "Result[T]":
        return cls(value=value, status_code=OutcomeCode.CREATED)

    @classmethod
    def no_content(cls) -> "Result[T]":
        return cls(status_code=OutcomeCode.NO_CONTENT)

    # Client errors

    @classmethod
    def bad_request(cls, error: str) -> "Result[T]":
        return cls(error=error, status_code=OutcomeCode.BAD_REQUEST)

    @classmethod
    def unauthorized(cls, error: str) -> "Result[T]":
        return cls(error=error, status_code=OutcomeCode.UNAUTHORIZED)

    @classmethod
    def forbidden(cls, error: str) -> "Result[T]":
        return cls(error=error, status_code=OutcomeCode.FORBIDDEN)

    @classmethod
    def not_found(cls, error: str) -> "Result[T]":
        return cls(error=error, status_code=OutcomeCode.NOT_FOUND)

    @classmethod
    def conflict(cls, error: str) -> "Result[T]":
        return cls(error=error, status_code=OutcomeCode.CONFLICT)

    def match(self, on_success: Callable[[T | None], R], on_failure: Callable[[str], R]) -> R:
        """Fold the result into one of two continuations.

        Args:
            on_success: Called with the value when the result is a success.
            on_failure: Called with the error message when it is a failure.

        Returns:
            Whatever the selected continuation returns.

        Examples:
            >>> Result.conflict("taken").match(lambda v: 0, lambda e: len(e))
            5
        """
        if self.error is None:
            return on_success(self.value)
        return on_failure(self.error)
