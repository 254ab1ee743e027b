"""Generic request handler contract.

A handler is an async callable object that turns a request into a
:class:`~cleankiss.results.Result`. Decorators such as
:class:`~cleankiss.core.authorization.AuthorizedHandler` implement the same
protocol, so they compose freely.

Examples:
    Implementing a handler::

        class GetStudentHandler:
            async def handle(
                self, query: GetStudentQuery, cancel: CancellationToken | None = None
            ) -> Result[StudentDto]:
                ...
"""

from typing import Protocol, TypeVar, runtime_checkable

from cleankiss.cancellation import CancellationToken
from cleankiss.results import Result

RequestT_contra = TypeVar("RequestT_contra", contravariant=True)
ResponseT_co = TypeVar("ResponseT_co", covariant=True)


@runtime_checkable
class Handler(Protocol[RequestT_contra, ResponseT_co]):
    """Turns one request into one Result; no exceptions for expected outcomes."""

    async def handle(
        self,
        request: RequestT_contra,
        cancel: CancellationToken | None = None,
    ) -> Result[ResponseT_co]: ...
