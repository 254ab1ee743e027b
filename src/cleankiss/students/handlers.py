"""Student use cases.

Each handler implements :class:`~cleankiss.core.handler.Handler` and
returns a :class:`~cleankiss.results.Result`. Authorization is not checked
here; the application wraps every handler in
:class:`~cleankiss.core.authorization.AuthorizedHandler` using
:func:`student_requirements`.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel

from cleankiss.auth.permissions import Permissions
from cleankiss.cancellation import CancellationToken, raise_if_cancelled
from cleankiss.core.authorization import Requirement, RequirementRegistry
from cleankiss.observability.logging import get_logger
from cleankiss.results import Result
from cleankiss.students.cache import CacheService
from cleankiss.students.domain import Email, Name, Student
from cleankiss.students.repository import StudentRepository
from cleankiss.utils.clock import Clock

logger = get_logger(__name__)

STUDENT_CACHE_TTL_SECONDS = 10 * 60


class StudentDto(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"frozen": True}


def to_dto(student: Student) -> StudentDto:
    return StudentDto(
        id=student.id,
        name=student.name.value,
        email=student.email.value,
        created_at=student.created_at,
        updated_at=student.updated_at,
    )


class CacheKeys:
    """Cache key builders for student data."""

    ALL_STUDENTS = "students:all"

    @staticmethod
    def student(student_id: uuid.UUID) -> str:
        return f"student:{student_id}"

    @staticmethod
    def student_by_email(email: str) -> str:
        return f"student:email:{email}"


class RegisterStudentCommand(BaseModel):
    name: str
    email: str


class GetStudentQuery(BaseModel):
    student_id: uuid.UUID


class DeleteStudentCommand(BaseModel):
    student_id: uuid.UUID


class RegisterStudentHandler:
    """Creates a student; 409 when the e-mail is already registered.

    Raises:
        DomainValidationError: If the name or e-mail is malformed.
    """

    def __init__(
        self,
        repository: StudentRepository,
        cache: CacheService,
        clock: Clock | None = None,
    ) -> None:
        self._repository = repository
        self._cache = cache
        self._clock = clock

    async def handle(
        self,
        request: RegisterStudentCommand,
        cancel: CancellationToken | None = None,
    ) -> Result[StudentDto]:
        name = Name.create(request.name)
        email = Email.create(request.email)

        if await self._repository.exists_by_email(email, cancel):
            return Result.conflict("A student with this email already exists")

        raise_if_cancelled(cancel)
        student = Student.register(name, email, clock=self._clock)
        await self._repository.add(student, cancel)
        await self._cache.remove(CacheKeys.ALL_STUDENTS)

        logger.info("student.registered", student_id=str(student.id))
        return Result.created(to_dto(student))


class GetStudentHandler:
    """Looks a student up through the cache; 404 when unknown."""

    def __init__(self, repository: StudentRepository, cache: CacheService) -> None:
        self._repository = repository
        self._cache = cache

    async def handle(
        self,
        request: GetStudentQuery,
        cancel: CancellationToken | None = None,
    ) -> Result[StudentDto]:
        async def load() -> StudentDto | None:
            student = await self._repository.get_by_id(request.student_id, cancel)
            return None if student is None else to_dto(student)

        dto = await self._cache.get_or_create(
            CacheKeys.student(request.student_id),
            load,
            ttl_seconds=STUDENT_CACHE_TTL_SECONDS,
        )
        if dto is None:
            return Result.not_found(f"Student with ID {request.student_id} not found")
        return Result.success(dto)


class DeleteStudentHandler:
    """Removes a student and its cache entries; 404 when unknown."""

    def __init__(self, repository: StudentRepository, cache: CacheService) -> None:
        self._repository = repository
        self._cache = cache

    async def handle(
        self,
        request: DeleteStudentCommand,
        cancel: CancellationToken | None = None,
    ) -> Result[None]:
        student = await self._repository.get_by_id(request.student_id, cancel)
        if student is None:
            return Result.not_found(f"Student with ID {request.student_id} not found")

        await self._repository.delete(student, cancel)
        await self._cache.remove(CacheKeys.student(student.id))
        await self._cache.remove(CacheKeys.student_by_email(student.email.value))
        await self._cache.remove(CacheKeys.ALL_STUDENTS)

        logger.info("student.deleted", student_id=str(student.id))
        return Result.no_content()


def student_requirements(registry: RequirementRegistry | None = None) -> RequirementRegistry:
    """Register the default permission for each student handler."""
    registry = registry or RequirementRegistry()
    registry.register(
        RegisterStudentHandler, Requirement.for_permission(Permissions.Students.CREATE)
    )
    registry.register(GetStudentHandler, Requirement.for_permission(Permissions.Students.VIEW))
    registry.register(
        DeleteStudentHandler, Requirement.for_permission(Permissions.Students.DELETE)
    )
    return registry
