"""Student registration, lookup and removal."""

from cleankiss.students.cache import CacheService
from cleankiss.students.domain import Email, Name, Student
from cleankiss.students.handlers import (
    CacheKeys,
    DeleteStudentCommand,
    DeleteStudentHandler,
    GetStudentHandler,
    GetStudentQuery,
    RegisterStudentCommand,
    RegisterStudentHandler,
    StudentDto,
    student_requirements,
    to_dto,
)
from cleankiss.students.repository import InMemoryStudentRepository, StudentRepository

__all__ = [
    "CacheKeys",
    "CacheService",
    "DeleteStudentCommand",
    "DeleteStudentHandler",
    "Email",
    "GetStudentHandler",
    "GetStudentQuery",
    "InMemoryStudentRepository",
    "Name",
    "RegisterStudentCommand",
    "RegisterStudentHandler",
    "Student",
    "StudentDto",
    "StudentRepository",
    "student_requirements",
    "to_dto",
]
