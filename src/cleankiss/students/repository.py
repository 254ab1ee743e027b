"""Student persistence.

:class:`InMemoryStudentRepository` keeps students in a dict and is what the
application wires by default. Anything satisfying :class:`StudentRepository`
can replace it.
"""

import asyncio
import uuid
from typing import Protocol, runtime_checkable

from cleankiss.cancellation import CancellationToken, raise_if_cancelled
from cleankiss.students.domain import Email, Student


@runtime_checkable
class StudentRepository(Protocol):
    async def get_by_id(
        self, student_id: uuid.UUID, cancel: CancellationToken | None = None
    ) -> Student | None: ...

    async def get_by_email(
        self, email: Email, cancel: CancellationToken | None = None
    ) -> Student | None: ...

    async def exists_by_email(
        self, email: Email, cancel: CancellationToken | None = None
    ) -> bool: ...

    async def get_all(self, cancel: CancellationToken | None = None) -> list[Student]: ...

    async def add(self, student: Student, cancel: CancellationToken | None = None) -> None: ...

    async def update(self, student: Student, cancel: CancellationToken | None = None) -> None: ...

    async def delete(self, student: Student, cancel: CancellationToken | None = None) -> None: ...


class InMemoryStudentRepository:
    """Dict-backed repository, ordered by insertion."""

    def __init__(self) -> None:
        self._students: dict[uuid.UUID, Student] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._students)

    async def get_by_id(
        self, student_id: uuid.UUID, cancel: CancellationToken | None = None
    ) -> Student | None:
        raise_if_cancelled(cancel)
        return self._students.get(student_id)

    async def get_by_email(
        self, email: Email, cancel: CancellationToken | None = None
    ) -> Student | None:
        raise_if_cancelled(cancel)
        for student in self._students.values():
            if student.email == email:
                return student
        return None

    async def exists_by_email(self, email: Email, cancel: CancellationToken | None = None) -> bool:
        return await self.get_by_email(email, cancel) is not None

    async def get_all(self, cancel: CancellationToken | None = None) -> list[Student]:
        raise_if_cancelled(cancel)
        return list(self._students.values())

    async def add(self, student: Student, cancel: CancellationToken | None = None) -> None:
        raise_if_cancelled(cancel)
        async with self._lock:
            self._students[student.id] = student

    async def update(self, student: Student, cancel: CancellationToken | None = None) -> None:
        raise_if_cancelled(cancel)
        async with self._lock:
            if student.id not in self._students:
                raise KeyError(f"Student {student.id} does not exist")
            self._students[student.id] = student

    async def delete(self, student: Student, cancel: CancellationToken | None = None) -> None:
        raise_if_cancelled(cancel)
        async with self._lock:
            self._students.pop(student.id, None)
