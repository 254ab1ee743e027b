"""Student entity and its value objects.

Value objects validate on construction and raise
:class:`~cleankiss.exceptions.DomainValidationError` for malformed input;
the HTTP boundary turns that into a 400.

Examples:
    >>> Email.create("  Ada@Example.COM ").value
    'ada@example.com'
    >>> Name.create("   ")
    Traceback (most recent call last):
    ...
    cleankiss.exceptions.DomainValidationError: Name cannot be empty
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from cleankiss.exceptions import DomainValidationError
from cleankiss.utils.clock import Clock, SystemClock

NAME_MAX_LENGTH = 100


class Name(BaseModel):
    """A student's display name: trimmed, non-blank, at most 100 characters."""

    value: str

    model_config = {"frozen": True}

    @classmethod
    def create(cls, raw: str | None) -> "Name":
        if raw is None or not raw.strip():
            raise DomainValidationError("Name cannot be empty")
        trimmed = raw.strip()
        if len(trimmed) > NAME_MAX_LENGTH:
            raise DomainValidationError(f"Name cannot exceed {NAME_MAX_LENGTH} characters")
        return cls(value=trimmed)

    def __str__(self) -> str:
        return self.value


class Email(BaseModel):
    """A trimmed, lower-cased e-mail address.

    Only the presence of ``@`` is checked; deliverability is not this
    object's concern.
    """

    value: str

    model_config = {"frozen": True}

    @classmethod
    def create(cls, raw: str | None) -> "Email":
        if raw is None or not raw.strip():
            raise DomainValidationError("Email cannot be empty")
        normalized = raw.strip().lower()
        if "@" not in normalized:
            raise DomainValidationError("Email is invalid")
        return cls(value=normalized)

    def __str__(self) -> str:
        return self.value


class Student(BaseModel):
    """A registered student.

    Attributes:
        id: Unique identifier.
        name: Display name.
        email: Unique e-mail address.
        created_at: Registration time (UTC).
        updated_at: Last modification time, ``None`` until first update.
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    name: Name
    email: Email
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def register(cls, name: Name, email: Email, clock: Clock | None = None) -> "Student":
        now = (clock or SystemClock()).now()
        return cls(name=name, email=email, created_at=now)

    def update_name(self, name: Name, clock: Clock | None = None) -> None:
        self.name = name
        self.updated_at = (clock or SystemClock()).now()

    def update_email(self, email: Email, clock: Clock | None = None) -> None:
        self.email = email
        self.updated_at = (clock or SystemClock()).now()
