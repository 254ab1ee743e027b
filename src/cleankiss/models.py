"""Core data models for cleankiss.

This module provides the data structures shared between the idempotency
store, the replay middleware and the authorization layer:

- :class:`StoredResponse` - the ``{status, body}`` tuple persisted per key.
- :class:`LookupResult` - outcome of an idempotency store lookup.
- :class:`Principal` - the per-request identity snapshot.

Examples:
    Persisting a captured response::

        stored = StoredResponse.from_body(201, b'{"id": "42"}')
        payload = stored.model_dump_json()

    Reading it back::

        stored = StoredResponse.model_validate_json(payload)
        stored.get_body_bytes()
"""

import base64

from pydantic import BaseModel, Field, field_validator


class StoredResponse(BaseModel):
    """A recorded response that can be replayed for a repeated key.

    The body is base64-encoded so binary content survives any backend that
    stores JSON documents.

    Attributes:
        status: HTTP status code of the original response.
        body_b64: Base64-encoded response body.
    """

    status: int = Field(
        ...,
        description="HTTP status code",
        ge=100,
        le=599,
        examples=[200, 201, 409],
    )
    body_b64: str = Field(
        default="",
        description="Base64-encoded response body",
        examples=["eyJpZCI6ICI0MiJ9"],
    )

    model_config = {"frozen": True}

    @field_validator("body_b64")
    @classmethod
    def validate_base64(cls, v: str) -> str:
        """Validate that the body is properly base64-encoded.

        Raises:
            ValueError: If the string is not valid base64.
        """
        try:
            base64.b64decode(v, validate=True)
        except Exception as e:
            raise ValueError(f"Invalid base64 encoding: {e}") from e
        return v

    @classmethod
    def from_body(cls, status: int, body: bytes) -> "StoredResponse":
        return cls(status=status, body_b64=base64.b64encode(body).decode("ascii"))

    def get_body_bytes(self) -> bytes:
        """Decode and return the response body as bytes.

        Examples:
            >>> StoredResponse(status=200, body_b64="SGVsbG8=").get_body_bytes()
            b'Hello'
        """
        return base64.b64decode(self.body_b64)


class LookupResult(BaseModel):
    """Result of looking up an idempotency key.

    A miss is ``exists=False`` with zero-valued fields; lookups never raise
    for an absent key.

    Attributes:
        exists: Whether a completed record was found.
        status_code: Recorded status code (0 on a miss).
        body: Recorded response body (empty on a miss).
    """

    exists: bool
    status_code: int = 0
    body: bytes = b""

    model_config = {"frozen": True}

    @classmethod
    def miss(cls) -> "LookupResult":
        return cls(exists=False)

    @classmethod
    def hit(cls, stored: StoredResponse) -> "LookupResult":
        return cls(exists=True, status_code=stored.status, body=stored.get_body_bytes())


class Principal(BaseModel):
    """Read-only identity snapshot for the current request.

    Built once at request start from the caller's credentials and discarded
    at request end.

    Attributes:
        id: Subject identifier, ``None`` when anonymous.
        email: Optional e-mail claim.
        is_authenticated: Whether credentials were presented and verified.
        roles: Granted roles.
        permissions: Granted permission strings (e.g. ``students:create``).
    """

    id: str | None = None
    email: str | None = None
    is_authenticated: bool = False
    roles: frozenset[str] = Field(default_factory=frozenset)
    permissions: frozenset[str] = Field(default_factory=frozenset)

    model_config = {"frozen": True}

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls()
