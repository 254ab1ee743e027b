"""Custom exceptions for cleankiss.

Expected business outcomes (not found, conflict, forbidden) never travel as
exceptions; they are returned as :class:`cleankiss.results.Result` failures.
The exceptions in this module cover the remaining two categories:

- Structural validation failures (malformed value objects), which the HTTP
  boundary maps to 400.
- Infrastructure faults (store unreachable, misconfigured wiring), which the
  HTTP boundary maps to 500 without leaking detail to the caller.

Examples:
    Handling a storage error::

        from cleankiss.exceptions import StorageError

        try:
            lookup = await store.try_get(key)
        except StorageError as e:
            logger.error("idempotency.store_unavailable", error=str(e))
            lookup = LookupResult.miss()
"""


class CleanKissError(Exception):
    """Base exception for all cleankiss errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class DomainValidationError(CleanKissError, ValueError):
    """A value object or command was structurally invalid.

    Subclasses ``ValueError`` so callers that only know the builtin
    "invalid argument" signal can still catch it.

    Examples:
        >>> raise DomainValidationError("Email is invalid")
        Traceback (most recent call last):
        ...
        cleankiss.exceptions.DomainValidationError: Email is invalid
    """


class InvalidIdempotencyKeyError(CleanKissError):
    """The idempotency key header was present but unusable.

    Attributes:
        message: Human-readable error description.
        key: The offending key (possibly truncated by the caller).
    """

    def __init__(self, message: str, key: str) -> None:
        super().__init__(message)
        self.key = key


class StorageError(CleanKissError):
    """Idempotency store or cache backend operation failed.

    Raised by store implementations for transient backend failures (network,
    timeouts, unavailable service). Implementations must not leak
    backend-specific exceptions; they wrap them in this class instead.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception that caused the storage error.

    Examples:
        Raising a storage error::

            try:
                await redis.get(key)
            except RedisError as e:
                raise StorageError(
                    message=f"Failed to retrieve key from Redis: {e}",
                    cause=e,
                ) from e
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize the storage error with details.

        Args:
            message: Human-readable error description.
            cause: The underlying exception that caused the storage error.
        """
        super().__init__(message)
        self.cause = cause


class ConfigurationError(CleanKissError):
    """Application wiring is incomplete or invalid.

    Raised at composition time, for example when an authorization service is
    built without a principal accessor. Never used as a runtime branch.
    """


class AuthenticationError(CleanKissError):
    """Presented credentials could not be verified.

    The HTTP layer does not reject the request for this; it proceeds with an
    anonymous principal and lets authorization requirements decide.
    """
