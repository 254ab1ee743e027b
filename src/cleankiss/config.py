"""Configuration module for cleankiss.

This module provides immutable pydantic configuration models for the
request pipeline: idempotency replay, bearer-token authentication and the
application shell (logging, store selection).

Example:
    Basic usage with defaults:

        >>> config = IdempotencyConfig()
        >>> config.enabled_methods
        ['POST', 'PUT', 'PATCH', 'DELETE']

    Custom configuration:

        >>> config = IdempotencyConfig(
        ...     enabled_methods=["POST", "PUT"],
        ...     default_ttl_seconds=3600,
        ...     storage_adapter="redis",
        ...     redis_url="redis://myhost:6379/0"
        ... )

    Loading from environment:

        >>> import os
        >>> os.environ['CLEANKISS_IDEMPOTENCY_ENABLED_METHODS'] = 'POST,PUT'
        >>> os.environ['CLEANKISS_IDEMPOTENCY_DEFAULT_TTL_SECONDS'] = '3600'
        >>> config = IdempotencyConfig.from_env()

    Loading the whole application config:

        >>> app_config = AppConfig.from_dict({
        ...     'log_level': 'DEBUG',
        ...     'idempotency': {'wait_policy': 'no-wait'},
        ... })
"""

import os
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

# Only mutating methods can be made idempotent; safe methods always pass through
MUTATING_HTTP_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _load_env(cls: type[BaseModel], prefix: str) -> dict[str, Any]:
    """Collect ``PREFIX_FIELD`` environment variables for a flat model."""
    config_dict: dict[str, Any] = {}
    for field_name in cls.model_fields:
        env_value = os.environ.get(f"{prefix}{field_name.upper()}")
        if env_value is not None:
            # pydantic coerces numeric/bool strings; list fields accept CSV
            config_dict[field_name] = env_value
    return config_dict


class IdempotencyConfig(BaseModel):
    """Configuration for the idempotency replay middleware.

    Attributes:
        enabled_methods: HTTP methods subject to idempotency replay. Default
            is the mutating set: POST, PUT, PATCH, DELETE.
        header_name: Request header carrying the idempotency key.
        default_ttl_seconds: Retention window for recorded responses.
            Must be between 1 and 604800 (7 days). Default is 86400 (24 hours).
        wait_policy: What a request does when another request with the same
            key is in flight. "wait" polls until the record appears, "no-wait"
            returns 409 Conflict immediately.
        execution_timeout_seconds: How long an in-flight reservation lives and
            how long "wait" polls before answering 425. Between 1 and 300.
        max_buffered_body_bytes: Largest response body that is buffered and
            recorded. Adapters stop buffering past it and stream the rest
            through unrecorded. 0 disables recording entirely, including
            empty-body responses.
        max_key_length: Longest accepted idempotency key.
        storage_adapter: Backend for records: "memory" or "redis".
        redis_url: Connection URL for the Redis adapter.
        key_prefix: Namespace prefix for store keys, keeping records apart
            from unrelated cached data in a shared backend.

    Note:
        This class is immutable (frozen=True) to prevent accidental modification
        after initialization. Create a new instance if you need different settings.
    """

    enabled_methods: list[str] | str = Field(
        default=["POST", "PUT", "PATCH", "DELETE"],
        description="List of HTTP methods that require idempotency checks",
    )
    header_name: str = Field(
        default="X-Idempotency-Key",
        min_length=1,
        description="Request header carrying the idempotency key",
    )
    default_ttl_seconds: int = Field(
        default=86400,
        description="Time-to-live in seconds for recorded responses (1-604800)",
    )
    wait_policy: Literal["wait", "no-wait"] = Field(
        default="wait",
        description="Policy for concurrent requests with the same key",
    )
    execution_timeout_seconds: int = Field(
        default=30,
        description="Reservation lifetime and maximum wait in seconds (1-300)",
    )
    max_buffered_body_bytes: int = Field(
        default=1048576,
        description="Largest response body in bytes that will be recorded",
    )
    max_key_length: int = Field(
        default=255,
        ge=1,
        description="Maximum idempotency key length",
    )
    storage_adapter: Literal["memory", "redis"] = Field(
        default="memory",
        description="Type of storage backend for idempotency records",
    )
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Connection URL for Redis storage adapter",
    )
    key_prefix: str = Field(
        default="idempotency:",
        description="Namespace prefix for idempotency store keys",
    )

    model_config = {"frozen": True}

    @field_validator("enabled_methods", mode="before")
    @classmethod
    def validate_enabled_methods(cls, v: Any) -> list[str]:
        """Validate and normalize enabled HTTP methods.

        Converts methods to uppercase. Safe methods (GET, HEAD, OPTIONS) and
        anything else outside POST, PUT, PATCH and DELETE are rejected, so the
        middleware can never intercept them.

        Raises:
            ValueError: If any method is not a mutating HTTP method.

        Example:
            >>> config = IdempotencyConfig(enabled_methods=["post", "put"])
            >>> config.enabled_methods
            ['POST', 'PUT']
        """
        if isinstance(v, str):
            # Handle comma-separated string (from environment variables)
            v = [method.strip() for method in v.split(",") if method.strip()]

        if not isinstance(v, list):
            raise ValueError("enabled_methods must be a list or comma-separated string")

        methods = [method.upper() for method in v]

        invalid_methods = set(methods) - MUTATING_HTTP_METHODS
        if invalid_methods:
            raise ValueError(
                f"Invalid HTTP methods: {', '.join(sorted(invalid_methods))}. "
                f"Idempotency applies only to: {', '.join(sorted(MUTATING_HTTP_METHODS))}"
            )

        return methods

    @field_validator("default_ttl_seconds")
    @classmethod
    def validate_default_ttl_seconds(cls, v: int) -> int:
        if not (1 <= v <= 604800):
            raise ValueError(f"default_ttl_seconds must be between 1 and 604800 (7 days), got {v}")
        return v

    @field_validator("execution_timeout_seconds")
    @classmethod
    def validate_execution_timeout_seconds(cls, v: int) -> int:
        if not (1 <= v <= 300):
            raise ValueError(
                f"execution_timeout_seconds must be between 1 and 300 (5 minutes), got {v}"
            )
        return v

    @field_validator("max_buffered_body_bytes")
    @classmethod
    def validate_max_buffered_body_bytes(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"max_buffered_body_bytes must be >= 0, got {v}")
        return v

    @classmethod
    def from_env(cls, prefix: str = "CLEANKISS_IDEMPOTENCY_") -> "IdempotencyConfig":
        """Create configuration from environment variables.

        Variable names are uppercase field names with the prefix. Missing
        variables fall back to the defaults defined on the model.

        Example:
            >>> import os
            >>> os.environ['CLEANKISS_IDEMPOTENCY_WAIT_POLICY'] = 'no-wait'
            >>> IdempotencyConfig.from_env().wait_policy
            'no-wait'
        """
        return cls(**_load_env(cls, prefix))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "IdempotencyConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)


class AuthConfig(BaseModel):
    """Bearer token verification settings.

    Attributes:
        jwt_secret: HMAC secret for token signatures. At least 32 characters.
        jwt_issuer: Expected ``iss`` claim.
        jwt_audience: Expected ``aud`` claim.
        jwt_algorithm: Signature algorithm.
        expiration_minutes: Lifetime of tokens issued by this service.
        permission_claim: Claim listing the caller's permissions.
        role_claim: Claim listing the caller's roles.
    """

    jwt_secret: str = Field(
        default="change-me-in-production-this-is-only-a-dev-secret",
        description="HMAC secret for bearer tokens",
    )
    jwt_issuer: str = Field(default="cleankiss", min_length=1)
    jwt_audience: str = Field(default="cleankiss-api", min_length=1)
    jwt_algorithm: Literal["HS256", "HS384", "HS512"] = Field(default="HS256")
    expiration_minutes: int = Field(default=60)
    permission_claim: str = Field(default="permissions", min_length=1)
    role_claim: str = Field(default="roles", min_length=1)

    model_config = {"frozen": True}

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        if len(v) < 32:
            raise ValueError("jwt_secret must be at least 32 characters")
        return v

    @field_validator("expiration_minutes")
    @classmethod
    def validate_expiration_minutes(cls, v: int) -> int:
        if not (1 <= v <= 1440):
            raise ValueError(f"expiration_minutes must be between 1 and 1440, got {v}")
        return v

    @classmethod
    def from_env(cls, prefix: str = "CLEANKISS_AUTH_") -> "AuthConfig":
        return cls(**_load_env(cls, prefix))


class AppConfig(BaseModel):
    """Top-level application configuration.

    Attributes:
        log_level: Minimum log level.
        json_logs: Emit JSON logs (production) instead of console output.
        cleanup_interval_seconds: Interval of the expired-entry sweep for the
            in-memory backend.
        idempotency: Idempotency middleware settings.
        auth: Bearer token settings.
    """

    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True)
    cleanup_interval_seconds: int = Field(default=300, ge=1)
    idempotency: IdempotencyConfig = Field(default_factory=IdempotencyConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)

    model_config = {"frozen": True}

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: Any) -> str:
        level = str(v).upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {v}. Valid levels are: {', '.join(sorted(VALID_LOG_LEVELS))}"
            )
        return level

    @classmethod
    def from_env(cls, prefix: str = "CLEANKISS_") -> "AppConfig":
        """Create the full configuration from environment variables.

        Nested sections read ``{prefix}IDEMPOTENCY_*`` and ``{prefix}AUTH_*``.
        """
        config_dict: dict[str, Any] = {}
        for field_name in ("log_level", "json_logs", "cleanup_interval_seconds"):
            env_value = os.environ.get(f"{prefix}{field_name.upper()}")
            if env_value is not None:
                config_dict[field_name] = env_value

        config_dict["idempotency"] = IdempotencyConfig.from_env(f"{prefix}IDEMPOTENCY_")
        config_dict["auth"] = AuthConfig.from_env(f"{prefix}AUTH_")
        return cls(**config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "AppConfig":
        return cls(**config_dict)
