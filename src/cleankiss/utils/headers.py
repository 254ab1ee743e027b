"""Header names and helpers used by the request pipeline.

This module provides:
- The header names the pipeline reads and writes
- Case-insensitive header lookup
- Replay header decoration
"""

IDEMPOTENCY_KEY_HEADER = "X-Idempotency-Key"
REPLAYED_HEADER = "X-Idempotent-Replayed"
CORRELATION_ID_HEADER = "X-Correlation-Id"
AUTHORIZATION_HEADER = "Authorization"


def get_header_value(
    headers: dict[str, str],
    header_name: str,
    default: str | None = None,
) -> str | None:
    """Get header value with case-insensitive lookup.

    Args:
        headers: Headers dictionary
        header_name: Name of header to find (case-insensitive)
        default: Default value if header not found

    Returns:
        Header value or default

    Example:
        >>> headers = {"x-idempotency-key": "order-123"}
        >>> get_header_value(headers, "X-Idempotency-Key")
        'order-123'
        >>> get_header_value(headers, "missing", "default")
        'default'
    """
    header_name_lower = header_name.lower()

    for key, value in headers.items():
        if key.lower() == header_name_lower:
            return value

    return default


def add_replay_headers(headers: dict[str, str]) -> dict[str, str]:
    """Return a copy of ``headers`` tagged as a replayed response.

    Example:
        >>> add_replay_headers({"content-type": "application/json"})
        {'content-type': 'application/json', 'X-Idempotent-Replayed': 'true'}
    """
    result = headers.copy()
    result[REPLAYED_HEADER] = "true"
    return result


def extract_bearer_token(headers: dict[str, str]) -> str | None:
    """Pull the token out of an ``Authorization: Bearer <token>`` header.

    Example:
        >>> extract_bearer_token({"authorization": "Bearer abc.def"})
        'abc.def'
        >>> extract_bearer_token({"authorization": "Basic Zm9v"}) is None
        True
    """
    value = get_header_value(headers, AUTHORIZATION_HEADER)
    if not value:
        return None

    scheme, _, token = value.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
