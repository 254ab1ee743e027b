"""Response buffering and replay for the idempotency middleware.

A replay is reconstructed from the persisted ``{status, body}`` tuple only.
Original response headers are not recorded, so every replay carries:

- ``content-type: application/json``
- ``X-Idempotent-Replayed: true``

Examples:
    Replaying a lookup hit::

        from cleankiss.core.replay import replay_response

        lookup = await store.try_get("order-123")
        if lookup.exists:
            response = replay_response(lookup)
            # response.status == 201
            # response.headers["X-Idempotent-Replayed"] == "true"
"""

import json
from collections.abc import AsyncIterator

from cleankiss.models import LookupResult
from cleankiss.utils.headers import add_replay_headers


class BufferedResponse:
    """A materialized HTTP response.

    The middleware needs the whole body before it can record it, so
    downstream responses are read into one of these first. Adapters stop
    reading once the body outgrows ``max_buffered_body_bytes``; the part read
    so far is ``body`` and the unread rest is left in ``remainder`` for the
    adapter to stream through. Such a response is never recorded.

    Attributes:
        status: HTTP status code (e.g., 200, 404, 500)
        headers: Response headers as key-value pairs
        body: Response body as bytes, or its buffered prefix
        remainder: Unread body chunks, or None when ``body`` is complete
    """

    def __init__(
        self,
        status: int,
        headers: dict[str, str],
        body: bytes,
        remainder: AsyncIterator[bytes] | None = None,
    ) -> None:
        self.status = status
        self.headers = headers
        self.body = body
        self.remainder = remainder

    @property
    def is_complete(self) -> bool:
        return self.remainder is None

    def __repr__(self) -> str:
        return (
            f"BufferedResponse(status={self.status}, body_bytes={len(self.body)}, "
            f"complete={self.is_complete})"
        )


def replay_response(lookup: LookupResult) -> BufferedResponse:
    """Reconstruct a response from a lookup hit.

    Args:
        lookup: A lookup result with ``exists=True``.

    Returns:
        BufferedResponse with the recorded status and body.

    Raises:
        ValueError: If the lookup was a miss.

    Examples:
        >>> from cleankiss.models import StoredResponse
        >>> lookup = LookupResult.hit(StoredResponse.from_body(201, b'{"id": "42"}'))
        >>> response = replay_response(lookup)
        >>> response.status
        201
        >>> response.headers["X-Idempotent-Replayed"]
        'true'
    """
    if not lookup.exists:
        raise ValueError("Cannot replay a lookup miss")

    headers = add_replay_headers({"content-type": "application/json"})
    return BufferedResponse(status=lookup.status_code, headers=headers, body=lookup.body)


def error_response(status: int, message: str) -> BufferedResponse:
    """Build a small JSON error body the middleware answers with directly."""
    return BufferedResponse(
        status=status,
        headers={"content-type": "application/json"},
        body=json.dumps({"error": message}).encode(),
    )
