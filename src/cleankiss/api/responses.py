"""Mapping from handler results to HTTP responses.

- 200/201 -> the JSON-encoded value.
- 204 -> empty body.
- Any failure -> ``{"error": message}`` with the outcome code.
"""

from typing import Any

from fastapi.encoders import jsonable_encoder
from starlette.responses import JSONResponse, Response

from cleankiss.results import OutcomeCode, Result


def result_to_response(result: Result[Any]) -> Response:
    """Build the HTTP response for ``result``.

    Examples:
        >>> result_to_response(Result.forbidden("Missing permission: students:create")).status_code
        403
        >>> result_to_response(Result.no_content()).body
        b''
    """
    status_code = int(result.status_code)

    if result.is_failure:
        return JSONResponse(status_code=status_code, content={"error": result.error})

    if result.status_code == OutcomeCode.NO_CONTENT:
        return Response(status_code=status_code)

    return JSONResponse(status_code=status_code, content=jsonable_encoder(result.value))
