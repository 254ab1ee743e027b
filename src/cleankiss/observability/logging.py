"""structlog setup for the student API.

Every module logs through ``get_logger(__name__)`` with dotted event names
(``idempotency.replayed``, ``authorization.denied``, ``request.failed``) and
keyword fields rather than formatted messages.

Request-scoped fields are not passed by hand. :class:`CorrelationIdMiddleware`
binds ``correlation_id`` into ``structlog.contextvars`` and the first processor
below merges it into each event, so a single request can be followed from
the transport layer down to the store::

    {"event": "authorization.denied", "requirement_kind": "permission",
     "requirement": "students:create", "correlation_id": "9f0c...",
     "level": "warning", "timestamp": "2024-01-01T00:00:00.000000Z"}

``demo_app.py`` calls :func:`configure_logging` once with the values from
:class:`~cleankiss.config.AppConfig`.
"""

import logging
import sys
from typing import Any

import structlog


def _processors(json_output: bool) -> list[Any]:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        # tracebacks become a string field; the console renderer prints them itself
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    return processors


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Install the structlog pipeline.

    Args:
        level: Minimum level name, already validated by ``AppConfig``.
        json_output: JSON lines for production, coloured console output for
            local runs.
    """
    numeric_level = getattr(logging, level.upper())

    # uvicorn and other stdlib loggers share the stream and threshold
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)

    structlog.configure(
        processors=_processors(json_output),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    return structlog.get_logger(name)
