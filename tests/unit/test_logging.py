"""Unit tests for the structlog pipeline."""

import structlog

from cleankiss.observability.logging import _processors


def test_json_pipeline_formats_exceptions_before_rendering() -> None:
    processors = _processors(json_output=True)

    assert processors[0] is structlog.contextvars.merge_contextvars
    assert structlog.processors.format_exc_info in processors
    assert isinstance(processors[-1], structlog.processors.JSONRenderer)


def test_console_pipeline_leaves_exceptions_to_the_renderer() -> None:
    processors = _processors(json_output=False)

    assert structlog.processors.format_exc_info not in processors
    assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
