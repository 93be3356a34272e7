"""structlog setup for procmetrics and the components that embed it."""

import logging
from typing import Any, TextIO

import structlog
from structlog.typing import FilteringBoundLogger


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    return number if isinstance(number, int) else logging.INFO


def setup_logging(level: str = "info", fmt: str = "console", stream: TextIO | None = None) -> None:
    """
    Configure structlog for procmetrics.

    Module loggers are lazy proxies and loggers are not cached, so this can
    be called after procmetrics is imported, and again later to change the
    configuration.

    Args:
        level: Minimum level name ("debug", "info", ...). Unknown names mean info.
        fmt: "json" for one JSON object per line, anything else for the console renderer.
        stream: Where events are written; the current ``sys.stdout`` when omitted.
    """
    if fmt == "json":
        renderer: structlog.typing.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level_number(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_values: Any) -> FilteringBoundLogger:
    """Return a lazy logger tagged with ``component``."""
    return structlog.get_logger(component=component, **initial_values)
