"""
Structured logging for all triage components.

Every module gets its logger the same way:

    from shared.logging import get_logger
    log = get_logger("tracker", "search")

    log.info("tracker.search.complete", query=query, result_count=12)

Event names are dotted `component.subject.action` strings; everything else is
passed as key/value context. The launcher calls `configure_logging()` once;
library code never configures logging itself.
"""

import logging
import sys

import structlog

_configured = False


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure structlog for the process.

    Args:
        level: Minimum level name ("DEBUG", "INFO", "WARNING", ...)
        json_output: Render one JSON object per line instead of console output
    """
    global _configured

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
    _configured = True


def is_configured() -> bool:
    return _configured


def get_logger(component: str, name: str):
    """
    Get a logger bound to a component and module name.

    The returned proxy resolves the structlog configuration lazily, so
    module-level loggers pick up `configure_logging()` even when it runs
    after import.
    """
    return structlog.get_logger(component=component, module=name)
