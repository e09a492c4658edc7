"""Structured Logging Configuration.

This module configures structlog with JSON output and context binding.
JSON output is the production default for log aggregation; a console
renderer is available for local development.

Configuration:
- LOG_FORMAT: "json" (default) or "console"
- LOG_LEVEL: DEBUG, INFO (default), WARNING, ERROR, CRITICAL
- Context binding support (project IDs, poll IDs, etc.)
"""

import logging
import os
import sys
from typing import Any

import structlog


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog processors and the stdlib root handler.

    Args:
        level: Log level name (default: LOG_LEVEL env var or "INFO")
        fmt: "json" or "console" (default: LOG_FORMAT env var or "json")
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    output_format = (fmt or os.getenv("LOG_FORMAT", "json")).lower()

    renderer: structlog.types.Processor
    if output_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Get a structured logger instance for the given module.

    Args:
        name: Module name (typically __name__)

    Returns:
        structlog logger bound to the module name
    """
    return structlog.get_logger(name)
