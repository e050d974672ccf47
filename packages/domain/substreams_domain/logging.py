"""Structured logging for graph building and statistics collection.

Loggers are structlog loggers. Components take a logger argument so that a
run can bind its own context; when none is given they fall back to
get_logger(__name__).

Usage:
    from substreams_domain.logging import configure_logging, get_logger

    configure_logging(level="DEBUG")
    logger = get_logger(__name__).bind(manifest="erc20.yaml")
    logger.info("store_stats.started", stores=4)
"""

import logging
import sys
from typing import Any, Optional

import structlog


def configure_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structlog output.

    Args:
        level: Minimum level name ("DEBUG", "INFO", ...)
        json_format: Render JSON lines instead of console output
    """
    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: Optional[str] = None, **initial_values: Any) -> Any:
    """Get a structured logger, optionally bound to initial context."""
    if name:
        return structlog.get_logger(name, **initial_values)
    return structlog.get_logger(**initial_values)


__all__ = ["configure_logging", "get_logger"]
