"""structlog configuration for processes embedding the risk engine."""

from __future__ import annotations

import logging
from typing import Optional

import structlog

from .config import get_settings


def configure_logging(level: Optional[str] = None) -> None:
    """Set up structlog with human-readable console output.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ...); defaults to
            the LOG_LEVEL setting
    """
    if level is None:
        level = get_settings().LOG_LEVEL
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
