"""structlog setup."""

import logging
from typing import Optional

import structlog

from corpusflow.config.settings import get_settings


def configure_logging(level: Optional[str] = None) -> None:
    """Configure structlog with a console renderer and a level filter.

    Args:
        level: Log level name (defaults to ``CORPUSFLOW_LOG_LEVEL``)
    """
    level_name = (level or get_settings().log_level).upper()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level_name)
        ),
        cache_logger_on_first_use=True,
    )
