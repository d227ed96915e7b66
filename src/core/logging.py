"""Structured logging configuration using structlog.

JSON lines in production (LOG_FORMAT=json), coloured console output in
development (LOG_FORMAT=console). Request IDs and, during a batch run,
the case being polled are carried in structlog contextvars so provider
and notification logs can be traced back to one case.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from src.core.config import Settings

_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "sqlalchemy.engine")


def setup_logging(settings: Settings) -> None:
    """Configure structlog processors and stdlib log integration."""
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level.upper())

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_case_context(case_id: str, court_category: str) -> None:
    """Attach the case currently being polled to every subsequent log line."""
    structlog.contextvars.bind_contextvars(case_id=case_id, court_category=court_category)


def clear_case_context() -> None:
    structlog.contextvars.unbind_contextvars("case_id", "court_category")
