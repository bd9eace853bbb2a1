"""
Structured logging configuration using structlog.
JSON output for production, coloured console for dev.

The engine only emits events through `structlog.get_logger(__name__)`;
the host process calls setup_logging() once at startup to decide where
they go.
"""

import logging
import sys
from typing import Optional, TextIO

import structlog

from meterflags.config import settings


def setup_logging(
    level: Optional[str] = None,
    json_output: Optional[bool] = None,
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """
    Route structlog and stdlib logging through one handler.

    Arguments left as None fall back to settings: LOG_LEVEL for the level
    and DEBUG for console (instead of JSON) rendering. Returns the
    installed handler.
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    if json_output is None:
        json_output = not settings.DEBUG

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    ))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    # SQL statement logging follows DB_ECHO, never the engine's level
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DB_ECHO else logging.WARNING
    )
    return handler
