"""
Structured Logging Configuration

Configures structlog for the library. Modules obtain their loggers with
``structlog.get_logger(__name__)``; this only decides how the events are
filtered and rendered.
"""

import logging

import structlog

from reportproxy.config import Settings, get_settings


def configure_logging(settings: Settings | None = None) -> None:
    """
    Configure structlog processors and level filtering.

    Args:
        settings: Settings to read level and format from. Defaults to
            the lazily loaded global settings.
    """
    settings = settings or get_settings()
    level = logging.getLevelName(settings.effective_log_level)

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if settings.log_format == "json":
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )
