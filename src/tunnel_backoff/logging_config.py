"""Structured logging for the tunnel backoff engine.

structlog sits on top of stdlib logging. Only the ``tunnel_backoff``
package logger is configured, so a host application's root handlers are
left alone. Production renders one JSON object per line; development uses
the console renderer. Engines bind ``slot_id`` onto their logger so
multi-slot output stays separable.
"""

import logging
import sys
from typing import Optional, TextIO

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from tunnel_backoff.config import Settings

APP_LABEL = "tunnel-backoff"
PACKAGE_LOGGER = "tunnel_backoff"


def add_app_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Tag every event with the application label."""
    event_dict.setdefault("app", APP_LABEL)
    return event_dict


def _pre_chain(is_production: bool) -> list[Processor]:
    """Processors shared by structlog events and foreign stdlib records."""
    chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
    ]
    if is_production:
        chain.append(structlog.processors.format_exc_info)
    return chain


def configure_logging(
    log_level: str = "INFO",
    environment: str = "development",
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Configure structlog and the package logger.

    Args:
        log_level: Level name; unknown names fall back to INFO
        environment: "production" selects the JSON renderer
        stream: Output stream (stdout when omitted)

    Returns:
        The configured ``tunnel_backoff`` stdlib logger
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    is_production = environment.lower() == "production"
    pre_chain = _pre_chain(is_production)
    renderer: Processor
    if is_production:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream is None and sys.stdout.isatty())

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=pre_chain,
        )
    )

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False

    structlog.get_logger(__name__).debug(
        "Logging configured",
        log_level=logging.getLevelName(level),
        renderer="json" if is_production else "console",
    )
    return package_logger


def configure_logging_from_settings(
    settings: Optional[Settings] = None, stream: Optional[TextIO] = None
) -> logging.Logger:
    """Configure logging from LOG_LEVEL / ENVIRONMENT settings."""
    settings = settings or Settings()
    return configure_logging(settings.LOG_LEVEL, settings.ENVIRONMENT, stream=stream)
