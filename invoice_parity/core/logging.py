"""
Logging configuration for the Invoice Parity service.

Structured logs go to stderr, rendered as JSON lines by default or as
colored console output with ``PARITY_LOG_FORMAT=text``. Batch processing
binds the job id into the context so every per-record entry carries it.
"""

import logging
import sys
from typing import Optional

import structlog
from structlog.typing import EventDict, Processor

from invoice_parity.core.config import Settings, get_settings


def add_app_context(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Stamp every entry with the application name and version.

    Args:
        logger: Logger instance
        method_name: Method name being logged
        event_dict: Event dictionary

    Returns:
        EventDict: Event dictionary with app context added
    """
    settings = get_settings()
    event_dict["app"] = "invoice_parity"
    event_dict["version"] = settings.app_version
    event_dict["environment"] = "development" if settings.debug else "production"
    return event_dict


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure structlog on top of the standard library logging module.

    Args:
        settings: Settings providing ``log_level`` and ``log_format``;
            the cached settings are used when omitted
    """
    settings = settings or get_settings()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
    ]

    if settings.log_format == "json":
        processors: list[Processor] = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # stdout is reserved for command output
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.log_level),
    )

    # One entry per download is enough
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def bind_job_context(job_id: str) -> None:
    """
    Attach a batch job id to every entry logged from the current context.

    Tasks created afterwards inherit the binding, so the comparisons a batch
    fans out log under its id.
    """
    structlog.contextvars.bind_contextvars(job_id=job_id)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a logger for a module.

    Args:
        name: Logger name, normally ``__name__``

    Returns:
        BoundLogger: Logger that renders through the configured processors

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("comparison_started", old_ref="a.pdf")
    """
    return structlog.get_logger(name)
