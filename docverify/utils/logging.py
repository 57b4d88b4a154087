"""Structured logging utilities using structlog for pipeline context and tracing."""

import logging
import sys
import uuid
from typing import Any, Optional

import structlog
from structlog.processors import JSONRenderer
from structlog.contextvars import merge_contextvars

from docverify.config.settings import settings

IS_TTY = sys.stderr.isatty()


def configure_structured_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """
    Configure structured logging with appropriate processors and renderers.

    Uses:
    - Console renderer for development (colorized, human-readable)
    - JSON renderer for production (structured, machine-readable)
    - Context binding for verification_id and correlation_id

    Args:
        log_level: Override for settings.log_level
        log_format: Override for settings.log_format
    """
    level_name = (log_level or settings.log_level).upper()
    fmt = (log_format or settings.log_format).lower()

    processors = [
        merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if IS_TTY and fmt == "console":
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    else:
        processors.append(JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level_name, logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_structured_logger(
    name: str,
    verification_id: Optional[str] = None,
    certificate_id: Optional[str] = None,
    **additional_context: Any,
) -> structlog.BoundLogger:
    """
    Get a structured logger with bound context.

    Args:
        name: Logger name (typically module name)
        verification_id: Optional verification ID to bind
        certificate_id: Optional certificate ID to bind
        **additional_context: Additional context to bind

    Returns:
        Configured BoundLogger instance with context

    Example:
        >>> logger = get_structured_logger("orchestrator", verification_id="abc-123")
        >>> logger.info("step_completed", step="forensic", duration_ms=12)
    """
    logger = structlog.get_logger(name)

    if verification_id:
        logger = logger.bind(verification_id=verification_id)
    if certificate_id:
        logger = logger.bind(certificate_id=certificate_id)

    if additional_context:
        logger = logger.bind(**additional_context)

    return logger


def get_correlation_id() -> str:
    """
    Generate a correlation ID for tracing one pipeline run across components.

    Returns:
        UUID string for correlation
    """
    return str(uuid.uuid4())


# Configure on module import
configure_structured_logging()


__all__ = [
    "get_structured_logger",
    "get_correlation_id",
    "configure_structured_logging",
]
