"""Centralized logging configuration with structlog.

Provides structured JSON logging for production use with proper context binding.
Supports both JSON (production) and console (development) output formats.
Identity fields are hashed before any renderer sees them.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from recognition_guard.services.identity import hash_identity

IDENTITY_FIELDS: tuple[str, ...] = ("giver_id", "recipient_id", "user_id", "actor_id")


def add_app_context(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add application-level context to all log entries.

    Args:
        logger: Logger instance
        method_name: Method name
        event_dict: Event dictionary

    Returns:
        Enhanced event dictionary
    """
    event_dict["app"] = "recognition_guard"
    return event_dict


def hash_identity_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Replace raw user identities with their hashed form.

    Applies to the keys in IDENTITY_FIELDS, whether passed to the log call or
    bound through contextvars.
    """
    for key in IDENTITY_FIELDS:
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = hash_identity(value)
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
) -> None:
    """Configure structured logging with structlog.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: If True, output JSON format (production). If False, use console format (dev)

    Example:
        >>> setup_logging(log_level="INFO", json_logs=True)  # Production
        >>> setup_logging(log_level="DEBUG")  # Development
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
        hash_identity_fields,
    ]

    if json_logs:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Structured logger with context binding support

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("recognition_evaluated", flag_count=2)
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]


def bind_context(**kwargs: Any) -> None:
    """Bind context variables for all subsequent log entries in this thread.

    Example:
        >>> bind_context(correlation_id="abc123")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Unbind context variables."""
    structlog.contextvars.unbind_contextvars(*keys)
