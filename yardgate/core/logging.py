"""
Structured logging configuration.

JSON lines in production, coloured console output in development.
Every event logged while a request is being handled carries the
request's correlation ID, and gate routes additionally bind the gate
session ID so one truck's capture and submission can be followed
across requests.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import Processor

from yardgate.core.config import get_settings

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

# Libraries that log every request or model load at INFO
QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "sqlalchemy.engine", "easyocr", "ppocr")


def get_correlation_id() -> str:
    """Correlation ID of the request being handled, or ""."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """
    Start a request's logging context.

    Clears anything bound by a previous request on this context and
    sets the correlation ID, generating one when the client sent none.

    Args:
        correlation_id: Value of the client's X-Correlation-ID header.

    Returns:
        str: The correlation ID in effect.
    """
    structlog.contextvars.clear_contextvars()
    cid = correlation_id or uuid.uuid4().hex
    correlation_id_var.set(cid)
    return cid


def bind_gate_session(session_id: str, **context: Any) -> None:
    """Attach a gate session ID (and any extra fields) to the rest of the request's events."""
    structlog.contextvars.bind_contextvars(gate_session=session_id, **context)


def add_correlation_id(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor adding the correlation ID."""
    correlation_id = get_correlation_id()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def drop_color_message_key(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    # uvicorn duplicates the message with ANSI codes
    event_dict.pop("color_message", None)
    return event_dict


def _renderer(log_format: str) -> list[Processor]:
    if log_format == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=True)]


def setup_logging() -> None:
    """
    Configure structlog and route standard library logging through it.

    Called once when the application module is imported.
    """
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        add_correlation_id,
        drop_color_message_key,
        *_renderer(settings.log_format),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("gate_submission_created", container="CSQU3054383")
    """
    return structlog.get_logger(name)
