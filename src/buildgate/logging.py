"""Structured logging configuration for Buildgate.

This module configures structlog with support for:
- JSON and console output formats
- File rotation based on size
- Correlation IDs for tracing a deploy across components
- Deploy and project context binding
- Duration logging around blocking waits

The logging system integrates structlog with Python's stdlib logging
for handlers (file rotation), while using structlog exclusively for
actual log emission.

Example usage:
    >>> from buildgate.config import LoggingConfig
    >>> from buildgate.logging import setup_logging, get_logger, bind_deploy_context
    >>>
    >>> setup_logging(LoggingConfig(level="INFO", format="json"))
    >>> logger = get_logger(__name__)
    >>> bind_deploy_context(deploy_id="42", project="web")
    >>> logger.info("builds_resolved", count=2)
"""

from __future__ import annotations

import contextlib
import contextvars
import logging
import logging.handlers
import sys
import time
from collections.abc import Callable, Iterator
from typing import Any

import structlog

from buildgate.config import LoggingConfig

# Context variable for correlation ID
_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


def add_correlation_id(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add correlation_id to log event if set in context.

    Args:
        logger: Logger instance (unused, required by structlog protocol)
        method_name: Log method name (unused, required by structlog protocol)
        event_dict: Current event dictionary to augment

    Returns:
        Event dictionary with correlation_id added if available
    """
    correlation_id = _correlation_id.get()
    if correlation_id is not None:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def set_correlation_id(correlation_id: str | None) -> None:
    """Set correlation ID for current context."""
    _correlation_id.set(correlation_id)


def get_correlation_id() -> str | None:
    """Get current correlation ID from context."""
    return _correlation_id.get()


def bind_deploy_context(deploy_id: str, project: str) -> None:
    """Bind deploy and project context to all subsequent logs.

    Args:
        deploy_id: Deploy identifier to bind
        project: Project name to bind
    """
    structlog.contextvars.bind_contextvars(deploy_id=deploy_id, project=project)


@contextlib.contextmanager
def log_duration(
    logger: Any,
    event: str,
    monotonic: Callable[[], float] = time.monotonic,
    **fields: Any,
) -> Iterator[dict[str, Any]]:
    """Log ``event`` with its wall-clock duration once the block exits.

    The yielded dict can be updated inside the block to add fields that are
    only known at the end. The event is logged even when the block raises.

    Args:
        logger: Bound structlog logger
        event: Event name to log
        monotonic: Time source, injectable for tests
        **fields: Extra fields included in the event

    Yields:
        Mutable dict of extra fields
    """
    extra: dict[str, Any] = dict(fields)
    started = monotonic()
    try:
        yield extra
    finally:
        logger.info(
            event,
            duration_seconds=round(monotonic() - started, 3),
            **extra,
        )


def setup_logging(config: LoggingConfig) -> None:
    """Configure structlog with the given configuration.

    Sets up JSON or console rendering, optional file rotation, timestamps,
    log level, logger name, contextvars and correlation ID processors.

    Args:
        config: Logging configuration from BuildgateConfig
    """
    log_level = getattr(logging, config.level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    if config.file is not None:
        config.file.parent.mkdir(parents=True, exist_ok=True)

        handler: logging.Handler = logging.handlers.RotatingFileHandler(
            filename=config.file,
            maxBytes=config.rotation_size_mb * 1024 * 1024,
            backupCount=config.retention_count,
            encoding="utf-8",
        )
    else:
        handler = logging.StreamHandler(sys.stdout)

    handler.setLevel(log_level)
    root_logger.addHandler(handler)

    if config.format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:  # console
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            # deploy_id / project from bind_deploy_context
            structlog.contextvars.merge_contextvars,
            add_correlation_id,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Configured structlog BoundLogger instance
    """
    return structlog.get_logger(name)
