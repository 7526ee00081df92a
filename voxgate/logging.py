"""Structured logging for Voxgate.

Uses structlog with stdlib logging as the backend. Two formats:
- console: human-readable for development (default)
- json: structured for production (Cloud Run, log aggregation)

Per-connection fields (``connection_id``) are bound once with
:func:`bind_connection` and merged into every event logged from that
connection's tasks.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from contextlib import AbstractContextManager

_configured = False


def configure_logging(
    log_format: str | None = None,
    level: str | None = None,
) -> None:
    """Configure structured logging for the gateway.

    Calls without arguments are ignored once logging is configured; explicit
    arguments (the CLI flags) reconfigure the root handler.

    Args:
        log_format: "json" or "console". Default via VOXGATE_LOG_FORMAT env or "console".
        level: Log level (DEBUG, INFO, WARNING, ERROR). Default via VOXGATE_LOG_LEVEL env or "INFO".
    """
    global _configured
    if _configured and log_format is None and level is None:
        return

    resolved_format = log_format or os.environ.get("VOXGATE_LOG_FORMAT", "console")
    resolved_level = level or os.environ.get("VOXGATE_LOG_LEVEL", "INFO")

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    if resolved_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
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

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, resolved_level.upper(), logging.INFO))

    _configured = True


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Return a logger with component context.

    Args:
        component: Component name (e.g., "server.stream", "session.recognizer").

    Returns:
        BoundLogger with the component field bound.
    """
    configure_logging()
    return structlog.get_logger().bind(component=component)  # type: ignore[no-any-return]


def bind_connection(connection_id: str) -> AbstractContextManager[None]:
    """Bind ``connection_id`` to all log events emitted inside the block.

    Tasks created inside the block inherit the binding.
    """
    return structlog.contextvars.bound_contextvars(connection_id=connection_id)
