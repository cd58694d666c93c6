"""Structured logging setup — structlog over the stdlib logging module."""

from __future__ import annotations

import logging
import sys

import structlog

_configured: bool = False


def setup_logging(json_output: bool = True, level: str = "INFO") -> None:
    """Configure structlog once per process.

    ``json_output=False`` renders human-readable console lines (local dev);
    the default emits one JSON object per event.
    """
    global _configured  # noqa: PLW0603
    if _configured:
        return

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a bound logger; events are snake_case names plus keyword context."""
    return structlog.get_logger(name)
