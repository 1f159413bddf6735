"""Structured logging configuration.

Logs go through stdlib ``logging`` with a structlog formatter: human-readable
console output when ``settings.debug`` is on, JSON lines otherwise.
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import Processor

from budget_api.config import settings


def _build_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _select_renderer() -> Processor:
    if settings.debug:
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def configure_logging() -> None:
    """Configure structlog on top of the stdlib root logger."""

    processors = _build_processors()

    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=_select_renderer(),
        foreign_pre_chain=processors,
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    level = logging.DEBUG if settings.debug else settings.log_level.upper()
    logging.basicConfig(handlers=[handler], level=level, force=True)


def get_logger(name: str | None = None) -> BoundLogger:
    """Get a structured logger."""
    return structlog.get_logger(name)


@contextmanager
def log_timing(operation: str, logger: BoundLogger | None = None, **context: Any) -> Iterator[dict[str, Any]]:
    """Log how long the wrapped block took.

    The yielded dict can be filled with extra fields during the operation;
    ``duration_ms`` is added once the block exits.
    """
    log = logger or get_logger(__name__)
    extra: dict[str, Any] = {}
    start = time.perf_counter()
    try:
        yield extra
    finally:
        extra["duration_ms"] = round((time.perf_counter() - start) * 1000, 2)
        log.info(f"{operation} finished", **context, **extra)
