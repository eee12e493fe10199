"""Structured logging for the order pipeline.

Pipeline components log structured events through structlog. Each HTTP
request and each queue delivery runs under its own trace id so that the
intake log line of an order can be followed to the worker that persisted
it (the trace id travels in logs only, never in the wire payload).
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

import structlog

_trace_id: ContextVar[str] = ContextVar("trace_id", default="")

# Libraries whose INFO output drowns out pipeline events.
_NOISY_LOGGERS = ("uvicorn.access", "asyncio", "sqlalchemy.engine.Engine")


def get_trace_id() -> str:
    """Current trace id, creating one if this context has none yet."""
    tid = _trace_id.get()
    if not tid:
        tid = new_trace_id()
    return tid


def new_trace_id(inherited: str | None = None) -> str:
    """Start a trace. Reuses *inherited* (e.g. an ``X-Trace-Id`` header)."""
    tid = inherited.strip() if inherited and inherited.strip() else str(uuid.uuid4())
    _trace_id.set(tid)
    return tid


@contextmanager
def delivery_context(message_id: str, delivery_count: int) -> Iterator[str]:
    """Fresh trace plus message identity bound for one queue delivery."""
    tid = new_trace_id()
    with structlog.contextvars.bound_contextvars(
        message_id=message_id, delivery_count=delivery_count,
    ):
        yield tid


def _add_trace_id(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    event_dict["trace_id"] = get_trace_id()
    return event_dict


def setup_logging(level: str = "INFO", format: str = "json") -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        format: ``"json"`` for production, ``"console"`` for development.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        _add_trace_id,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
        if format == "json"
        else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
