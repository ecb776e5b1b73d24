"""httptask — Structured logging configuration.

Uses structlog for structured, levelled logging with consistent key names
across the task core.  All log entries include:
    - timestamp (ISO-8601)
    - level
    - module (Python logger name)
    - flow_id / task_id / execution_id (bound via context variables when available)
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger

# Context variables, injected into log records when set.
_ctx_flow_id: ContextVar[str | None] = ContextVar("flow_id", default=None)
_ctx_task_id: ContextVar[str | None] = ContextVar("task_id", default=None)
_ctx_execution_id: ContextVar[str | None] = ContextVar("execution_id", default=None)


def bind_task_context(
    flow_id: str | None = None,
    task_id: str | None = None,
    execution_id: str | None = None,
) -> None:
    """Bind execution context to the current thread / async task."""
    if flow_id is not None:
        _ctx_flow_id.set(flow_id)
    if task_id is not None:
        _ctx_task_id.set(task_id)
    if execution_id is not None:
        _ctx_execution_id.set(execution_id)


def clear_task_context() -> None:
    _ctx_flow_id.set(None)
    _ctx_task_id.set(None)
    _ctx_execution_id.set(None)


# ---------------------------------------------------------------------------
# Custom processors
# ---------------------------------------------------------------------------


def _inject_context_vars(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    """Add ContextVar values to every log record."""
    if (flow_id := _ctx_flow_id.get()) is not None:
        event_dict["flow_id"] = flow_id
    if (task_id := _ctx_task_id.get()) is not None:
        event_dict["task_id"] = task_id
    if (execution_id := _ctx_execution_id.get()) is not None:
        event_dict["execution_id"] = execution_id
    return event_dict


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def configure_logging(
    level: str = "info",
    format: str = "console",
    log_file: str | None = None,
) -> None:
    """Configure structlog and stdlib logging.

    Call once at process startup, before any log statements.

    Args:
        level:    One of debug, info, warning, error, critical.
        format:   ``"console"`` for human-readable output, ``"json"`` for
                  machine-readable structured logs.
        log_file: Optional path to write logs to in addition to stderr.
    """
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        _inject_context_vars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

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
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    # Response bodies go to stdout from the CLI; logs stay on stderr.
    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.handlers = handlers
    root_logger.setLevel(level.upper())

    # Silence noisy third-party loggers.
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger for *name*.

    Usage::

        log = get_logger(__name__)
        log.info("request_completed", method="GET", status_code=200)
    """
    return structlog.get_logger(name)
