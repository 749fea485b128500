"""
Structured logging for insertion runs.

Every run produces a log artifact: ``configure_logging`` points the stdlib
root logger at stderr *and* at the run's log file, then routes structlog
through stdlib so both sinks see the same events. The file is what gets
attached to the outcome mail, so ``flush_logs`` must run before the mail is
composed.

Manifesto:
    - **Structures:** JSON output for aggregation, console output for humans
    - **Correlates:** insertion name and run id bound through contextvars
    - **Always an artifact:** the log file exists for every terminal status

Examples:
    >>> from toolset_insertion.core.logging import configure_logging, get_logger
    >>> configure_logging(level="INFO", log_file="rit.log")
    >>> logger = get_logger(__name__)
    >>> logger.info("insertion_started", target_branch="main")

Tags:
    logging, structlog, observability, log-artifact

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import structlog
from structlog.types import Processor

_HANDLER_TAG = "_toolset_insertion_handler"


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    log_file: str | Path | None = None,
    truncate: bool = True,
) -> None:
    """Configure structured logging for an insertion run.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        log_file: Path of the run's log artifact; omitted means stderr only
        truncate: Start the log file empty (one artifact per run)
    """
    log_level = getattr(logging, level.upper())

    if json_format is None:
        json_format = not sys.stderr.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[structlog.stdlib.filter_by_level, *shared_processors, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    # Replace handlers from a previous run, leave foreign ones alone
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter("%(message)s")

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    setattr(stream_handler, _HANDLER_TAG, True)
    root.addHandler(stream_handler)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode="w" if truncate else "a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_TAG, True)
        root.addHandler(file_handler)

    root.setLevel(log_level)
    logging.getLogger("toolset_insertion").setLevel(log_level)


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger.

    Args:
        name: Logger name (usually __name__)
    """
    return structlog.get_logger(name)


def flush_logs() -> None:
    """Flush every handler on the root logger so the log file is complete."""
    for handler in logging.getLogger().handlers:
        handler.flush()


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs.

    Example:
        bind_context(insertion="Roslyn", run_id="abc123")
        logger.info("stage_started")  # Includes insertion and run_id
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(insertion="Roslyn", run_id="abc123"):
            logger.info("stage_started")
        # Context cleared here
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "configure_logging",
    "get_logger",
    "flush_logs",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
