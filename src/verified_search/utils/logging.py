"""Logging utilities for verification-guided search."""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any

from rich.console import Console
from rich.logging import RichHandler


_console = Console(stderr=True, safe_box=True)


class LogLevel(IntEnum):
    """Log verbosity levels."""
    SILENT = 0
    MINIMAL = 1
    NORMAL = 2
    VERBOSE = 3
    DEBUG = 4


LOGGER_NAME = "verified_search"

# Stdlib threshold applied to the package logger for each verbosity.
_THRESHOLDS = {
    LogLevel.SILENT: logging.CRITICAL + 1,
    LogLevel.MINIMAL: logging.WARNING,
    LogLevel.NORMAL: logging.INFO,
    LogLevel.VERBOSE: logging.DEBUG,
    LogLevel.DEBUG: logging.DEBUG,
}

_verbosity = LogLevel.NORMAL


def _coerce(level: LogLevel | str | int) -> LogLevel:
    if isinstance(level, str):
        return LogLevel[level.upper()]
    return LogLevel(level)


def set_verbosity(level: LogLevel | str | int) -> None:
    """Set the global verbosity, e.g. ``set_verbosity("verbose")``."""
    global _verbosity
    _verbosity = _coerce(level)
    logging.getLogger(LOGGER_NAME).setLevel(_THRESHOLDS[_verbosity])


def get_verbosity() -> LogLevel:
    return _verbosity


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """
    Logger for ``name``, rendered through rich.

    The rich handler is attached once to the package logger; child loggers
    (``verified_search.search`` etc.) propagate to it.
    """
    root = logging.getLogger(LOGGER_NAME)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(console=_console, show_path=False, markup=False,
                              rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
        root.setLevel(_THRESHOLDS[_verbosity])
    return logging.getLogger(name)


def format_event(event: str, **kwargs: Any) -> str:
    """Render an event and its fields as a single log line."""
    if kwargs:
        details = " | ".join(f"{k}={v}" for k, v in kwargs.items())
        return f"[{event}] {details}"
    return f"[{event}]"


def log_event(
    event: str,
    level: LogLevel = LogLevel.NORMAL,
    **kwargs: Any,
) -> None:
    """Log an event with optional structured data."""
    if _verbosity < level:
        return

    logger = get_logger()
    message = format_event(event, **kwargs)

    if level <= LogLevel.MINIMAL:
        logger.warning(message)
    elif level == LogLevel.NORMAL:
        logger.info(message)
    else:
        logger.debug(message)


def log_iteration(
    algorithm: str,
    iteration: int,
    best_score: float,
    **extra: Any,
) -> None:
    """Log search progress (verbose level)."""
    log_event(
        f"{algorithm} {iteration:03d}",
        level=LogLevel.VERBOSE,
        best=f"{best_score:.3f}",
        **extra,
    )
