"""Utility modules for verification-guided search."""

from verified_search.utils.logging import (
    LogLevel,
    get_logger,
    get_verbosity,
    log_event,
    set_verbosity,
)

__all__ = [
    "LogLevel",
    "get_logger",
    "get_verbosity",
    "log_event",
    "set_verbosity",
]
