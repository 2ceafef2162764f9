"""Shared utilities: logging configuration."""

from __future__ import annotations

from bracket_pool.utils.logger import (
    DEBUG,
    NORMAL,
    QUIET,
    VERBOSE,
    LogLevel,
    configure_logging,
    get_logger,
    resolve_level,
)

__all__ = [
    "DEBUG",
    "NORMAL",
    "QUIET",
    "VERBOSE",
    "LogLevel",
    "configure_logging",
    "get_logger",
    "resolve_level",
]
