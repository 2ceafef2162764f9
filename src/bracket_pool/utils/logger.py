"""Logging setup for the bracket pool engine.

Every module logs through ``logging.getLogger(__name__)``; since all modules
live under the ``bracket_pool`` package, configuring the ``bracket_pool``
logger once controls the whole engine.  Four verbosity levels are exposed:

    ========  ==============  =====
    Name      Python level    Value
    ========  ==============  =====
    QUIET     WARNING          30
    NORMAL    INFO             20
    VERBOSE   VERBOSE (custom) 15
    DEBUG     DEBUG            10
    ========  ==============  =====

Per-user failures during league aggregation are reported at WARNING, so
they remain visible under ``QUIET``.  Chunk commits and per-user merges are
reported at ``VERBOSE``.

Resolution order for the active level: explicit argument, then the
``BRACKET_POOL_LOG_LEVEL`` environment variable, then ``NORMAL``.

Example:
    >>> from bracket_pool.utils.logger import configure_logging, get_logger
    >>> configure_logging("VERBOSE")
    >>> log = get_logger("pipeline")
    >>> log.info("Finalizing league %s", "abc123")
"""

from __future__ import annotations

import enum
import logging
import os
import sys

VERBOSE: int = 15
"""Custom level between INFO and DEBUG for per-user and per-chunk progress."""

logging.addLevelName(VERBOSE, "VERBOSE")

QUIET: int = logging.WARNING
NORMAL: int = logging.INFO
DEBUG: int = logging.DEBUG

ENV_VAR: str = "BRACKET_POOL_LOG_LEVEL"

_ROOT_LOGGER_NAME: str = "bracket_pool"
_LOG_FORMAT: str = "%(asctime)s | %(name)s | %(levelname)-8s | %(message)s"


class LogLevel(str, enum.Enum):
    """Verbosity names accepted by :func:`configure_logging` and the CLI."""

    QUIET = "QUIET"
    NORMAL = "NORMAL"
    VERBOSE = "VERBOSE"
    DEBUG = "DEBUG"

    @property
    def numeric(self) -> int:
        """Python logging level for this verbosity."""
        return _LEVEL_MAP[self.value]


_LEVEL_MAP: dict[str, int] = {
    "QUIET": QUIET,
    "NORMAL": NORMAL,
    "VERBOSE": VERBOSE,
    "DEBUG": DEBUG,
}


def resolve_level(level: str | LogLevel | None = None) -> int:
    """Resolve a verbosity name to a numeric logging level.

    Args:
        level: Verbosity name (case-insensitive) or :class:`LogLevel`.
            ``None`` falls through to ``BRACKET_POOL_LOG_LEVEL`` and then to
            ``"NORMAL"``.

    Raises:
        ValueError: If the resolved name is not one of the four levels.
    """
    if isinstance(level, LogLevel):
        return level.numeric
    name = level if level is not None else os.environ.get(ENV_VAR, "NORMAL")
    try:
        return _LEVEL_MAP[name.upper()]
    except KeyError:
        msg = f"Unknown log level {name!r}. Valid levels: {', '.join(sorted(_LEVEL_MAP))}"
        raise ValueError(msg) from None


def configure_logging(level: str | LogLevel | None = None) -> None:
    """Attach a single stderr handler to the ``bracket_pool`` logger.

    Safe to call repeatedly: previously attached handlers are removed first,
    and propagation to the Python root logger is disabled so records are not
    emitted twice when an application also configures the root logger.

    Raises:
        ValueError: If the level name is not recognised.
    """
    numeric_level = resolve_level(level)

    root = logging.getLogger(_ROOT_LOGGER_NAME)
    root.setLevel(numeric_level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(handler)
    root.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Return ``bracket_pool.<name>``, for code outside the package tree.

    Example:
        >>> get_logger("scripts.backfill").name
        'bracket_pool.scripts.backfill'
    """
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{name}")
