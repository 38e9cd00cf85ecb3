"""
Logging configuration for the runtimekit process.

``setup_logging`` runs once, from the CLI group callback.  Library code
only ever does ``logger = logging.getLogger(__name__)`` and inherits
whatever was configured here.

Console level precedence:
    --debug / --verbose / --quiet  >  RTK_LOG_LEVEL  >  WARNING

A second, independently levelled file sink is enabled by RTK_LOG_FILE
(and RTK_LOG_FILE_LEVEL).
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path

ENV_LEVEL = "RTK_LOG_LEVEL"
ENV_FILE = "RTK_LOG_FILE"
ENV_FILE_LEVEL = "RTK_LOG_FILE_LEVEL"

# (max level, format, datefmt); first row whose level is >= the console level wins
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(message)s", None),
)

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(threadName)s %(name)s:%(lineno)d  %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# httpx logs every PyPI request at INFO
_NOISY_LOGGERS = ("httpx", "httpcore")


def resolve_level(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    env: Mapping[str, str] | None = None,
) -> str:
    """Console level name from CLI flags, falling back to RTK_LOG_LEVEL."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    env = os.environ if env is None else env
    return env.get(ENV_LEVEL, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Install the console handler (and optional file handler) on the root logger.

    Args:
        level: Console level name; unknown names mean WARNING.
        log_file: Path of an additional log file; parent directories are created.
        log_file_level: Level for the file; defaults to ``level``.
        quiet_third_party: Pin httpx/httpcore to WARNING unless the
            console is at DEBUG.
    """
    console_level = _parse_level(level)
    fmt, datefmt = next(
        (f, d) for limit, f, d in _CONSOLE_FORMATS if console_level <= limit
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.addHandler(console)

    root_level = console_level
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        root.addHandler(_file_handler(Path(log_file), file_level))
        root_level = min(root_level, file_level)
    root.setLevel(root_level)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def _file_handler(path: Path, level: int) -> logging.Handler:
    path.expanduser().parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path.expanduser(), encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    return handler


def _parse_level(level: str | None) -> int:
    """Level name → numeric level; anything unrecognised is WARNING."""
    numeric = logging.getLevelName((level or "").strip().upper())
    return numeric if isinstance(numeric, int) else logging.WARNING
