"""
Logging configuration for the rtbuild process.

Two destinations exist:

    terminal  — set up once by ``setup_logging`` (stderr, WARNING by default)
    run log   — attached per build by ``attach_run_log``, INFO and up,
                interleaved with configure/make output

Terminal level precedence:
    --debug  >  RTBUILD_LOG_LEVEL env var  >  WARNING
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

PACKAGE_LOGGER = "rtbuild"

# Terminal: bare messages unless someone asked for detail
_FMT_TERMINAL = "rtbuild: %(message)s"
_FMT_TERMINAL_INFO = "%(asctime)s %(name)s: %(message)s"
_FMT_TERMINAL_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s"
_DATEFMT_TERMINAL = "%H:%M:%S"

# Run log: a prefix sets rtbuild's lines apart from compiler output
_FMT_RUN_LOG = "[rtbuild %(asctime)s] %(message)s"
_DATEFMT_RUN_LOG = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str | None = None, debug: bool = False) -> None:
    """Configure the root logger for a CLI invocation.

    Args:
        level: Level name, usually from RTBUILD_LOG_LEVEL.
        debug: Force DEBUG regardless of ``level``.
    """
    numeric_level = logging.DEBUG if debug else _parse_level(level)

    if numeric_level <= logging.DEBUG:
        fmt = _FMT_TERMINAL_DEBUG
    elif numeric_level <= logging.INFO:
        fmt = _FMT_TERMINAL_INFO
    else:
        fmt = _FMT_TERMINAL

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=_DATEFMT_TERMINAL))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(numeric_level)

    logging.raiseExceptions = False


def attach_run_log(path: Path) -> logging.Handler:
    """Mirror rtbuild's INFO+ records into the run log file.

    Returns the handler so the caller can ``detach_run_log`` it when
    the run ends.
    """
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(_FMT_RUN_LOG, datefmt=_DATEFMT_RUN_LOG))

    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    pkg_logger.addHandler(handler)
    # The package logger must pass INFO through even if root sits at WARNING
    if pkg_logger.level == logging.NOTSET or pkg_logger.level > logging.INFO:
        pkg_logger.setLevel(logging.INFO)
    return handler


def detach_run_log(handler: logging.Handler) -> None:
    """Remove and close a handler added by ``attach_run_log``."""
    logging.getLogger(PACKAGE_LOGGER).removeHandler(handler)
    handler.close()


def _parse_level(level: str | None) -> int:
    if not level:
        return logging.WARNING
    numeric = logging.getLevelName(level.strip().upper())
    return numeric if isinstance(numeric, int) else logging.WARNING
