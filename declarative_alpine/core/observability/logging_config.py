"""
Logging configuration — set up once by the CLI entrypoint.

Every module does ``logger = logging.getLogger(__name__)`` and inherits
this config. Diffs and change summaries are printed by the CLI, not
logged; logging carries the how (backups, rollbacks, commands run).

Levels are resolved in precedence order:
    CLI flag  >  DALP_LOG_LEVEL env var  >  WARNING (default)

Optional extra sinks:
    DALP_LOG_FILE / DALP_LOG_FILE_LEVEL   append to a file
    DALP_SYSLOG=1                         send to the local syslog socket
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

# ── Format strings ──────────────────────────────────────────────

_FMT_CONSOLE = "%(message)s"
_FMT_CONSOLE_VERBOSE = "%(asctime)s [%(name)s] %(message)s"
_FMT_CONSOLE_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_CONSOLE = "%H:%M:%S"

_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

# syslog adds its own timestamp and host
_FMT_SYSLOG = "declarative-alpine[%(process)d]: %(levelname)s %(name)s: %(message)s"
_SYSLOG_SOCKET = "/dev/log"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    syslog: bool = False,
) -> None:
    """Configure Python logging for the whole process.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path of a log file to append to.
        log_file_level: Level for the file. Defaults to ``level``.
        syslog: Also log to the local syslog daemon, at INFO or above.
    """
    console_level = _parse_level(level)
    handlers: list[logging.Handler] = [_console_handler(console_level)]

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        handlers.append(fh)

    if syslog and Path(_SYSLOG_SOCKET).exists():
        sh = logging.handlers.SysLogHandler(address=_SYSLOG_SOCKET)
        sh.setLevel(logging.INFO)
        sh.setFormatter(logging.Formatter(_FMT_SYSLOG))
        handlers.append(sh)

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(min(h.level for h in handlers))

    logging.raiseExceptions = False


def _console_handler(level: int) -> logging.Handler:
    if level <= logging.DEBUG:
        fmt, datefmt = _FMT_CONSOLE_DEBUG, _DATEFMT_CONSOLE
    elif level <= logging.INFO:
        fmt, datefmt = _FMT_CONSOLE_VERBOSE, _DATEFMT_CONSOLE
    else:
        fmt, datefmt = _FMT_CONSOLE, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return console


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
