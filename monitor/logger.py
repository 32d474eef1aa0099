"""
Structured logging with triple output:
  - stderr: human-readable, ANSI-colored console lines
  - file (always): verbose debug log at <log_dir>/run_YYYYMMDD_HHMMSS.log
  - file (optional): machine-readable single-line JSON (ndjson)
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from datetime import datetime, timezone


_RESET = "\033[0m"
_BOLD = "\033[1m"
_DIM = "\033[2m"
_RED = "\033[31m"
_YELLOW = "\033[33m"
_CYAN = "\033[36m"
_WHITE = "\033[37m"

_LEVEL_STYLES = {
    "DEBUG": (_DIM, "DBG"),
    "INFO": (_CYAN, "INF"),
    "WARNING": (_YELLOW, "WRN"),
    "ERROR": (_RED, "ERR"),
    "CRITICAL": (_RED + _BOLD, "CRT"),
}

# Third-party loggers that are chatty at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn", "uvicorn.access", "uvicorn.error")


class ConsoleFormatter(logging.Formatter):
    """Timestamp, color-coded level tag, component, message."""

    def __init__(self, use_color: bool = True):
        super().__init__()
        self._use_color = use_color and _supports_color()

    def format(self, record: logging.LogRecord) -> str:
        ts = time.strftime("%H:%M:%S", time.localtime(record.created))
        color, tag = _LEVEL_STYLES.get(record.levelname, (_WHITE, "???"))
        component = record.name.split(".")[0]
        msg = record.getMessage()

        if self._use_color:
            line = f"{_DIM}{ts}{_RESET} {color}{tag}{_RESET} {_DIM}{component:<9}{_RESET} {msg}"
        else:
            line = f"{ts} {tag} {component:<9} {msg}"

        if record.exc_info and record.exc_info[1]:
            exc = record.exc_info[1]
            detail = f"{type(exc).__name__}: {exc}"
            line += f"\n{_RED}     {detail}{_RESET}" if self._use_color else f"\n     {detail}"

        return line


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = f"{type(record.exc_info[1]).__name__}: {record.exc_info[1]}"
        return json.dumps(entry, separators=(",", ":"))


def setup_logging(
    level: str = "INFO",
    json_log_file: str | None = None,
    log_dir: str = "logs",
) -> str:
    """
    Configure the root logger: console at `level`, a DEBUG run log under
    log_dir, and optionally an ndjson file. Safe to call more than once.

    Returns the path to the verbose log file.
    """
    root = logging.getLogger()
    # Root stays at DEBUG so the run log captures everything
    root.setLevel(logging.DEBUG)

    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(getattr(logging, level.upper(), logging.INFO))
    console.setFormatter(ConsoleFormatter())
    root.addHandler(console)

    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_path = os.path.join(log_dir, f"run_{timestamp}.log")

    verbose_handler = logging.FileHandler(log_path, mode="a")
    verbose_handler.setLevel(logging.DEBUG)
    verbose_handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)-8s %(name)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    root.addHandler(verbose_handler)

    if json_log_file:
        parent = os.path.dirname(json_log_file)
        if parent:
            os.makedirs(parent, exist_ok=True)
        fh = logging.FileHandler(json_log_file, mode="a")
        fh.setFormatter(JSONFormatter())
        root.addHandler(fh)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_path


def _supports_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
