# src/taskwarlock/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "taskwarlock.log"
LOG_FILE_MAX_BYTES = 2 * 1024 * 1024
LOG_FILE_BACKUPS = 3

# Loggers that are chatty at INFO: one line per `task` call or per cache refresh.
_QUIET_OWN_LOGGERS = ("taskwarlock.tasks.task_store", "taskwarlock.tasks.task_cache")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the REPL readable; the log file still gets everything.

    Own loggers pass, except the subprocess adapter and the cache (WARNING+).
    asyncio needs WARNING+, everything else (py.warnings included) ERROR+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name == "taskwarlock" or name.startswith("taskwarlock."):
            if name.startswith(_QUIET_OWN_LOGGERS):
                return record.levelno >= logging.WARNING
            return True
        if name == "asyncio":
            return record.levelno >= logging.WARNING
        return record.levelno >= logging.ERROR


def level_from_name(name: str | None, default: int = logging.INFO) -> int:
    """'debug' / 'INFO' / '10' -> logging level; unknown names give `default`."""
    if not name:
        return default
    raw = str(name).strip().upper()
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskwarlock",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console (stderr, filtered, short format) + rotating file (full format).

    Call once at startup; calling again replaces the handlers. Returns the log file path.
    """
    log_file = Path(log_dir) / LOG_FILE_NAME
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    # The REPL prints its own timestamps.
    console.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
