"""Logging for the Family Plan reminder service.

Records go to a dated file under LOG_DIR, and to the console when attached
to a terminal. Push services echo subscription endpoints and VAPID headers
in their errors, so every handler redacts them before writing.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from config import LOG_DIR, LOG_LEVEL
from utils.log_sanitizer import sanitize_log

LOGGER_NAME = "family_plan"

# APScheduler reports job errors and misfires on its own logger
ATTACHED_LOGGERS = ("apscheduler",)


class RedactingFilter(logging.Filter):
    """Rewrites the formatted message of a record through sanitize_log."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = sanitize_log(record.getMessage())
        record.args = None
        return True


def build_handlers(log_dir: Path, console: bool) -> list[logging.Handler]:
    log_file = log_dir / f"{datetime.now().strftime('%Y-%m-%d')}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))
    handlers: list[logging.Handler] = [file_handler]

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(message)s",
            datefmt="%H:%M:%S"
        ))
        handlers.append(console_handler)

    for handler in handlers:
        handler.addFilter(RedactingFilter())
    return handlers


def setup_logging(log_dir: Path = LOG_DIR, level: str = LOG_LEVEL,
                  console: Optional[bool] = None) -> logging.Logger:
    """Configure the service logger (and APScheduler's) and return it.

    Args:
        log_dir: Directory for the dated log files
        level: Level name, e.g. "DEBUG"; unknown names fall back to INFO
        console: Also log to stdout; defaults to whether stdout is a TTY
    """
    if console is None:
        console = sys.stdout is not None and sys.stdout.isatty()
    resolved = logging.getLevelName(level)
    if not isinstance(resolved, int):
        resolved = logging.INFO

    handlers = build_handlers(log_dir, console)
    for name in (LOGGER_NAME, *ATTACHED_LOGGERS):
        target = logging.getLogger(name)
        for old in target.handlers:
            old.close()
        target.handlers.clear()
        target.setLevel(resolved if name == LOGGER_NAME else max(resolved, logging.WARNING))
        for handler in handlers:
            target.addHandler(handler)

    return logging.getLogger(LOGGER_NAME)


logger = setup_logging()
