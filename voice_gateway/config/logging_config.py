"""
Configure logging for the gateway.

Every record carries a ``call`` field naming the call it was logged for. A
relay binds its label with bind_call_label() when it starts; the label is held
in a context variable, so tasks the relay spawns (the upstream pump, the commit
timer, report delivery) inherit it while concurrent calls stay separate.
Records logged outside any call show "-".
"""

import logging
import os
import sys
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, Optional

from voice_gateway.config.constants import LOGGER_NAME

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(call)s] %(message)s"
NO_CALL_LABEL = "-"

LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_FILE = LOG_DIR / "voice_gateway.log"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

# Evaluated per record: the call id only becomes known once the stream starts
_call_label: ContextVar[Optional[Callable[[], str]]] = ContextVar("call_label", default=None)


def bind_call_label(label: Callable[[], str]) -> None:
    """Tag records logged from the current task, and tasks it creates, with a call label."""
    _call_label.set(label)


class CallContextFilter(logging.Filter):
    """Adds the bound call label to each record as ``record.call``."""

    def filter(self, record: logging.LogRecord) -> bool:
        label = _call_label.get()
        record.call = label() if label is not None else NO_CALL_LABEL
        return True


def configure_logging(level: str = LOG_LEVEL) -> logging.Logger:
    """
    Configure the gateway logger with console and file handlers.

    Args:
        level: Name of the log level to apply (defaults to LOG_LEVEL env var)

    Returns:
        logging.Logger: The configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)
    call_filter = CallContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(call_filter)
    logger.addHandler(console_handler)

    # File logging is best-effort; read-only containers still get console output
    try:
        LOG_DIR.mkdir(exist_ok=True)
        file_handler = RotatingFileHandler(LOG_FILE, maxBytes=MAX_LOG_SIZE, backupCount=BACKUP_COUNT)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(call_filter)
        logger.addHandler(file_handler)
    except OSError as e:
        logger.warning(f"Could not set up file logging: {e}")

    logger.propagate = False

    logger.info("Logging configured")
    return logger
