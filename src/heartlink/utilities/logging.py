"""Logger setup shared by every heartlink module.

Each named logger writes to the console and, unless ``HEARTLINK_LOG_TO_FILE``
is switched off, to its own size-rotated file under ``HEARTLINK_LOG_DIR``
(``~/.heartlink/logs`` when unset). ``LOG_LEVEL`` takes a level name or a
number.
"""

import logging
import os
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

from heartlink.utilities.env.parsing import _env_flag

LEVEL_ENV_VAR = "LOG_LEVEL"
DIRECTORY_ENV_VAR = "HEARTLINK_LOG_DIR"
FILE_ENV_VAR = "HEARTLINK_LOG_TO_FILE"
ROTATE_AT_BYTES = 10 * 1024 * 1024
ROTATED_COPIES = 5

_FORMATTER = logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def log_level() -> int:
    raw = os.environ.get(LEVEL_ENV_VAR, "").strip()
    if raw.isdigit():
        return int(raw)
    return logging.getLevelNamesMapping().get(raw.upper(), logging.INFO)


def log_directory() -> Path:
    configured = os.environ.get(DIRECTORY_ENV_VAR)
    if configured:
        directory = Path(configured).expanduser()
    else:
        directory = Path.home() / ".heartlink" / "logs"
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def log_file_for(name: str) -> Path:
    """``heartlink.session.machine`` logs to ``heartlink_session_machine.log``."""

    stem = _UNSAFE_FILENAME_CHARS.sub("_", name).strip("_") or "root"
    return log_directory() / f"{stem}.log"


def _build_handlers(name: str) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if _env_flag(FILE_ENV_VAR, default=True):
        handlers.append(
            RotatingFileHandler(
                log_file_for(name),
                maxBytes=ROTATE_AT_BYTES,
                backupCount=ROTATED_COPIES,
                delay=True,
            )
        )
    return handlers


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name``, attaching heartlink's handlers on first use."""

    logger = logging.getLogger(name)
    level = log_level()
    logger.setLevel(level)
    if logger.handlers:
        # Set up already, by an earlier call or by the embedding application.
        return logger

    for handler in _build_handlers(name):
        handler.setFormatter(_FORMATTER)
        handler.setLevel(level)
        logger.addHandler(handler)
    logger.propagate = False
    return logger
