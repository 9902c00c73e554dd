"""Logging setup for the slider bridge."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Libraries that log every serial read or COM call at DEBUG.
_DEVICE_LOGGERS = ("serial", "serial_asyncio", "comtypes", "pulsectl")

_LOG_FILE_BYTES = 1_000_000
_LOG_FILE_BACKUPS = 3


def configure_logging(
    level: str = "INFO", *, log_path: Optional[Path] = None, log_serial: bool = False
) -> int:
    """Install console (and optionally file) handlers on the root logger.

    Parameters
    ----------
    level:
        Log level name, e.g. "INFO". Unknown names fall back to INFO.
    log_path:
        Optional path for a size-rotated log file. The bridge usually runs
        unattended, so the file is capped rather than growing forever.
    log_serial:
        Keep the serial port and audio backend libraries at the root level.
        Useful when a board is not being detected.

    Returns the numeric level that was applied.
    """

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    logging.captureWarnings(True)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=_LOG_FILE_BYTES,
            backupCount=_LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    device_level = logging.NOTSET if log_serial else logging.WARNING
    for name in _DEVICE_LOGGERS:
        logging.getLogger(name).setLevel(device_level)

    return numeric_level
