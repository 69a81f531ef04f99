"""
Shared log file handler for Stationcast modules.

Every core module writes to the same rotation-tolerant log file
(default /var/log/stationcast/player.log, override with STATIONCAST_LOG_FILE).
Logging must never crash playback: an unwritable path means the handler is
simply not attached, and write failures after attach are dropped.
"""

import logging
import logging.handlers
import os
from typing import Optional

DEFAULT_LOG_FILE = "/var/log/stationcast/player.log"
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def log_file_path() -> str:
    return os.getenv("STATIONCAST_LOG_FILE", DEFAULT_LOG_FILE)


def attach_log_file(logger: logging.Logger, path: Optional[str] = None) -> None:
    """
    Attach a WatchedFileHandler for `path` to `logger` (once).

    Args:
        logger: Module logger to attach to
        path: Log file path (defaults to log_file_path())
    """
    path = path or log_file_path()
    if any(isinstance(h, logging.handlers.WatchedFileHandler)
           and getattr(h, 'baseFilename', None) == os.path.abspath(path)
           for h in logger.handlers):
        return

    try:
        # WatchedFileHandler reopens the file after external rotation
        handler = logging.handlers.WatchedFileHandler(path, mode='a')
    except OSError:
        return

    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    original_emit = handler.emit

    def safe_emit(record):
        try:
            original_emit(record)
        except (IOError, OSError):
            pass

    handler.emit = safe_emit
    logger.addHandler(handler)
