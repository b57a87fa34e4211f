"""Logging helper.

Wraps Python's standard logging module so every module of the fusion
pipeline logs with the same format.  The default level can be changed
with the ``LIDAR_TTC_LOG_LEVEL`` environment variable or per logger
through `set_log_level`.
"""

import logging
import os

_DEFAULT_LEVEL = os.environ.get("LIDAR_TTC_LOG_LEVEL", "INFO").upper()


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger with a preset format."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            fmt='[%(asctime)s] [%(levelname)s] %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(_DEFAULT_LEVEL)
    return logger


def set_log_level(level: str, prefix: str = "src") -> None:
    """Set the level of every already-created logger under `prefix`."""
    for name in list(logging.root.manager.loggerDict):
        if name == prefix or name.startswith(prefix + "."):
            logging.getLogger(name).setLevel(level.upper())
