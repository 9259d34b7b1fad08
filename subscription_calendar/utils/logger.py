"""
Centralized logging helpers.

Modules obtain loggers with ``get_logger(__name__)``. Nothing is configured
at import time; the CLI installs a handler when asked to be verbose.
"""

import logging
import sys

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_ROOT_LOGGER = "subscription_calendar"


def configure_logging(level: int = logging.DEBUG) -> None:
    """Send package log records to stderr at the given level.

    Replaces any handler installed by a previous call.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger instance.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        A logging.Logger under the package hierarchy.
    """
    return logging.getLogger(name)
