"""Logging setup for the billing engine."""

import logging
import sys

_LOGGER_PREFIX = "billing_api"
_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Install a single stream handler on the package logger.

    Safe to call more than once: the handler is only added the first time,
    later calls just adjust the level.
    """
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.setLevel(level.upper())

    if not any(getattr(h, "_billing_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._billing_handler = True
        logger.addHandler(handler)

    return logger
