"""
Logging setup for the flock simulation.

Modules log through ``logging.getLogger(__name__)``; the entry points call
``setup_logging`` once to attach a console handler to the package logger.
"""

from __future__ import annotations

import logging


LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
PACKAGE_LOGGER = "flock_sim2d"


def setup_logging(level: str = "INFO", *, fmt: str = LOG_FORMAT) -> logging.Logger:
    """
    Configure the package logger with a single console handler.

    Calling it again replaces the previous handler instead of stacking a
    second one.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(str(level).upper())

    if logger.hasHandlers():
        logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
