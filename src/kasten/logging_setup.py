from __future__ import annotations

import logging
import sys

LOGGER_NAME = "kasten"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(level: int | str = logging.WARNING) -> logging.Logger:
    """Attach a stderr handler to the ``kasten`` logger (once) and set its level."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    logger.debug("Logging initialized. level=%s", logging.getLevelName(logger.level))
    return logger
