"""
STICKER PRESS - Logging

Project logger with a single stderr handler. Modules call get_logger("<short name>")
and never configure handlers themselves.
"""

import logging
import sys
from typing import Optional

LOGGER_NAME = "sticker_press"


def setup_logger(level: Optional[int] = None, name: str = LOGGER_NAME) -> logging.Logger:
    """Create or update the project logger.

    - Ensures there is exactly one stderr StreamHandler on the base logger and
      updates its formatter instead of adding another one on repeated calls.
    - Leaves the level untouched when `level` is None so late CLI parsing can
      still raise or lower it.
    """
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    elif logger.level == logging.NOTSET:
        logger.setLevel(logging.INFO)

    stream_handler: Optional[logging.StreamHandler] = None
    for h in list(logger.handlers):
        if isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr:
            stream_handler = h

    if stream_handler is None:
        stream_handler = logging.StreamHandler(stream=sys.stderr)
        logger.addHandler(stream_handler)

    # Keep output concise: no logger name in messages
    fmt = logging.Formatter(
        fmt="[%(asctime)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    stream_handler.setFormatter(fmt)

    # Do not propagate beyond the project logger
    logger.propagate = False
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    base = setup_logger()
    return base if not name else base.getChild(name)
