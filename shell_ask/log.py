"""Process-level logging. Everything goes to stderr; stdout carries only the command."""

import os
import sys

from loguru import logger

LOG_FORMAT = "{time:HH:mm:ss.SSS} | {level:<7} | {name}:{function}:{line} | {message}"


def configure_logging(debug: bool = False):
    """Replace loguru's default sink with a single stderr sink."""
    if debug:
        level = "DEBUG"
    else:
        level = os.getenv("ASK_LOG_LEVEL", "WARNING").upper()

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=LOG_FORMAT,
        backtrace=False,
        diagnose=False,
    )
