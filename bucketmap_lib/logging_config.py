from __future__ import annotations
import logging
from typing import Union

PACKAGE_LOGGER = "bucketmap_lib"


def parse_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def configure_logging(level: Union[str, int]) -> logging.Logger:
    """Set the level of the `bucketmap_lib` logger tree.

    Handlers and formatting stay with the embedding application; only the
    package logger's threshold changes. Returns the package logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(parse_level(level))
    logger.debug("Log level set to: %s", logging.getLevelName(logger.level))
    return logger
