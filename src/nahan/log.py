"""Logging setup for the ``nahan`` package logger."""

from __future__ import annotations

import logging
import sys

from .config import get_settings

LOGGER_NAME = "nahan"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str | int | None = None) -> logging.Logger:
    """Attach a stderr handler to the package logger.

    The library itself only emits records; applications (and the CLI) call
    this once to see them. Repeated calls adjust the level without adding
    another handler.

    Args:
        level: Logging level name or number. Defaults to ``Settings.log_level``.

    Returns:
        The configured ``nahan`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if level is None:
        level = get_settings().log_level
    if isinstance(level, str):
        level = level.upper()
    logger.setLevel(level)

    for handler in logger.handlers:
        if getattr(handler, "_nahan_handler", False):
            handler.setLevel(level)
            return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler._nahan_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger
