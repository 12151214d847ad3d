"""Logging configuration helpers for the exam application."""

from __future__ import annotations

import logging
from logging import Logger

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: int | str = logging.INFO) -> Logger:
    """Configure basic logging and return the ``exam_quest`` package logger.

    ``level`` may be a number or a level name such as ``"debug"``.
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level '{level}'.")
        level = resolved
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger = logging.getLogger("exam_quest")
    logger.setLevel(level)
    return logger
