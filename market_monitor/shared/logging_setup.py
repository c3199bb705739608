#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Console logging for the market monitor.

Log levels are colored when stderr is a terminal and NO_COLOR is unset:
- DEBUG: Cyan
- INFO: Green
- WARNING: Yellow
- ERROR / CRITICAL: Red / Bold Red
"""
from __future__ import annotations

import logging
import os
import sys
from typing import Optional, TextIO

LOG_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Third-party loggers that are too chatty at DEBUG
_NOISY_LOGGERS = ("urllib3", "requests")


class ColoredFormatter(logging.Formatter):
    """Formatter that wraps the level name in ANSI color codes."""

    LEVEL_COLORS = {
        logging.DEBUG: '\033[36m',
        logging.INFO: '\033[32m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[1;31m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt: str = LOG_FORMAT, datefmt: Optional[str] = DATE_FORMAT, stream: Optional[TextIO] = None, use_colors: bool = True):
        super().__init__(fmt, datefmt)
        stream = stream if stream is not None else sys.stderr
        is_tty = hasattr(stream, 'isatty') and stream.isatty()
        self.use_colors = use_colors and is_tty and not os.environ.get('NO_COLOR')

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        if color is None:
            return super().format(record)
        plain = record.levelname
        record.levelname = f"{color}{plain}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


def setup_logging(level: int | str = logging.INFO, stream: Optional[TextIO] = None) -> logging.Handler:
    """
    Configure the root logger with a single colored console handler.

    Args:
        level: Logging level as int or name ("DEBUG", "INFO", ...)
        stream: Output stream, stderr by default

    Returns:
        The installed handler
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    stream = stream if stream is not None else sys.stderr
    handler = logging.StreamHandler(stream)
    handler.setFormatter(ColoredFormatter(stream=stream))
    root.setLevel(level)
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))
    return handler


def get_logger(name: str) -> logging.Logger:
    """Return a module logger, installing console logging if nothing is configured yet."""
    logger = logging.getLogger(name)
    if not logging.getLogger().handlers:
        setup_logging(logging.INFO)
    return logger
