from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Console logging for the importer.

Every line carries one label (DEBUG|INFO|WARN|ERROR|SUMMARY). The SUMMARY line
of an import or undo is what wrapper scripts grep for. Module loggers
(``logging.getLogger(__name__)``) propagate into the ``gig_importer`` logger
configured here.
"""

__all__ = [
    "APP_LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "log_summary",
    "set_debug",
    "reset_logging",
]

APP_LOGGER_NAME = "gig_importer"
SUMMARY_LEVEL = 25  # INFO と WARNING の間

_LABELS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    SUMMARY_LEVEL: "SUMMARY",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "CRITICAL",
}

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """``<LABEL> <message>``, no timestamp."""

    def format(self, record: logging.LogRecord) -> str:
        label = _LABELS.get(record.levelno, record.levelname)
        return f"{label} {record.getMessage()}"


def _console_handler(stream: TextIO) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    handler.setLevel(logging.INFO)
    handler.setFormatter(LabeledFormatter())
    return handler


def setup_logging(stream: TextIO | None = None) -> logging.Logger:
    """Configure the ``gig_importer`` logger once and return it.

    Later calls return the cached logger until ``reset_logging`` is called.
    ``stream`` defaults to the current ``sys.stdout``.
    """
    global _logger
    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    logger = logging.getLogger(APP_LOGGER_NAME)
    logger.setLevel(logging.INFO)
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(_console_handler(stream or sys.stdout))
    # root へ流さない (二重出力防止)
    logger.propagate = False

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    return _logger or setup_logging()


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def set_debug(logger: logging.Logger) -> None:
    logger.setLevel(logging.DEBUG)
    for handler in logger.handlers:
        handler.setLevel(logging.DEBUG)


def reset_logging() -> None:
    """Forget the cached logger (tests re-bind stdout per test)."""
    global _logger
    _logger = None
