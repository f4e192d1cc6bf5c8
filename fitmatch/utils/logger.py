"""Logging configuration"""
import logging
import os

from rich.logging import RichHandler


def setup_logger(name: str = "fitmatch", level: int = None) -> logging.Logger:
    """Package logger with rich formatting; LOG_LEVEL overrides the default INFO"""
    if level is None:
        level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.propagate = False

    return logger


# Global logger instance
logger = setup_logger()
