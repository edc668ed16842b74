"""
Logging configuration
"""
import logging

from rich.logging import RichHandler

from stockdesk.config import get_settings


def get_logger(name: str) -> logging.Logger:
    """Get a configured logger instance"""
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(name)s - %(message)s"))
        logger.addHandler(handler)

    logger.setLevel(logging.DEBUG if get_settings().DEBUG else logging.INFO)
    return logger
