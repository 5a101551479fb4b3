import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logger(name: str = "applog", level: int = logging.WARNING) -> logging.Logger:
    """Send package logs to stderr so they never mix with streamed records."""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = RichHandler(console=Console(stderr=True), show_path=False)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter('%(message)s'))
        logger.addHandler(handler)

    return logger
