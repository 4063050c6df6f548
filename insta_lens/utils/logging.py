"""Logging setup for the CLI and API entry points."""
import logging

from rich.logging import RichHandler

_FORMAT = "%(name)s: %(message)s"


def setup_logging(level: str | int = "INFO") -> logging.Logger:
    """Route the ``insta_lens`` logger tree through a rich console handler.

    Idempotent: a second call only adjusts the level.
    """
    logger = logging.getLogger("insta_lens")
    logger.setLevel(level)
    if not logger.handlers:
        handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="[%X]"))
        logger.addHandler(handler)
        logger.propagate = False
    return logger
