"""Logging configuration for ha-nat."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

# Package logger; module loggers created with logging.getLogger(__name__) propagate here
logger = logging.getLogger("ha_nat")


def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    console: Optional[Console] = None,
) -> logging.Logger:
    """Configure the combined console and file log sink.

    Args:
        verbose: Enable debug level logging
        log_file: Optional file path for log output
        console: Rich console to render to, defaults to stderr

    Returns:
        Configured logger instance
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    # Clear existing handlers so repeated runs in one process do not duplicate output
    logger.handlers.clear()

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=verbose,
    )
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger
