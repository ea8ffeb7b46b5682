"""Logging configuration for Zotexon."""

import logging
import sys
from typing import Literal

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


def setup_logging(level: LogLevel = "INFO", format_string: str | None = None) -> logging.Logger:
    """Send Zotexon log records to stderr.

    At DEBUG the ``urllib3`` connection log is routed to the same handler so
    every request to the Zotero API shows up; otherwise it stays silent.

    Args:
        level: Logging level
        format_string: Custom format string (optional)

    Returns:
        The ``zotexon`` logger
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(getattr(logging, level))
    handler.setFormatter(logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S"))

    logger = logging.getLogger("zotexon")
    logger.setLevel(getattr(logging, level))
    # Repeated calls must not stack handlers
    logger.handlers.clear()
    logger.addHandler(handler)

    http_logger = logging.getLogger("urllib3")
    http_logger.handlers.clear()
    if level == "DEBUG":
        http_logger.setLevel(logging.DEBUG)
        http_logger.addHandler(handler)
    else:
        http_logger.setLevel(logging.WARNING)

    return logger
