"""
Logging configuration for httpd-limits.

Diagnostics go to stderr so the one-line result on stdout stays clean for
schedulers and monitoring plugins that parse it.
"""

import logging
import sys
from typing import TextIO

LOGGER_NAME = "httpd_limits"


def setup_logging(level: int = logging.WARNING, stream: TextIO | None = None) -> logging.Logger:
    """
    Configure and return the package logger.

    Args:
        level: Logging level (WARNING, INFO with --verbose, DEBUG with --debug).
        stream: Output stream, stderr by default.

    Returns:
        The configured ``httpd_limits`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates on repeated calls
    logger.handlers.clear()

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt="[%(levelname)s] %(message)s"))
    logger.addHandler(handler)

    logger.propagate = False
    return logger
