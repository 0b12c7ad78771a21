"""
Python logging configuration for the envscan command.

Log records go to stderr so the report on stdout stays machine readable.
"""

import logging
import sys

DEFAULT_LOG_LEVEL = "WARNING"


def setup_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """
    Configure Python logging for envscan.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR); unknown names fall back to WARNING.

    Log Format:
        YYYY-MM-DD HH:MM:SS [LEVEL] Message
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)
    if not isinstance(log_level, int):
        log_level = logging.WARNING

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
