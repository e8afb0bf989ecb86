"""
Logging setup for command-line entry points.

Library modules only create module-level loggers (``logging.getLogger(__name__)``)
and never configure handlers. Scripts under actions/ call configure_logging()
once at startup so cache decisions and download URLs become visible.
"""

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%H:%M:%S"


def configure_logging(level: str = "WARNING") -> None:
    """
    Configure root logging for a script run.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR). Case-insensitive.

    Raises:
        ValueError: If level is not a known logging level name.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logging.basicConfig(level=numeric_level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
