"""Logging setup shared by the API process and the sync worker."""

import logging
import os
import sys
from typing import Optional


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure the "app" logger hierarchy.

    Args:
        level: DEBUG, INFO, WARNING or ERROR (defaults to LOG_LEVEL or INFO)

    Returns:
        The configured root "app" logger
    """
    logger = logging.getLogger("app")
    level = level or os.getenv("LOG_LEVEL", "INFO")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Avoid duplicate handlers on reload
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        "[%(asctime)s] %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))
    logger.addHandler(handler)
    logger.propagate = False

    return logger
