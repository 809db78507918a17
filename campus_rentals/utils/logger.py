"""Process-wide logging setup for the rental engine."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from campus_rentals.utils.config import get_settings


_ROOT_LOGGER_NAME = "campus_rentals"
_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """Attach a single stdout handler to the package logger.

    Repeated calls only adjust the level, so tests and the uvicorn launcher
    can both call this without duplicating output.
    """

    global _configured
    resolved_level = (level or get_settings().log_level).upper()
    package_logger = logging.getLogger(_ROOT_LOGGER_NAME)
    package_logger.setLevel(resolved_level)
    if _configured:
        return

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    package_logger.addHandler(handler)
    package_logger.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the package namespace."""
    configure_logging()
    if name == "__main__" or not name.startswith(_ROOT_LOGGER_NAME):
        name = f"{_ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
