"""Logging configuration for the loopback PKCE client.

Provides logging setup with configurable levels and consistent
formatting across the package. The same level also governs the HTTP
client and callback listener libraries.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from loopback_pkce.config import Config

# Package logger name
LOGGER_NAME = "loopback_pkce"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Libraries that log on our behalf during a handshake
LIBRARY_LOGGERS = ("httpx", "httpcore", "uvicorn", "uvicorn.error")

_logging_configured = False


def setup_logging(config: Config) -> None:
    """Configure the package logger.

    Installs a single stderr handler on the package logger. Calling it
    again only updates the level, so repeated calls never stack handlers.

    Args:
        config: Configuration containing the log_level setting
    """
    global _logging_configured

    log_level = getattr(logging, config.log_level.value)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    _configure_library_loggers(log_level)

    if _logging_configured:
        for handler in logger.handlers:
            handler.setLevel(log_level)
        return

    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)

    # Keep CLI output free of duplicate lines from the root logger
    logger.propagate = False

    _logging_configured = True

    logger.debug("Logging configured with level %s", config.log_level.value)


def get_logger(name: str) -> logging.Logger:
    """Get a logger that is a child of the package logger.

    Args:
        name: Logger name, typically __name__ of the calling module

    Returns:
        Logger instance
    """
    if name.startswith(LOGGER_NAME):
        return logging.getLogger(name)

    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def reset_logging() -> None:
    """Reset logging configuration.

    Used by tests to allow re-initialization of the logging setup.
    """
    global _logging_configured
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.propagate = True
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET)
    _logging_configured = False


def _configure_library_loggers(log_level: int) -> None:
    """Hold httpx and uvicorn at WARNING or above unless the package logs at DEBUG."""
    library_level = log_level if log_level <= logging.DEBUG else max(log_level, logging.WARNING)
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
