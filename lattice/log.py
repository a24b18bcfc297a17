"""
Logger Factory.

This module provides the logger factory shared by every lattice component.

Key features:
- Caller module name resolution when no name is given
- One stream handler per top-level package logger
- Level taken from LATTICE_LOG_LEVEL unless passed explicitly
"""

import inspect
import logging
import os
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
LOG_LEVEL_ENV = "LATTICE_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"


class LatticeStreamHandler(logging.StreamHandler):
    """Stream handler installed on package loggers by get_logger."""

    def __init__(self):
        super().__init__(sys.stderr)
        self.setFormatter(logging.Formatter(LOG_FORMAT))


def get_logger(name: str | None = None, level: int | str | None = None) -> logging.Logger:
    """
    Get a logger whose package root carries the lattice stream handler.

    Child loggers (``lattice.plugin.registry``) propagate to their package
    logger (``lattice``), which is configured once.

    Args:
        name: Logger name. If None, uses calling module's __name__
        level: Logging level applied to the package logger

    Returns:
        The requested logger
    """
    if name is None:
        frame = inspect.currentframe().f_back
        name = frame.f_globals.get("__name__", "lattice")

    logger = logging.getLogger(name)
    root = logging.getLogger(name.split(".", 1)[0])

    # Configure only if not already configured
    if not _is_logger_configured(root):
        _configure_logger(root, level)
    elif level is not None:
        root.setLevel(_resolve_level(level))

    return logger


def set_level(level: int | str, name: str = "lattice") -> None:
    """Change the level of an already configured package logger."""
    get_logger(name, level=level)


def _resolve_level(level: int | str | None) -> int | str:
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL)
    if isinstance(level, str):
        return level.upper()
    return level


def _is_logger_configured(logger: logging.Logger) -> bool:
    """Check if logger already has the lattice handler attached."""
    return any(isinstance(h, LatticeStreamHandler) for h in logger.handlers)


def _configure_logger(logger: logging.Logger, level: int | str | None = None) -> None:
    logger.setLevel(_resolve_level(level))
    logger.propagate = False
    logger.addHandler(LatticeStreamHandler())
