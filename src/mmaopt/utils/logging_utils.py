"""
Logging helper shared by the optimizer modules.

All ``mmaopt.*`` loggers inherit one handler installed on the package root
logger, so messages from the controller and the subproblem solver appear once
and in the same format.
"""

from __future__ import annotations

import logging


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s: %(message)s"


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper(), logging.INFO)


def get_logger(name: str, level: str | int = "INFO") -> logging.Logger:
    """Return the logger for ``name`` with the package handler in place.

    Params:
        name: logger name, usually __name__ of the caller module.
        level: level of the package root logger on first configuration
            (e.g., 'DEBUG', 'INFO' or a logging constant).

    Returns:
        logging.Logger for ``name``.
    """
    root = logging.getLogger(name.split(".")[0])
    if not root.handlers:
        root.setLevel(_resolve_level(level))
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    return logging.getLogger(name)
