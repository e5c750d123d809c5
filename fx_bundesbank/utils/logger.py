"""Logging utilities for the fx_bundesbank package."""

from __future__ import annotations

import logging
from typing import Optional

_LOGGER: Optional[logging.Logger] = None
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: str = "fx_bundesbank") -> logging.Logger:
    """Return a module-level logger configured with a simple formatter."""
    global _LOGGER
    if _LOGGER is None:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        _LOGGER = logging.getLogger("fx_bundesbank")
    return logging.getLogger(name)


def set_log_level(level: str | int) -> None:
    """Apply ``level`` to every logger under the ``fx_bundesbank`` namespace."""

    get_logger()
    resolved = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    logging.getLogger("fx_bundesbank").setLevel(resolved)
