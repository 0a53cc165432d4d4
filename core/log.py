"""Logger factory for the ``taskboard.*`` namespace."""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from core.settings import LOGGING

ROOT_LOGGER = "taskboard"


def _ensure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if LOGGING.enabled and not root.handlers:
        LOGGING.directory.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            LOGGING.directory / LOGGING.filename,
            maxBytes=LOGGING.max_bytes,
            backupCount=LOGGING.backup_count,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(LOGGING.format))
        root.addHandler(handler)
    root.setLevel(LOGGING.level.upper())
    return root


def get_logger(name: str) -> logging.Logger:
    """Return ``taskboard.<name>`` with the rotating file handler attached once."""
    _ensure_root()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


__all__ = ["get_logger", "ROOT_LOGGER"]
