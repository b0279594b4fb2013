"""Chat bot that records "lugar monto [moneda]" expenses by quincena.

Importing the package sets up the ``gastos_bot`` logger once; modules then call
:func:`get_logger` with their component name.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_ROOT_LOGGER_NAME = "gastos_bot"


def _resolve_level(level: Optional[str]) -> str:
    normalized = (level or "INFO").strip().upper()
    return normalized if normalized in logging.getLevelNamesMapping() else "INFO"


def _bootstrap_logging() -> None:
    root = logging.getLogger(_ROOT_LOGGER_NAME)
    if root.handlers:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(_resolve_level(os.getenv("LOG_LEVEL")))
    root.propagate = False


def get_logger(component: Optional[str] = None) -> logging.Logger:
    """Return ``gastos_bot`` or one of its children, e.g. ``gastos_bot.storage.sqlite``."""
    if not component:
        return logging.getLogger(_ROOT_LOGGER_NAME)
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{component.strip('.')}")


def set_log_level(level: Optional[str]) -> None:
    """Apply ``LOG_LEVEL`` from settings; unknown names fall back to INFO."""
    logging.getLogger(_ROOT_LOGGER_NAME).setLevel(_resolve_level(level))


_bootstrap_logging()

__all__ = ["get_logger", "set_log_level"]
