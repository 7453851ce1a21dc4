"""Process-wide logging setup."""

from __future__ import annotations

import logging
import sys
from typing import Optional

LOGGER_NAME = "lark_relay"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """
    Attach a stream handler to the root logger once and apply the level.

    Calling it again only updates the level, so app factories used in tests do
    not stack handlers.
    """
    global _configured
    root = logging.getLogger()
    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        _configured = True
    root.setLevel(level.upper())
    logging.getLogger(LOGGER_NAME).setLevel(level.upper())


def get_logger(name: Optional[str] = None) -> logging.Logger:
    if name is None:
        return logging.getLogger(LOGGER_NAME)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
