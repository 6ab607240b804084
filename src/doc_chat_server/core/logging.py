"""
Logging Setup

All modules log through named loggers under the ``chat`` namespace
(``chat.app``, ``chat.pipeline``, ...). This module attaches a single console
handler to that namespace once, at application startup.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure the ``chat`` logger hierarchy.

    Safe to call more than once (e.g. under uvicorn reload or repeated
    app creation in tests): handlers are only added the first time.
    """
    logger = logging.getLogger("chat")
    logger.setLevel(level.upper())

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    # Avoid duplicate lines through the uvicorn root handlers
    logger.propagate = False
    return logger
