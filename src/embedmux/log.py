"""Logging helpers.

Every logger handed out here lives under the ``embedmux`` namespace so a
single handler configured by the CLI or the host application covers the
whole package.

Example:
    >>> from embedmux.log import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.name
    'embedmux.log'
"""

from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    if not (name == "embedmux" or name.startswith("embedmux.")):
        name = f"embedmux.{name}"
    return logging.getLogger(name)


def configure_logging(level: str | int = "WARNING") -> None:
    """Attach a stderr handler to the package logger.

    Unknown level names fall back to WARNING.
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        level = resolved if isinstance(resolved, int) else logging.WARNING
    logger = logging.getLogger("embedmux")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(level)
