"""Logging configuration for the ``finseries`` package.

The shell calls ``configure_logging`` once at startup. Library modules only
call ``get_logger("finseries.<module>")``; until the shell configures output,
the package logger carries a ``NullHandler`` so embedding hosts see nothing.
"""

from __future__ import annotations

import logging
import os
import sys

_PKG_LOGGER_NAME = "finseries"
_CONFIGURED = False


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        numeric = getattr(logging, level.strip().upper(), None)
        if isinstance(numeric, int):
            return numeric
    env_val = os.getenv("FINSERIES_LOG_LEVEL")
    if env_val and env_val != level:
        return _parse_level(env_val)
    return logging.INFO


def configure_logging(level: int | str | None = None) -> None:
    """Send ``finseries`` records to stderr; ``FINSERIES_LOG_LEVEL`` sets the default level."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(_parse_level(level))
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
