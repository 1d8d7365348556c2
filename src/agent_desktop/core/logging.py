"""Logging helpers for agent-desktop.

All modules obtain their logger through :func:`get_logger` so that a single
handler installed by :func:`configure_logging` controls the output of the
whole package. Messages go to stderr with an ``agent-desktop:`` prefix so they
are distinguishable from the wrapped binary's own output.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

ROOT_LOGGER_NAME = "agent_desktop"
LOG_FORMAT = "agent-desktop: %(message)s"
DEBUG_LOG_FORMAT = "agent-desktop: [%(levelname)s] %(name)s: %(message)s"

_HANDLER_ATTR = "_agent_desktop_handler"


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under the package root logger."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    default_level: int = logging.INFO,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Configure the package logger.

    Level precedence: ``debug`` > ``quiet`` > ``verbose`` > ``default_level``.
    Calling this more than once replaces the previously installed handler
    instead of stacking a new one.

    Args:
        debug: Enable debug output with logger names.
        verbose: Force info-level output.
        quiet: Only report errors.
        default_level: Level used when no flag is given.
        stream: Output stream (defaults to ``sys.stderr``).

    Returns:
        The configured root package logger.
    """
    if debug:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.INFO
    else:
        level = default_level

    logger = logging.getLogger(ROOT_LOGGER_NAME)

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_ATTR, False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(DEBUG_LOG_FORMAT if debug else LOG_FORMAT))
    setattr(handler, _HANDLER_ATTR, True)

    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
