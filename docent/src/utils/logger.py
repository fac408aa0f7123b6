"""
Docent - Logging
=================
A single stdout handler lives on the ``docent`` package logger.  Module
loggers from ``get_logger(__name__)`` carry no handler of their own and
reach it by propagation, so the level can be changed in one place.

Level resolution (first match wins):
  1. ``settings.LOG_LEVEL`` when set (``DEBUG`` … ``CRITICAL``)
  2. ``settings.ENV``: ``"dev"`` → DEBUG, ``"prod"`` → WARNING

The package logger does not propagate to the root logger; uvicorn and
other host applications keep their own handlers.

Usage:
    from docent.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("Indexed %d chunk(s)", n)
"""

import logging
import sys

from docent.config.settings import settings

PACKAGE_LOGGER = "docent"

_ENV_LEVELS = {"dev": logging.DEBUG, "prod": logging.WARNING}
_FORMATTER = logging.Formatter(fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


def _configured_level() -> int:
    if settings.LOG_LEVEL is not None:
        return logging.getLevelName(settings.LOG_LEVEL)
    return _ENV_LEVELS.get(settings.ENV, logging.INFO)


def _package_logger() -> logging.Logger:
    package = logging.getLogger(PACKAGE_LOGGER)
    if not package.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_FORMATTER)
        package.addHandler(handler)
        package.setLevel(_configured_level())
        package.propagate = False
    return package


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return the logger for *name*, nested under the ``docent`` package logger.

    Args:
        name:  Typically ``__name__``.  Names outside the package
               (``"__main__"`` under ``python -m``) are re-rooted as
               ``docent.<name>``.
        level: Optional per-module override; otherwise the package
               level applies.
    """
    _package_logger()
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"

    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger


def set_level(level: int | str) -> None:
    """Change the level of every Docent logger at once."""
    _package_logger().setLevel(level)
