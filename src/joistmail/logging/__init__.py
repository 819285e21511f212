"""Logging utilities for joistmail.

Library modules log through ``logging.getLogger(__name__)`` and never add
handlers themselves. Applications call :func:`init_logging` once to attach
handlers to the ``joistmail`` logger.

Examples:
    >>> from joistmail.logging import init_logging
    >>> log = init_logging(preset="debug")  # doctest: +SKIP
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from joistmail.logging.manager import (
    LOGGING_LEVEL,
    SUCCESS_LEVEL,
    TRACE_LEVEL,
    LogManager,
    parse_level,
)

ROOT_LOGGER_NAME = "joistmail"

_root_logger: LogManager | None = None


def init_logging(
    *,
    preset: str | None = None,
    config: Mapping[str, Any] | None = None,
) -> LogManager:
    """Create the package :class:`LogManager` and wire the ``joistmail`` logger.

    The handlers built by the manager are also installed on the standard
    ``joistmail`` logger so records from ``joistmail.mail.*`` reach them.
    Calling this again replaces the previous handlers.

    Args:
        preset: Logging preset (``dev``, ``prod`` or ``debug``).
        config: Explicit settings overriding the preset.

    Returns:
        The configured :class:`LogManager`.
    """
    global _root_logger  # pylint: disable=global-statement

    manager = LogManager(name=ROOT_LOGGER_NAME, preset=preset, config=config)

    std_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in std_logger.handlers[:]:
        std_logger.removeHandler(handler)
        handler.close()
    for handler in manager.handlers:
        std_logger.addHandler(handler)
    std_logger.setLevel(TRACE_LEVEL)
    std_logger.propagate = False

    _root_logger = manager
    return manager


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the ``joistmail`` logger or one of its children.

    Examples:
        >>> get_logger("mail").name
        'joistmail.mail'
    """
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


__all__ = [
    "LOGGING_LEVEL",
    "ROOT_LOGGER_NAME",
    "SUCCESS_LEVEL",
    "TRACE_LEVEL",
    "LogManager",
    "get_logger",
    "init_logging",
    "parse_level",
]
