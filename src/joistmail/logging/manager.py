"""Logger with joistmail presets, custom levels and a rich console handler.

Two levels are added to the standard ones:

- ``TRACE`` (5): protocol-level detail such as the SMTP conversation.
- ``SUCCESS`` (25): a message was accepted by the server.

:class:`LogManager` is a :class:`logging.Logger`. The logger itself lets
every record through; handlers decide what is emitted.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from types import SimpleNamespace
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

from joistmail.config.loader import deep_merge

TRACE_LEVEL = 5
SUCCESS_LEVEL = 25

logging.addLevelName(TRACE_LEVEL, "TRACE")
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")

LOGGING_LEVEL = SimpleNamespace(
    TRACE=TRACE_LEVEL,
    DEBUG=logging.DEBUG,
    INFO=logging.INFO,
    SUCCESS=SUCCESS_LEVEL,
    WARNING=logging.WARNING,
    ERROR=logging.ERROR,
    CRITICAL=logging.CRITICAL,
)

_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

FALLBACK_DEFAULTS: dict[str, Any] = {
    "output": "console",
    "console": {"level": "WARNING"},
    "file": {
        "level": "DEBUG",
        "log_path": ".",
        "log_dir": "logs",
        "log_name": "joistmail.log",
    },
}

FALLBACK_PRESETS: dict[str, dict[str, Any]] = {
    "dev": {"output": "console", "console": {"level": "DEBUG"}},
    "prod": {"output": "file", "file": {"level": "INFO"}},
    "debug": {"output": "both", "console": {"level": "TRACE"}, "file": {"level": "TRACE"}},
}

_VALID_OUTPUTS = frozenset({"console", "file", "both"})


def parse_level(level: str | int | None, default: int = logging.WARNING) -> int:
    """Convert a level name such as ``"TRACE"`` or a number to an int.

    Examples:
        >>> parse_level("trace")
        5
        >>> parse_level(None)
        30
    """
    if level is None:
        return default
    if isinstance(level, int):
        return level
    value = getattr(LOGGING_LEVEL, str(level).upper(), None)
    return value if isinstance(value, int) else default


def _global_defaults() -> Mapping[str, Any]:
    """Return the ``logger.defaults`` section of the loaded configuration."""
    from joistmail.config import get_config  # pylint: disable=import-outside-toplevel

    section = get_config().get("logger", {}).get("defaults", {})
    return section if isinstance(section, Mapping) else {}


class LogManager(logging.Logger):
    """Logger configured from presets, global config and explicit overrides.

    Settings are layered: built-in fallback, ``logger.defaults`` from
    ``joistmail.conf.yml``, the named preset, then ``config``.

    Extra keyword arguments passed to the logging methods are appended to
    the message as ``key=value`` pairs.

    Args:
        name: Logger name.
        preset: One of ``dev``, ``prod`` or ``debug``. Unknown names are
            ignored.
        config: Explicit settings (``output``, ``console``, ``file``).

    Examples:
        >>> log = LogManager(name="demo", config={"output": "console"})
        >>> log.success("250 accepted", recipients=2)  # doctest: +SKIP
    """

    def __init__(
        self,
        name: str = "joistmail",
        *,
        preset: str | None = None,
        config: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(name, level=TRACE_LEVEL)
        self.settings = self._resolve_settings(preset, config)
        for handler in self._build_handlers(self.settings):
            self.addHandler(handler)

    @staticmethod
    def _resolve_settings(preset: str | None, config: Mapping[str, Any] | None) -> dict[str, Any]:
        settings = deep_merge(FALLBACK_DEFAULTS, _global_defaults())
        if preset is not None:
            settings = deep_merge(settings, FALLBACK_PRESETS.get(preset, {}))
        if config:
            settings = deep_merge(settings, config)
        if settings.get("output") not in _VALID_OUTPUTS:
            settings["output"] = "console"
        return settings

    @staticmethod
    def _build_handlers(settings: Mapping[str, Any]) -> list[logging.Handler]:
        handlers: list[logging.Handler] = []
        output = settings["output"]

        if output in ("console", "both"):
            console_cfg = settings.get("console", {})
            console = RichHandler(
                console=Console(stderr=True),
                show_path=False,
                rich_tracebacks=True,
                markup=False,
            )
            console.setLevel(parse_level(console_cfg.get("level")))
            handlers.append(console)

        if output in ("file", "both"):
            file_cfg = settings.get("file", {})
            log_dir = Path(file_cfg.get("log_path", ".")) / file_cfg.get("log_dir", "logs")
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_dir / file_cfg.get("log_name", "joistmail.log"), encoding="utf-8")
            file_handler.setLevel(parse_level(file_cfg.get("level"), default=logging.DEBUG))
            file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
            handlers.append(file_handler)

        return handlers

    @staticmethod
    def _with_context(msg: object, context: Mapping[str, Any]) -> object:
        if not context:
            return msg
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        return f"{msg} | {pairs}"

    def _log_with_context(self, level: int, msg: object, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        if not self.isEnabledFor(level):
            return
        std = {key: kwargs.pop(key) for key in ("exc_info", "stack_info", "stacklevel", "extra") if key in kwargs}
        std["stacklevel"] = std.get("stacklevel", 1) + 2
        self._log(level, self._with_context(msg, kwargs), args, **std)

    def trace(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at TRACE level."""
        self._log_with_context(TRACE_LEVEL, msg, args, kwargs)

    def debug(self, msg: object, *args: Any, **kwargs: Any) -> None:
        self._log_with_context(logging.DEBUG, msg, args, kwargs)

    def info(self, msg: object, *args: Any, **kwargs: Any) -> None:
        self._log_with_context(logging.INFO, msg, args, kwargs)

    def success(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at SUCCESS level."""
        self._log_with_context(SUCCESS_LEVEL, msg, args, kwargs)

    def warning(self, msg: object, *args: Any, **kwargs: Any) -> None:
        self._log_with_context(logging.WARNING, msg, args, kwargs)

    def error(self, msg: object, *args: Any, **kwargs: Any) -> None:
        self._log_with_context(logging.ERROR, msg, args, kwargs)

    def critical(self, msg: object, *args: Any, **kwargs: Any) -> None:
        self._log_with_context(logging.CRITICAL, msg, args, kwargs)

    def traceback(self, exc: BaseException, msg: str = "Unhandled exception") -> None:
        """Log ``exc`` with its traceback at ERROR level."""
        self._log(logging.ERROR, "%s: %s", (msg, exc), exc_info=exc)


__all__ = [
    "FALLBACK_DEFAULTS",
    "FALLBACK_PRESETS",
    "LOGGING_LEVEL",
    "SUCCESS_LEVEL",
    "TRACE_LEVEL",
    "LogManager",
    "parse_level",
]
