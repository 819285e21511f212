"""Exceptions raised by the joistmail.config module.

Exception hierarchy::

    JoistmailError
        ConfigError (base for all configuration errors)
            ConfigFileNotFoundError (explicit file missing)
            ConfigFormatError (unparsable YAML or wrong document shape)
            EnvVarError (required ``${VAR}`` not set)
"""

from __future__ import annotations

from pathlib import Path

from joistmail.exceptions import JoistmailError


class ConfigError(JoistmailError):
    """Base exception for configuration loading errors."""


class ConfigFileNotFoundError(ConfigError, FileNotFoundError):
    """An explicitly requested configuration file does not exist.

    Attributes:
        path: The path that was looked up.
    """

    def __init__(self, path: Path) -> None:
        """Initialize ConfigFileNotFoundError.

        Args:
            path: The missing configuration file.
        """
        super().__init__(f"Configuration file not found: {path}")
        self.path = path


class ConfigFormatError(ConfigError, ValueError):
    """The configuration file could not be parsed into a mapping."""


class EnvVarError(ConfigError):
    """A required environment variable referenced as ``${VAR}`` is not set.

    Attributes:
        var_name: Name of the missing variable.
        source: File in which the reference was found, if known.
    """

    def __init__(self, var_name: str, source: str | None = None) -> None:
        """Initialize EnvVarError.

        Args:
            var_name: Name of the missing variable.
            source: File in which the reference was found.
        """
        where = f" (referenced in {source})" if source else ""
        super().__init__(f"Environment variable '{var_name}' is not set{where}")
        self.var_name = var_name
        self.source = source


__all__ = [
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "EnvVarError",
]
