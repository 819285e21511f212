"""Configuration loading for joistmail.

Examples:
    >>> from joistmail.config import get_config
    >>> get_config().mail.smtp.port  # doctest: +SKIP
    587
"""

from joistmail.config.exceptions import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigFormatError,
    EnvVarError,
)
from joistmail.config.loader import (
    CONFIG_ENV_VAR,
    CONFIG_FILENAME,
    DEFAULT_CONFIG,
    clear_config,
    get_config,
    load_config,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "CONFIG_FILENAME",
    "DEFAULT_CONFIG",
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "EnvVarError",
    "clear_config",
    "get_config",
    "load_config",
]
