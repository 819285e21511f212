"""Load ``joistmail.conf.yml`` into a :class:`box.Box`.

The file is looked up in this order, first match wins:

1. the ``path`` argument of :func:`load_config`
2. the ``JOISTMAIL_CONFIG`` environment variable
3. ``./joistmail.conf.yml``
4. ``~/.config/joistmail/joistmail.conf.yml``

Whatever is found is deep-merged over :data:`DEFAULT_CONFIG`, so every key
used by the library is always present. String values may reference
environment variables with ``${VAR}`` or ``${VAR:-default}``.
"""

from __future__ import annotations

import copy
import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from box import Box

from joistmail.config.exceptions import ConfigFileNotFoundError, ConfigFormatError, EnvVarError
from joistmail.meta import __product__

log = logging.getLogger(__name__)

CONFIG_FILENAME = "joistmail.conf.yml"
CONFIG_ENV_VAR = "JOISTMAIL_CONFIG"

DEFAULT_CONFIG: dict[str, Any] = {
    "mail": {
        "x_mailer": __product__,
        "smtp": {
            "host": "localhost",
            "port": 587,
            "hello_name": "localhost",
            "username": None,
            "password": None,
            "mechanism": "plain",
            "security": "opportunistic",
            "verify_certificates": True,
            "smtp_utf8": True,
            "timeout": 30.0,
        },
    },
    "logger": {
        "defaults": {
            "output": "console",
            "console": {"level": "WARNING"},
        },
    },
}

# ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([a-zA-Z_][a-zA-Z0-9_]*)(?::-([^}]*))?\}")

_cached_config: Box | None = None


def _expand_env_vars(value: str, source: str | None = None) -> str:
    """Expand environment variable references in a string.

    Examples:
        >>> import os
        >>> os.environ["JOISTMAIL_DOCTEST"] = "mx.example.com"
        >>> _expand_env_vars("${JOISTMAIL_DOCTEST}")
        'mx.example.com'
        >>> _expand_env_vars("${JOISTMAIL_MISSING:-25}")
        '25'
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default_value = match.group(2)

        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value
        if default_value is not None:
            return default_value
        raise EnvVarError(var_name, source)

    return _ENV_VAR_PATTERN.sub(replacer, value)


def _expand_env_vars_recursive(data: Any, source: str | None = None) -> Any:
    """Apply :func:`_expand_env_vars` to every string in nested dicts and lists."""
    if isinstance(data, dict):
        return {k: _expand_env_vars_recursive(v, source) for k, v in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars_recursive(item, source) for item in data]
    if isinstance(data, str):
        return _expand_env_vars(data, source)
    return data


def deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``, recursing into mappings."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _find_config_file(path: str | Path | None) -> Path | None:
    """Return the configuration file to load, or ``None`` to use defaults.

    Raises:
        ConfigFileNotFoundError: If an explicitly requested file is missing.
    """
    explicit = path if path is not None else os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidate = Path(explicit).expanduser()
        if not candidate.is_file():
            raise ConfigFileNotFoundError(candidate)
        return candidate

    for candidate in (
        Path.cwd() / CONFIG_FILENAME,
        Path.home() / ".config" / "joistmail" / CONFIG_FILENAME,
    ):
        if candidate.is_file():
            return candidate
    return None


def _read_yaml(path: Path) -> dict[str, Any]:
    """Parse a YAML file that must contain a mapping (or nothing)."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigFormatError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFormatError(f"Top-level of {path} must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: str | Path | None = None) -> Box:
    """Load the configuration and refresh the module cache.

    Args:
        path: Explicit configuration file. Falls back to the search order
            described in the module docstring.

    Returns:
        A :class:`box.Box` with defaults merged under the file contents.

    Raises:
        ConfigFileNotFoundError: If ``path`` (or ``$JOISTMAIL_CONFIG``)
            points to a missing file.
        ConfigFormatError: If the file is not valid YAML or not a mapping.
        EnvVarError: If a required ``${VAR}`` is not set.
    """
    global _cached_config  # pylint: disable=global-statement

    config_file = _find_config_file(path)
    data: dict[str, Any] = {}
    if config_file is not None:
        log.debug("Loading configuration from %s", config_file)
        data = _expand_env_vars_recursive(_read_yaml(config_file), str(config_file))
    else:
        log.debug("No %s found, using built-in defaults", CONFIG_FILENAME)

    _cached_config = Box(deep_merge(DEFAULT_CONFIG, data), default_box=True)
    return _cached_config


def get_config() -> Box:
    """Return the cached configuration, loading it on first access."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def clear_config() -> None:
    """Forget the cached configuration."""
    global _cached_config  # pylint: disable=global-statement
    _cached_config = None


__all__ = [
    "CONFIG_ENV_VAR",
    "CONFIG_FILENAME",
    "DEFAULT_CONFIG",
    "clear_config",
    "deep_merge",
    "get_config",
    "load_config",
]
