"""Tests for the configuration loader module."""

# pylint: disable=protected-access,missing-function-docstring

from pathlib import Path
from typing import Any

import pytest
from box import Box

from joistmail.config import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG,
    ConfigFileNotFoundError,
    ConfigFormatError,
    EnvVarError,
    clear_config,
    get_config,
    load_config,
)
from joistmail.config.loader import deep_merge
from joistmail.mail import MimeAssembler


def test_defaults_without_file() -> None:
    config = load_config()
    assert isinstance(config, Box)
    assert config.mail.x_mailer == "JoistMailer"
    assert config.mail.smtp.port == 587
    assert config.mail.smtp.security == "opportunistic"


def test_file_in_cwd(copy_fixture: Any, monkeypatch: pytest.MonkeyPatch) -> None:
    copy_fixture("config", "joistmail.conf.yml")
    monkeypatch.setenv("JOISTMAIL_TEST_USER", "reports")
    config = load_config()
    assert config.mail.x_mailer == "ReportMailer"
    assert config.mail.smtp.port == 2525
    # keys absent from the file still come from the defaults
    assert config.logger.defaults.output == "console"
    assert config.logger.defaults.console.level == "INFO"


def test_explicit_path_wins(copy_fixture: Any, tmp_path: Path) -> None:
    copy_fixture("config", "joistmail.conf.yml")
    other = tmp_path / "other.yml"
    other.write_text("mail:\n  x_mailer: Explicit\n", encoding="utf-8")
    config = load_config(other)
    assert config.mail.x_mailer == "Explicit"


def test_env_var_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    target = tmp_path / "env.yml"
    target.write_text("mail:\n  smtp:\n    host: env.example.com\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(target))
    assert load_config().mail.smtp.host == "env.example.com"


def test_home_config(tmp_path: Path) -> None:
    home_dir = tmp_path / "home" / ".config" / "joistmail"
    home_dir.mkdir(parents=True)
    (home_dir / "joistmail.conf.yml").write_text("mail:\n  x_mailer: FromHome\n", encoding="utf-8")
    assert load_config().mail.x_mailer == "FromHome"


@pytest.mark.parametrize("explicit", ["arg", "env"])
def test_missing_explicit_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, explicit: str) -> None:
    missing = tmp_path / "nope.yml"
    if explicit == "env":
        monkeypatch.setenv(CONFIG_ENV_VAR, str(missing))
        with pytest.raises(ConfigFileNotFoundError) as exc_info:
            load_config()
    else:
        with pytest.raises(ConfigFileNotFoundError) as exc_info:
            load_config(missing)
    assert exc_info.value.path == missing
    assert isinstance(exc_info.value, FileNotFoundError)


@pytest.mark.parametrize("fixture_name", ["broken.yml", "list.yml"])
def test_invalid_documents(copy_fixture: Any, fixture_name: str) -> None:
    path = copy_fixture("config", fixture_name)
    with pytest.raises(ConfigFormatError):
        load_config(path)


def test_empty_file_uses_defaults(tmp_path: Path) -> None:
    empty = tmp_path / "joistmail.conf.yml"
    empty.write_text("", encoding="utf-8")
    assert load_config().mail.smtp.host == "localhost"


def test_env_var_expansion(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JOISTMAIL_HOST", "relay.example.com")
    monkeypatch.delenv("JOISTMAIL_PORT", raising=False)
    path = tmp_path / "vars.yml"
    path.write_text(
        "mail:\n  smtp:\n    host: ${JOISTMAIL_HOST}\n    hello_name: ${JOISTMAIL_PORT:-fallback}\n"
        "  aliases:\n    - ${JOISTMAIL_HOST}\n    - plain\n",
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.mail.smtp.host == "relay.example.com"
    assert config.mail.smtp.hello_name == "fallback"
    assert config.mail.aliases == ["relay.example.com", "plain"]


def test_missing_env_var(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("JOISTMAIL_UNSET", raising=False)
    path = tmp_path / "vars.yml"
    path.write_text("mail:\n  smtp:\n    password: ${JOISTMAIL_UNSET}\n", encoding="utf-8")
    with pytest.raises(EnvVarError) as exc_info:
        load_config(path)
    assert exc_info.value.var_name == "JOISTMAIL_UNSET"
    assert exc_info.value.source == str(path)


def test_get_config_caches(tmp_path: Path) -> None:
    first = get_config()
    (tmp_path / "joistmail.conf.yml").write_text("mail:\n  x_mailer: Later\n", encoding="utf-8")
    assert get_config() is first
    clear_config()
    assert get_config().mail.x_mailer == "Later"


def test_deep_merge_does_not_mutate_defaults() -> None:
    merged = deep_merge(DEFAULT_CONFIG, {"mail": {"smtp": {"port": 25}}})
    assert merged["mail"]["smtp"]["port"] == 25
    assert merged["mail"]["smtp"]["host"] == "localhost"
    assert DEFAULT_CONFIG["mail"]["smtp"]["port"] == 587


def test_assembler_from_config(copy_fixture: Any, monkeypatch: pytest.MonkeyPatch) -> None:
    copy_fixture("config", "joistmail.conf.yml")
    monkeypatch.setenv("JOISTMAIL_TEST_USER", "reports")
    assert MimeAssembler.from_config().x_mailer == "ReportMailer"
