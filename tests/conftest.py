"""Shared pytest fixtures for the joistmail test suite."""

from __future__ import annotations

# Disable Rich colors before any imports, Rich checks these at import time
import os

os.environ["NO_COLOR"] = "1"
os.environ["TERM"] = "dumb"
os.environ["FORCE_COLOR"] = "0"
os.environ["COLUMNS"] = "200"

import pathlib
import shutil
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from joistmail.config import CONFIG_ENV_VAR, clear_config

# pylint: disable=redefined-outer-name


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Run every test from an empty directory with no cached configuration."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    clear_config()
    yield
    clear_config()


@pytest.fixture(scope="session")
def fixtures_root() -> Path:
    """Return the root directory containing persistent test fixtures."""
    return pathlib.Path(__file__).parent / "fixtures"


@pytest.fixture
def copy_fixture(fixtures_root: Path, tmp_path: Path) -> Callable[..., Path]:
    """Copy a fixture file into the pytest temp directory."""

    def _copy(subdir: str, fixture_name: str, dest_name: str | None = None) -> Path:
        src = fixtures_root / subdir / fixture_name
        dst = tmp_path / (dest_name or fixture_name)
        shutil.copyfile(src, dst)
        return dst

    return _copy


@pytest.fixture
def attachment_dir(tmp_path: Path) -> Path:
    """Return a directory for attachment files."""
    path = tmp_path / "attachments"
    path.mkdir()
    return path
