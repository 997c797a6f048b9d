"""Shared fixtures: every test starts with no extensions and no event log."""

from __future__ import annotations

from pathlib import Path

import pytest

from tabular.functions.registry import clear_extensions
from tabular.logging.events import set_log_dir


@pytest.fixture(autouse=True)
def _isolated_engine():
    clear_extensions()
    set_log_dir(None)
    yield
    clear_extensions()
    set_log_dir(None)


@pytest.fixture(autouse=True)
def _no_user_config(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point the default config lookup at a file that does not exist."""
    missing = tmp_path_factory.mktemp("cfg") / "config.yaml"
    monkeypatch.setenv("TABULAR_CONFIG", str(missing))


@pytest.fixture
def log_dir(tmp_path: Path) -> Path:
    path = tmp_path / "logs"
    set_log_dir(path)
    return path
