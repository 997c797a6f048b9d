"""Tests for plugin discovery."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from tabular.functions.registry import is_registered, lookup
from tabular.plugins import load_plugin_file, load_plugins
from tabular.recalc import evaluate_text


def _write(directory: Path, name: str, source: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(textwrap.dedent(source))
    return path


FINANCE = """
    from tabular.functions.registry import Arity, extension

    @extension("MARGIN", Arity.FIXED, 2)
    def margin(revenue, cost):
        return (revenue - cost) / revenue
"""


class TestLoadPlugins:
    """Tests for load_plugins directory discovery."""

    def test_missing_dir(self, tmp_path: Path) -> None:
        report = load_plugins(tmp_path / "absent")
        assert report.ok
        assert report.loaded == []

    def test_none_dir(self) -> None:
        report = load_plugins(None)
        assert report.plugin_dir is None
        assert report.ok

    def test_loads_and_registers(self, tmp_path: Path) -> None:
        _write(tmp_path, "finance.py", FINANCE)
        report = load_plugins(tmp_path)
        assert report.loaded == ["finance.py"]
        assert report.functions == ["MARGIN"]
        assert evaluate_text("=MARGIN(200, 150)") == 0.25

    def test_direct_registration(self, tmp_path: Path) -> None:
        _write(
            tmp_path,
            "helpers.py",
            """
            from tabular.functions.registry import register_function

            register_function("TWICE", lambda x: 2 * x)
            register_function("HALF", lambda x: x / 2)
            """,
        )
        report = load_plugins(tmp_path)
        assert sorted(report.functions) == ["HALF", "TWICE"]
        assert evaluate_text("=HALF(TWICE(5))") == 5.0

    def test_underscore_files_skipped(self, tmp_path: Path) -> None:
        _write(tmp_path, "_private.py", FINANCE)
        _write(tmp_path, "notes.txt", "not python")
        report = load_plugins(tmp_path)
        assert report.loaded == []
        assert not is_registered("MARGIN")

    def test_failure_isolated(self, tmp_path: Path) -> None:
        _write(tmp_path, "a_broken.py", "raise RuntimeError('nope')\n")
        _write(tmp_path, "b_finance.py", FINANCE)
        report = load_plugins(tmp_path)
        assert not report.ok
        assert "RuntimeError: nope" in report.failures["a_broken.py"]
        assert report.loaded == ["b_finance.py"]
        assert is_registered("MARGIN")

    def test_syntax_error_reported(self, tmp_path: Path) -> None:
        _write(tmp_path, "bad.py", "def (:\n")
        report = load_plugins(tmp_path)
        assert "SyntaxError" in report.failures["bad.py"]

    def test_later_file_overrides(self, tmp_path: Path) -> None:
        _write(
            tmp_path,
            "a.py",
            """
            from tabular.functions.registry import register_function
            register_function("WHO", lambda: 1)
            """,
        )
        _write(
            tmp_path,
            "b.py",
            """
            from tabular.functions.registry import register_function
            register_function("WHO", lambda: 2)
            """,
        )
        load_plugins(tmp_path)
        assert evaluate_text("=WHO()") == 2

    def test_overrides_builtin(self, tmp_path: Path) -> None:
        _write(
            tmp_path,
            "abs.py",
            """
            from tabular.functions.registry import Arity, register_function
            register_function("ABS", lambda x: -1, Arity.FIXED, 1)
            """,
        )
        load_plugins(tmp_path)
        assert lookup("ABS").builtin is False
        assert evaluate_text("=ABS(5)") == -1


class TestPluginEvents:
    """Tests for plugin_loaded and plugin_failed events."""

    def test_events(self, tmp_path: Path, log_dir: Path) -> None:
        from tabular.logging.sink import EventSink

        plugins = tmp_path / "plugins"
        _write(plugins, "good.py", FINANCE)
        _write(plugins, "oops.py", "import does_not_exist_anywhere\n")
        load_plugins(plugins)
        events = EventSink(log_dir).read_events()

        loaded = [e for e in events if e["event_type"] == "plugin_loaded"]
        assert loaded[0]["context"] == {"plugin": "good.py", "functions": ["MARGIN"]}

        failed = [e for e in events if e["event_type"] == "plugin_failed"]
        assert failed[0]["level"] == "warning"
        assert failed[0]["error_code"] == "plugin_import_error"
        assert "ModuleNotFoundError" in failed[0]["context"]["error"]


class TestLoadPluginFile:
    """Tests for loading a single plugin file."""

    def test_returns_names(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "one.py", FINANCE)
        assert load_plugin_file(path) == ["MARGIN"]

    def test_raises(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "boom.py", "1/0\n")
        with pytest.raises(ZeroDivisionError):
            load_plugin_file(path)
