"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from tabular.config import (
    CONFIG_ENV,
    DEFAULT_CONFIG,
    ConfigError,
    default_config_path,
    load_config,
    plugin_dir,
)


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert load_config(tmp_path / "nope.yaml") == DEFAULT_CONFIG

    def test_defaults_not_mutated(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "nope.yaml")
        config["skip_header"] = True
        assert DEFAULT_CONFIG["skip_header"] is False

    def test_flat_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("skip_header: true\nlog_dir: /tmp/tabular-logs\n")
        config = load_config(path)
        assert config["skip_header"] is True
        assert config["log_dir"] == "/tmp/tabular-logs"
        assert config["plugins_enabled"] is True

    def test_nested_blocks(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "plugins:\n  dir: ~/my-plugins\n  enabled: false\n"
            "logging:\n  dir: /var/log/tabular\n  fsync: true\n"
        )
        config = load_config(path)
        assert config["plugin_dir"] == "~/my-plugins"
        assert config["plugins_enabled"] is False
        assert config["log_dir"] == "/var/log/tabular"
        assert config["log_fsync"] is True
        assert "plugins" not in config
        assert "logging" not in config

    def test_flat_key_wins_over_block(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("plugin_dir: /flat\nplugins:\n  dir: /nested\n")
        assert load_config(path)["plugin_dir"] == "/flat"

    def test_unknown_keys_kept(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("theme: dark\n")
        assert load_config(path)["theme"] == "dark"

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path) == DEFAULT_CONFIG

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("plugins: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_env_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text("skip_header: true\n")
        monkeypatch.setenv(CONFIG_ENV, str(path))
        assert default_config_path() == path
        assert load_config()["skip_header"] is True


class TestPluginDir:
    """Tests for plugin directory resolution."""

    def test_default_expanded(self) -> None:
        path = plugin_dir(dict(DEFAULT_CONFIG))
        assert path is not None
        assert "~" not in str(path)
        assert path.parts[-2:] == ("tabular", "plugins")

    def test_disabled(self) -> None:
        assert plugin_dir({**DEFAULT_CONFIG, "plugins_enabled": False}) is None
        assert plugin_dir({**DEFAULT_CONFIG, "plugin_dir": None}) is None
