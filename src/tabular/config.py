"""User configuration, with defaults."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

CONFIG_ENV = "TABULAR_CONFIG"
DEFAULT_CONFIG_DIR = Path("~/.config/tabular")

DEFAULT_CONFIG = {
    "plugin_dir": str(DEFAULT_CONFIG_DIR / "plugins"),
    "plugins_enabled": True,
    "skip_header": False,
    "log_dir": None,  # no event log unless configured
    "log_fsync": False,
}


class ConfigError(Exception):
    """The configuration file exists but cannot be used."""


def _flatten_blocks(user_config: dict[str, Any]) -> dict[str, Any]:
    """Flatten nested ``plugins:`` and ``logging:`` blocks into flat keys.

    Supports::

        plugins:
          dir: ~/my-plugins
          enabled: true
        logging:
          dir: ~/.local/state/tabular
          fsync: false

    Maps to ``plugin_dir``, ``plugins_enabled``, ``log_dir`` and
    ``log_fsync``.  Flat keys given alongside a block win.
    """
    blocks = {
        "plugins": {"dir": "plugin_dir", "enabled": "plugins_enabled"},
        "logging": {"dir": "log_dir", "fsync": "log_fsync"},
    }
    for block_name, mapping in blocks.items():
        block = user_config.get(block_name)
        if not isinstance(block, dict):
            continue
        del user_config[block_name]
        for short_key, flat_key in mapping.items():
            if short_key in block:
                user_config.setdefault(flat_key, block[short_key])
    return user_config


def default_config_path() -> Path:
    """``$TABULAR_CONFIG`` if set, else ``~/.config/tabular/config.yaml``."""
    override = os.environ.get(CONFIG_ENV)
    if override:
        return Path(override).expanduser()
    return (DEFAULT_CONFIG_DIR / "config.yaml").expanduser()


def load_config(path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration from YAML, with defaults.

    Args:
        path: Config file to read.  Defaults to :func:`default_config_path`.
            A missing file is not an error; the defaults are returned.

    Returns:
        Merged configuration dict.  Unknown keys are kept.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = Path(path).expanduser() if path is not None else default_config_path()
    if not config_path.exists():
        return config
    try:
        user_config = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
    if not isinstance(user_config, dict):
        raise ConfigError(f"{config_path} must contain a mapping, got {type(user_config).__name__}")
    config.update(_flatten_blocks(user_config))
    return config


def plugin_dir(config: dict[str, Any]) -> Path | None:
    """Plugin directory from *config*, or ``None`` when plugins are disabled."""
    if not config.get("plugins_enabled", True) or not config.get("plugin_dir"):
        return None
    return Path(config["plugin_dir"]).expanduser()
