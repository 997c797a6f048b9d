"""Discovery of extension functions from a plugin directory.

A plugin is a ``*.py`` file.  Importing it runs its ``@extension``
decorators (or direct ``register_function`` calls), which add functions
to the registry::

    # ~/.config/tabular/plugins/finance.py
    from tabular.functions.registry import Arity, extension

    @extension("MARGIN", Arity.FIXED, 2)
    def margin(revenue, cost):
        return (revenue - cost) / revenue

Files load in sorted order, so a later file overrides an earlier one
that registers the same name.  A file that fails to import is reported
and skipped.
"""

from __future__ import annotations

import importlib.util
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path

from tabular.functions import registry
from tabular.logging.events import PLUGIN_IMPORT_ERROR, EventType, emit_info, emit_warning

logger = logging.getLogger(__name__)

_MODULE_PREFIX = "tabular_plugin_"


@dataclass
class PluginReport:
    """Outcome of one discovery run.

    Attributes:
        loaded: Plugin files imported successfully.
        functions: Function names registered by those files, in order.
        failures: File name -> error message for files that failed.
    """

    plugin_dir: Path | None = None
    loaded: list[str] = field(default_factory=list)
    functions: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def _registered_names() -> dict[str, object]:
    return {spec.name: spec for spec in registry.list_functions() if not spec.builtin}


def load_plugin_file(path: Path) -> list[str]:
    """Import one plugin file and return the function names it registered.

    Raises:
        Exception: Whatever the plugin raised while importing.
    """
    before = _registered_names()
    module_name = _MODULE_PREFIX + path.stem
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot load {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    after = _registered_names()
    return [name for name, fn_spec in after.items() if before.get(name) is not fn_spec]


def load_plugins(plugin_dir: str | Path | None) -> PluginReport:
    """Import every ``*.py`` file in *plugin_dir*.

    A missing directory (or ``None``) yields an empty report.
    """
    if plugin_dir is None:
        return PluginReport()
    directory = Path(plugin_dir).expanduser()
    report = PluginReport(plugin_dir=directory)
    if not directory.is_dir():
        logger.debug("plugin directory %s does not exist", directory)
        return report

    for path in sorted(directory.glob("*.py")):
        if path.name.startswith("_"):
            continue
        try:
            names = load_plugin_file(path)
        except Exception as exc:
            message = f"{type(exc).__name__}: {exc}"
            report.failures[path.name] = message
            logger.warning("plugin %s failed to load: %s", path.name, message)
            emit_warning(
                EventType.plugin_failed,
                f"Plugin {path.name} failed to load",
                {"plugin": path.name, "error": message},
                error_code=PLUGIN_IMPORT_ERROR,
            )
            continue
        report.loaded.append(path.name)
        report.functions.extend(names)
        emit_info(
            EventType.plugin_loaded,
            f"Loaded plugin {path.name}",
            {"plugin": path.name, "functions": names},
        )
    return report
