"""Command-line interface for tabular-core (formula engine without the editor)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from tabular import __core_api_version__, __version__


@click.group()
@click.version_option(
    version=f"{__version__} (core_api={__core_api_version__})",
    prog_name="tabular-core",
)
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="Config file (default: ~/.config/tabular/config.yaml).",
)
@click.option("--no-plugins", is_flag=True, help="Do not load plugin functions.")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, no_plugins: bool) -> None:
    """tabular-core -- formula engine for CSV grids.

    Formulas are cells starting with '='.  ``calc`` replaces each one with
    its result; the formulas are gone afterwards.
    """
    from tabular.config import ConfigError, load_config

    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e))
    if no_plugins:
        config["plugins_enabled"] = False
    ctx.obj = {"config": config, "setup_done": False}


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _setup(ctx: click.Context) -> dict[str, Any]:
    """Attach the event log and load plugins, once per invocation."""
    from tabular.config import plugin_dir
    from tabular.logging.events import set_log_dir
    from tabular.plugins import load_plugins

    obj = ctx.ensure_object(dict)
    config = obj.setdefault("config", {})
    if obj.get("setup_done"):
        return config
    if config.get("log_dir"):
        set_log_dir(config["log_dir"], fsync=bool(config.get("log_fsync", False)))
    report = load_plugins(plugin_dir(config))
    for name, error in report.failures.items():
        click.echo(f"warning: plugin {name} not loaded: {error}", err=True)
    obj["setup_done"] = True
    return config


def _load_table(path: str) -> Any:
    from tabular.table import Table

    try:
        return Table.read_csv(path)
    except OSError as e:
        raise click.ClickException(f"Cannot read {path}: {e}")
    except Exception as e:
        raise click.ClickException(f"Cannot parse {path} as CSV: {e}")


# ---------------------------------------------------------------------------
# Calc
# ---------------------------------------------------------------------------


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("-o", "--output", default=None, type=click.Path(dir_okay=False), help="Write here instead of FILE.")
@click.option("--skip-header", is_flag=True, help="Whole-column ranges start at row 2.")
@click.option("--json", "as_json", is_flag=True, help="Print per-cell outcomes as JSON.")
@click.pass_context
def calc(ctx: click.Context, file: str, output: str | None, skip_header: bool, as_json: bool) -> None:
    """Evaluate every formula in FILE (headerless CSV) and write the results."""
    from tabular.recalc import recalculate

    config = _setup(ctx)
    skip_header = skip_header or bool(config.get("skip_header", False))

    table = _load_table(file)
    result = recalculate(table, skip_header=skip_header)
    target = Path(output) if output else Path(file)
    table.write_csv(target)

    if as_json:
        out = {
            "file": str(target),
            "evaluated": result.evaluated,
            "errors": result.error_count,
            "cycles": [[str(a) for a in cycle] for cycle in result.cycles],
            "cells": [
                {
                    "cell": str(o.address),
                    "text": o.text,
                    "error": None if o.ok else {"kind": o.error.kind.value, "message": o.error.message},
                }
                for o in result.outcomes
            ],
        }
        click.echo(json.dumps(out, indent=2))
        return

    click.echo(f"Evaluated {result.evaluated} formula(s) in {target}")
    for cycle in result.cycles:
        cells = [str(a) for a in cycle]
        click.echo(f"  cycle: {' -> '.join(cells + cells[:1])}")
    for o in result.errors:
        click.echo(f"  {o.address}: {o.error.message}")
    if result.error_count:
        click.echo(f"{result.error_count} error(s)")


# ---------------------------------------------------------------------------
# Eval
# ---------------------------------------------------------------------------


@main.command("eval")
@click.argument("formula")
@click.option("--csv", "csv_path", default=None, type=click.Path(exists=True, dir_okay=False), help="Grid to resolve references against.")
@click.option("--skip-header", is_flag=True, help="Whole-column ranges start at row 2.")
@click.pass_context
def eval_cmd(ctx: click.Context, formula: str, csv_path: str | None, skip_header: bool) -> None:
    """Evaluate a single FORMULA and print its result."""
    from tabular.formulas.values import ErrorValue, render
    from tabular.recalc import evaluate_text

    config = _setup(ctx)
    skip_header = skip_header or bool(config.get("skip_header", False))
    grid = _load_table(csv_path) if csv_path else None
    value = evaluate_text(formula, grid, skip_header=skip_header)
    click.echo(render(value))
    if isinstance(value, ErrorValue):
        click.echo(f"error ({value.kind.value}): {value.message}", err=True)
        ctx.exit(1)


# ---------------------------------------------------------------------------
# Functions
# ---------------------------------------------------------------------------


@main.command("functions")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def functions_cmd(ctx: click.Context, as_json: bool) -> None:
    """List every function callable from formulas."""
    from tabular.functions.registry import list_functions

    _setup(ctx)
    specs = list_functions()
    if as_json:
        out = [
            {
                "name": s.name,
                "arity": s.arity.value,
                "min_args": s.min_args,
                "max_args": s.max_args,
                "lazy": s.lazy,
                "builtin": s.builtin,
            }
            for s in specs
        ]
        click.echo(json.dumps(out, indent=2))
        return
    for s in specs:
        origin = "" if s.builtin else "  [extension]"
        click.echo(f"{s.describe()}{origin}")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@main.command("events")
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--limit", default=100, type=int, help="Maximum events to show.")
@click.pass_context
def events_cmd(ctx: click.Context, level: str | None, event_type: str | None, limit: int) -> None:
    """Show the structured event log."""
    from tabular.logging.sink import EventSink

    config = ctx.ensure_object(dict).get("config", {})
    if not config.get("log_dir"):
        raise click.ClickException("No log_dir configured.")
    sink = EventSink(Path(config["log_dir"]).expanduser())
    events = sink.read_events(level=level, event_type=event_type, limit=limit)

    if not events:
        click.echo("No events found.")
        return

    for evt in events:
        ts = evt.get("ts", "")
        lvl = evt.get("level", "").upper()
        etype = evt.get("event_type", "")
        msg = evt.get("message", "")
        err = evt.get("error_code")
        line = f"[{ts}] {lvl:7s} {etype}: {msg}"
        if err:
            line += f"  ({err})"
        click.echo(line)
