"""Recalculation entry points used by the editor and the CLI.

:func:`recalculate` is the ``:calc`` command: it evaluates every formula
cell of a grid and replaces each formula with the text of its result.
This is one-way.  After a pass no formula remains, so running it again
changes nothing.

:func:`resolve_reference` and :func:`evaluate_text` read the grid
without writing to it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from tabular.cell_graph import CellGraph
from tabular.formulas.errors import FormulaError
from tabular.formulas.evaluator import EmptyResolver, evaluate_formula
from tabular.formulas.parser import parse_formula
from tabular.formulas.references import Address, RangeValue, parse_reference
from tabular.formulas.values import ErrorValue, Value, render
from tabular.logging.events import (
    CELL_CYCLE,
    CELL_EVAL_ERROR,
    EventType,
    emit_info,
    emit_warning,
)
from tabular.table import Grid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CellOutcome:
    """What one formula cell became.

    Attributes:
        address: The cell.
        text: Text written into the cell (``NaN`` for errors).
        error: The error, or ``None`` when a value was written.
    """

    address: Address
    text: str
    error: ErrorValue | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RecalcResult:
    """Outcome of one recalculation pass."""

    outcomes: list[CellOutcome] = field(default_factory=list)
    cycles: list[list[Address]] = field(default_factory=list)
    timings_ms: dict[str, float] = field(default_factory=dict)

    @property
    def evaluated(self) -> int:
        return len(self.outcomes)

    @property
    def error_count(self) -> int:
        return sum(1 for o in self.outcomes if o.error is not None)

    @property
    def errors(self) -> list[CellOutcome]:
        return [o for o in self.outcomes if o.error is not None]

    def outcome(self, address: Address | str) -> CellOutcome | None:
        key = str(address).upper()
        for o in self.outcomes:
            if str(o.address) == key:
                return o
        return None


def recalculate(grid: Grid, *, skip_header: bool = False) -> RecalcResult:
    """Evaluate every formula cell and write the results back.

    No cell is written until every formula has been evaluated, so no
    formula sees another formula's result text mid-pass.  A failing
    formula yields an error for its own cell only; nothing is raised.

    Args:
        grid: The grid to recalculate in place.
        skip_header: Whole-column references start at row 2.

    Returns:
        Per-cell outcomes in row-major order, plus the cycles found.
    """
    n_rows, n_cols = grid.cell_count()
    emit_info(
        EventType.calc_started,
        "Recalculation started",
        {"rows": n_rows, "cols": n_cols, "skip_header": skip_header},
    )

    timings_ms: dict[str, float] = {}
    t0 = time.monotonic()
    graph = CellGraph(grid, skip_header=skip_header)
    values = graph.evaluate_all()
    timings_ms["evaluate"] = round((time.monotonic() - t0) * 1000, 2)

    result = RecalcResult(cycles=graph.cycles, timings_ms=timings_ms)
    for address, value in values.items():
        error = value if isinstance(value, ErrorValue) else None
        result.outcomes.append(CellOutcome(address, render(value), error))

    # Write back only after the whole pass
    t0 = time.monotonic()
    for outcome in result.outcomes:
        grid.set_text(outcome.address.row, outcome.address.col, outcome.text)
    timings_ms["write_back"] = round((time.monotonic() - t0) * 1000, 2)

    for cycle in result.cycles:
        cells = [str(a) for a in cycle]
        emit_warning(
            EventType.calc_cycle,
            f"Circular reference: {' -> '.join(cells + cells[:1])}",
            {"cells": cells},
            error_code=CELL_CYCLE,
        )
    for outcome in result.errors:
        emit_warning(
            EventType.calc_cell_error,
            f"{outcome.address}: {outcome.error.message}",
            {"cell": str(outcome.address), "kind": outcome.error.kind.value},
            error_code=CELL_EVAL_ERROR,
        )
    emit_info(
        EventType.calc_completed,
        "Recalculation completed",
        {
            "evaluated": result.evaluated,
            "errors": result.error_count,
            "cycles": len(result.cycles),
            "timings_ms": timings_ms,
        },
    )
    logger.debug(
        "recalculated %d cells (%d errors) in %.2f ms",
        result.evaluated,
        result.error_count,
        timings_ms["evaluate"],
    )
    return result


def resolve_reference(grid: Grid, text: str, *, skip_header: bool = False) -> Value | RangeValue:
    """Resolve one reference typed by the user.

    A cell reference yields that cell's value (``0`` when empty; a formula
    cell is evaluated).  Any range form yields a :class:`RangeValue`.

    Raises:
        FormulaReferenceError: If *text* is not a reference.
    """
    ref = parse_reference(text)
    graph = CellGraph(grid, skip_header=skip_header)
    graph.prepare()
    if isinstance(ref, Address):
        value = graph.resolve_cell(ref)
        return 0 if value is None else value
    return graph.resolve_range(ref)


def evaluate_text(formula: str, grid: Grid | None = None, *, skip_header: bool = False) -> Value:
    """Evaluate a single formula without writing anything.

    Returns:
        The value, or an :class:`ErrorValue` if lexing, parsing or
        evaluation failed.
    """
    try:
        node = parse_formula(formula)
        if grid is None:
            return evaluate_formula(node, EmptyResolver())
        graph = CellGraph(grid, skip_header=skip_header)
        graph.prepare()
        return evaluate_formula(node, graph)
    except (FormulaError, ArithmeticError) as exc:
        return ErrorValue.from_exception(exc)
