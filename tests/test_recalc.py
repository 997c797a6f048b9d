"""Tests for the recalculation pass and read-only evaluation entry points."""

from __future__ import annotations

import math

import pytest

from tabular.formulas import (
    Address,
    ErrorKind,
    ErrorValue,
    FormulaReferenceError,
    RangeValue,
)
from tabular.recalc import evaluate_text, recalculate, resolve_reference
from tabular.table import Table


def _chain(n: int) -> Table:
    """Column A where each cell adds one to the cell below it; A{n} is 1."""
    return Table([[f"=A{i + 1}+1"] for i in range(1, n)] + [["1"]])


# ────────────────────────────────────────────────────────────────
# recalculate
# ────────────────────────────────────────────────────────────────


class TestRecalculate:
    """Tests for recalculate write-back and outcomes."""

    def test_formulas_replaced_by_results(self) -> None:
        table = Table([["1", "2", "=A1+B1"], ["=C1*2", "=1/3", "text"]])
        result = recalculate(table)
        assert table.rows() == [["1", "2", "3"], ["6", "0.3333333333", "text"]]
        assert result.evaluated == 3
        assert result.error_count == 0

    def test_outcomes_row_major(self) -> None:
        table = Table([["=2", "=1"], ["=3", "x"]])
        result = recalculate(table)
        assert [str(o.address) for o in result.outcomes] == ["A1", "B1", "A2"]
        assert result.outcome("b1").text == "1"
        assert result.outcome("Z9") is None

    def test_errors_render_nan(self) -> None:
        table = Table([["=SQRT(-1)", "=1/0", "=1+", "=NOPE()"]])
        result = recalculate(table)
        assert table.rows() == [["NaN", "Inf", "NaN", "NaN"]]
        assert result.error_count == 3
        assert [o.error.kind for o in result.errors] == [
            ErrorKind.domain,
            ErrorKind.parse,
            ErrorKind.name,
        ]

    def test_results_not_visible_mid_pass(self) -> None:
        # B1 must see A1's value, not the text written for it
        table = Table([['=CONCAT("a", "b")', "=LEN(A1)"]])
        recalculate(table)
        assert table.rows() == [["ab", "2"]]

    def test_cycle_reported(self) -> None:
        table = Table([["=B1", "=A1", "=A1+1", "=5"]])
        result = recalculate(table)
        assert table.rows() == [["NaN", "NaN", "NaN", "5"]]
        assert result.cycles == [[Address(1, 1), Address(1, 2)]]
        assert result.outcome("C1").error.kind is ErrorKind.cycle

    def test_long_chain(self) -> None:
        table = _chain(300)
        recalculate(table)
        assert table.raw_text(1, 1) == "300"

    def test_long_chain_behind_cycle_reports_cycle(self) -> None:
        table = _chain(400)
        table.set_text(400, 1, "=A400")
        result = recalculate(table)
        assert result.error_count == 400
        assert {o.error.kind for o in result.errors} == {ErrorKind.cycle}
        assert result.cycles == [[Address(400, 1)]]

    def test_idempotent(self) -> None:
        table = Table([["1", "=A1*3", "=SUM(A1:B1)"]])
        recalculate(table)
        first = table.rows()
        result = recalculate(table)
        assert table.rows() == first
        assert result.evaluated == 0

    def test_skip_header(self) -> None:
        rows = [["100", "=SUM(A:A)"], ["1"], ["2"]]
        plain = Table(rows)
        recalculate(plain)
        assert plain.raw_text(1, 2) == "103"
        skipped = Table(rows)
        recalculate(skipped, skip_header=True)
        assert skipped.raw_text(1, 2) == "3"

    def test_whole_column_counts_grown_rows(self) -> None:
        table = Table([["1", "=SUM(A:A)"], ["2", ""]])
        table.set_text(4, 1, "10")
        recalculate(table)
        assert table.raw_text(1, 2) == "13"

    def test_timings_recorded(self) -> None:
        result = recalculate(Table([["=1"]]))
        assert set(result.timings_ms) == {"evaluate", "write_back"}

    def test_empty_grid(self) -> None:
        result = recalculate(Table())
        assert result.evaluated == 0
        assert result.cycles == []


class TestRecalcEvents:
    """Tests for events emitted by a recalculation pass."""

    def test_events_written(self, log_dir) -> None:
        from tabular.logging.sink import EventSink

        recalculate(Table([["=B1", "=A1", "=SQRT(-1)", "=1"]]))
        events = EventSink(log_dir).read_events()
        types = [e["event_type"] for e in reversed(events)]
        assert types[0] == "calc_started"
        assert types[-1] == "calc_completed"
        assert "calc_cycle" in types
        assert types.count("calc_cell_error") == 3

        completed = events[0]
        assert completed["context"]["evaluated"] == 4
        assert completed["context"]["errors"] == 3
        assert completed["context"]["cycles"] == 1

        cycle = next(e for e in events if e["event_type"] == "calc_cycle")
        assert cycle["level"] == "warning"
        assert cycle["error_code"] == "cell_cycle"
        assert cycle["message"] == "Circular reference: A1 -> B1 -> A1"


# ────────────────────────────────────────────────────────────────
# resolve_reference / evaluate_text
# ────────────────────────────────────────────────────────────────


class TestResolveReference:
    """Tests for resolve_reference."""

    def _table(self) -> Table:
        return Table([["1", "2", ""], ["x", "=A1+B1", "4"]])

    def test_cell(self) -> None:
        assert resolve_reference(self._table(), "A1") == 1
        assert resolve_reference(self._table(), "a2") == "x"

    def test_empty_cell_is_zero(self) -> None:
        assert resolve_reference(self._table(), "C1") == 0
        assert resolve_reference(self._table(), "Z99") == 0

    def test_formula_cell_is_evaluated(self) -> None:
        assert resolve_reference(self._table(), "B2") == 3

    def test_range(self) -> None:
        rv = resolve_reference(self._table(), "A1:C2")
        assert isinstance(rv, RangeValue)
        assert rv.values == [1, 2, None, "x", 3, 4]
        assert (rv.n_rows, rv.n_cols) == (2, 3)

    def test_whole_row_and_column(self) -> None:
        assert resolve_reference(self._table(), "2:2").values == ["x", 3, 4]
        assert resolve_reference(self._table(), "C:C").values == [None, 4]

    def test_invalid(self) -> None:
        with pytest.raises(FormulaReferenceError):
            resolve_reference(self._table(), "hello")

    def test_long_chain(self) -> None:
        """A chain deeper than the interpreter's recursion limit still resolves."""
        assert resolve_reference(_chain(300), "A1") == 300
        assert resolve_reference(_chain(300), "A1:A2").values == [300, 299]

    def test_long_chain_behind_cycle(self) -> None:
        table = _chain(400)
        table.set_text(400, 1, "=A400")
        assert resolve_reference(table, "A1").kind is ErrorKind.cycle

    def test_read_only(self) -> None:
        table = self._table()
        before = table.rows()
        resolve_reference(table, "B2")
        assert table.rows() == before


class TestEvaluateText:
    """Tests for evaluate_text."""

    def test_without_grid(self) -> None:
        assert evaluate_text("=2*3") == 6
        assert evaluate_text("2*3") == 6

    def test_with_grid(self) -> None:
        table = Table([["4", "=A1^2"]])
        assert evaluate_text("=B1+1", table) == 17
        assert table.raw_text(1, 2) == "=A1^2"

    def test_long_chain(self) -> None:
        table = _chain(300)
        assert evaluate_text("=A1", table) == 300
        assert evaluate_text("=A1+A150", table) == 451
        assert table.raw_text(1, 1) == "=A2+1"

    def test_errors_returned_not_raised(self) -> None:
        result = evaluate_text("=(1")
        assert isinstance(result, ErrorValue)
        assert result.kind is ErrorKind.parse

    def test_special_floats_are_values(self) -> None:
        assert math.isnan(evaluate_text("=0/0"))
