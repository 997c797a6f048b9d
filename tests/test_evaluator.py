"""Tests for expression evaluation: operators, references, dispatch and failures."""

from __future__ import annotations

import math

import pytest

from tabular.formulas import ErrorKind, ErrorValue, evaluate_formula, parse_formula
from tabular.recalc import evaluate_text
from tabular.table import Table


def _eval(formula: str, rows: list[list[str]] | None = None):
    return evaluate_text(formula, Table(rows) if rows is not None else None)


def _kind(value) -> ErrorKind:
    assert isinstance(value, ErrorValue), f"expected an error, got {value!r}"
    return value.kind


# ────────────────────────────────────────────────────────────────
# Arithmetic
# ────────────────────────────────────────────────────────────────


class TestArithmetic:
    """Tests for arithmetic operators."""

    def test_precedence(self) -> None:
        assert _eval("=1+2*3") == 7
        assert _eval("=(1+2)*3") == 9
        assert _eval("=-2^2") == -4
        assert _eval("=2^3^2") == 512

    def test_integers_stay_exact(self) -> None:
        result = _eval("=2^10 - 24")
        assert result == 1000
        assert isinstance(result, int)

    def test_division_is_float(self) -> None:
        assert _eval("=7/2") == 3.5
        assert _eval("=6/3") == 2.0
        assert isinstance(_eval("=6/3"), float)

    def test_division_by_zero(self) -> None:
        assert _eval("=1/0") == math.inf
        assert _eval("=-1/0") == -math.inf
        assert math.isnan(_eval("=0/0"))

    def test_remainder_sign_follows_dividend(self) -> None:
        assert _eval("=7%3") == 1
        assert _eval("=-7%3") == -1
        assert _eval("=7%-3") == 1
        assert _eval("=7.5%2") == pytest.approx(1.5)
        assert math.isnan(_eval("=5%0"))

    def test_power_edge_cases(self) -> None:
        assert _eval("=2^-1") == 0.5
        assert _eval("=4^0.5") == 2.0
        assert math.isnan(_eval("=(-8)^(1/3)"))
        assert _eval("=0^-1") == math.inf

    def test_overflow_promotes_to_float(self) -> None:
        result = _eval("=9223372036854775807+1")
        assert isinstance(result, float)
        assert result == pytest.approx(9.223372036854776e18)

    def test_unary(self) -> None:
        assert _eval("=--3") == 3
        assert _eval("=+4") == 4
        assert _eval("=NOT 0") is True
        assert _eval("=!1") is False

    def test_booleans_are_numbers(self) -> None:
        assert _eval("=TRUE+TRUE") == 2
        assert _eval("=FALSE*5") == 0

    def test_text_is_not_numeric(self) -> None:
        assert _kind(_eval('="abc"+1')) is ErrorKind.type
        assert _kind(_eval("=A1*2", [["abc"]])) is ErrorKind.type


# ────────────────────────────────────────────────────────────────
# Comparison and logic
# ────────────────────────────────────────────────────────────────


class TestComparison:
    """Tests for comparison operators."""

    def test_numbers(self) -> None:
        assert _eval("=1<2") is True
        assert _eval("=2<=2") is True
        assert _eval("=3<>3") is False
        assert _eval("=TRUE=1") is True

    def test_text(self) -> None:
        assert _eval('="a"="a"') is True
        assert _eval('="a"<"b"') is True
        assert _eval('="A"="a"') is False

    def test_text_against_number(self) -> None:
        assert _eval('="1"=1') is False
        assert _eval('="1"<>1') is True
        assert _kind(_eval('="a"<1')) is ErrorKind.type

    def test_chained_comparison_is_left_associative(self) -> None:
        # (3 > 2) > 1  ->  TRUE > 1  ->  1 > 1
        assert _eval("=3>2>1") is False


class TestShortCircuit:
    """Tests for infix AND/OR short-circuiting versus eager function forms."""

    def test_infix_and_skips_right(self) -> None:
        assert _eval("=0 AND SQRT(-1)") is False
        assert _eval("=1 OR SQRT(-1)") is True

    def test_infix_evaluates_right_when_needed(self) -> None:
        assert _kind(_eval("=1 AND SQRT(-1)")) is ErrorKind.domain

    def test_function_forms_are_eager(self) -> None:
        assert _kind(_eval("=AND(0, SQRT(-1))")) is ErrorKind.domain
        assert _kind(_eval("=OR(1, SQRT(-1))")) is ErrorKind.domain

    def test_if_skips_untaken_branch(self) -> None:
        assert _eval("=IF(1, 2, SQRT(-1))") == 2
        assert _eval("=IF(0, SQRT(-1), 3)") == 3

    def test_iferror(self) -> None:
        assert _eval("=IFERROR(1/0, 5)") == 5
        assert _eval("=IFERROR(0/0, 5)") == 5
        assert _eval('=IFERROR(SQRT(-1), "bad")') == "bad"
        assert _eval("=IFERROR(3, 5)") == 3

    def test_iserror(self) -> None:
        assert _eval("=ISERROR(SQRT(-1))") is True
        assert _eval("=ISERROR(NOPE(1))") is True
        assert _eval("=ISERROR(1)") is False


# ────────────────────────────────────────────────────────────────
# References
# ────────────────────────────────────────────────────────────────


class TestReferences:
    """Tests for cell and range references inside formulas."""

    def test_cells(self) -> None:
        assert _eval("=A1*B1", [["2", "3"]]) == 6

    def test_empty_cell_is_zero(self) -> None:
        assert _eval("=C5+1", [["2"]]) == 1

    def test_formula_cells_are_evaluated(self) -> None:
        assert _eval("=B1*10", [["4", "=A1+1"]]) == 50

    def test_failed_cell_propagates_kind(self) -> None:
        assert _kind(_eval("=A1+1", [["=SQRT(-1)"]])) is ErrorKind.domain

    def test_lowercase_references(self) -> None:
        assert _eval("=sum(a1:b1)", [["2", "3"]]) == 5

    def test_no_grid(self) -> None:
        assert evaluate_formula(parse_formula("=A1+1")) == 1
        assert _eval("=SUM(A1:A3)") == 0


# ────────────────────────────────────────────────────────────────
# Function dispatch
# ────────────────────────────────────────────────────────────────


class TestDispatch:
    """Tests for function lookup, arity and argument shapes."""

    def test_unknown_function(self) -> None:
        assert _kind(_eval("=NOPE(1)")) is ErrorKind.name

    def test_case_insensitive_names(self) -> None:
        assert _eval("=abs(-2)") == 2
        assert _eval("=Abs(-2)") == 2

    def test_fixed_arity(self) -> None:
        assert _kind(_eval("=ABS(1, 2)")) is ErrorKind.arity
        assert _kind(_eval("=ABS()")) is ErrorKind.arity
        assert _kind(_eval("=IF(1)")) is ErrorKind.arity

    def test_range_arity(self) -> None:
        assert _kind(_eval("=SUM(A1:A2, A3)")) is ErrorKind.arity

    def test_range_in_scalar_position(self) -> None:
        assert _kind(_eval("=ABS(A1:A2)")) is ErrorKind.arity
        assert _kind(_eval("=A1:A2+1")) is ErrorKind.type

    def test_scalar_in_range_position(self) -> None:
        assert _eval("=SUM(5)") == 5
        assert _eval("=SUM(A1)", [["7"]]) == 7

    def test_mismatched_ranges(self) -> None:
        rows = [["1", "2"], ["2", "4"], ["3", "6"], ["", "8"]]
        result = _eval("=CORREL(A1:A3, B1:B4)", rows)
        assert _kind(result) is ErrorKind.arity
        assert "equal size" in result.message

    def test_parse_failure_is_error_value(self) -> None:
        assert _kind(_eval("=1+")) is ErrorKind.parse
        assert _kind(_eval("=1 # 2")) is ErrorKind.lex

    def test_guarded_division(self) -> None:
        rows = [["5", "0"]]
        assert _eval("=B1<>0 AND A1/B1>10", rows) is False
        assert _eval('=IF(B1<>0, A1/B1, "n/a")', rows) == "n/a"
