"""Tests for addresses, reference parsing, text coercion and range reads."""

from __future__ import annotations

import pytest

from tabular.formulas import (
    Address,
    CellRange,
    ColumnRange,
    FormulaReferenceError,
    RowRange,
    coerce_text,
    column_index,
    column_letters,
    parse_address,
    parse_range,
    parse_reference,
)
from tabular.formulas.references import resolve_range
from tabular.table import Table


# ────────────────────────────────────────────────────────────────
# Column letters
# ────────────────────────────────────────────────────────────────


class TestColumnLetters:
    """Tests for column_index and column_letters."""

    @pytest.mark.parametrize(
        "letters, index",
        [("A", 1), ("Z", 26), ("AA", 27), ("AZ", 52), ("ZZ", 702), ("AAA", 703)],
    )
    def test_round_trip(self, letters: str, index: int) -> None:
        assert column_index(letters) == index
        assert column_letters(index) == letters

    def test_lowercase(self) -> None:
        assert column_index("ab") == 28

    def test_invalid_letters(self) -> None:
        with pytest.raises(FormulaReferenceError):
            column_index("A1")
        with pytest.raises(FormulaReferenceError):
            column_index("")

    def test_non_positive_index(self) -> None:
        with pytest.raises(FormulaReferenceError):
            column_letters(0)


# ────────────────────────────────────────────────────────────────
# Reference parsing
# ────────────────────────────────────────────────────────────────


class TestParseReference:
    """Tests for parse_address, parse_range and parse_reference."""

    def test_address(self) -> None:
        assert parse_address("B7") == Address(7, 2)
        assert parse_address("aa10") == Address(10, 27)
        assert str(Address(10, 27)) == "AA10"

    def test_address_row_zero(self) -> None:
        with pytest.raises(FormulaReferenceError, match="start at 1"):
            parse_address("A0")

    def test_address_malformed(self) -> None:
        for text in ("7B", "A", "A1B", ""):
            with pytest.raises(FormulaReferenceError):
                parse_address(text)

    def test_range_normalised(self) -> None:
        rng = parse_range("C3:A1")
        assert rng == CellRange(Address(1, 1), Address(3, 3))
        assert str(rng) == "A1:C3"

    def test_range_mixed_corners(self) -> None:
        assert parse_range("A3:C1") == CellRange(Address(1, 1), Address(3, 3))

    def test_reference_forms(self) -> None:
        assert parse_reference("B2") == Address(2, 2)
        assert parse_reference("A1:B2") == CellRange(Address(1, 1), Address(2, 2))
        assert parse_reference("C:A") == ColumnRange(1, 3)
        assert parse_reference("5:2") == RowRange(2, 5)

    def test_reference_rejects_mixed(self) -> None:
        with pytest.raises(FormulaReferenceError):
            parse_reference("A:1")
        with pytest.raises(FormulaReferenceError):
            parse_reference("0:3")


# ────────────────────────────────────────────────────────────────
# Text coercion
# ────────────────────────────────────────────────────────────────


class TestCoerceText:
    """Tests for coerce_text."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("42", 42),
            (" 42 ", 42),
            ("-3", -3),
            ("2.5", 2.5),
            (".5", 0.5),
            ("3.5e2", 350.0),
            ("1,234", 1234),
            ("1,234.5", 1234.5),
            ("$1,234.56", 1234.56),
            ("(€12)", -12.0),
            ("-$5", -5.0),
            ("12£", 12.0),
            ("15%", 0.15),
            ("TRUE", True),
            ("false", False),
        ],
    )
    def test_values(self, raw: str, expected: object) -> None:
        value = coerce_text(raw)
        assert value == expected
        assert type(value) is type(expected)

    def test_empty(self) -> None:
        assert coerce_text("") is None
        assert coerce_text("   ") is None

    def test_text_kept(self) -> None:
        assert coerce_text("12abc") == "12abc"
        assert coerce_text("1,23") == "1,23"
        assert coerce_text("hello world") == "hello world"


# ────────────────────────────────────────────────────────────────
# Range reads
# ────────────────────────────────────────────────────────────────


class TestResolveRange:
    """Tests for resolve_range."""

    def _table(self) -> Table:
        return Table([["1", "2"], ["x", ""], ["3.5", "4"]])

    def test_rectangle_row_major(self) -> None:
        rv = resolve_range(self._table(), parse_range("A1:B3"))
        assert rv.values == [1, 2, "x", None, 3.5, 4]
        assert (rv.n_rows, rv.n_cols) == (3, 2)

    def test_numbers_skip_text_and_empty(self) -> None:
        rv = resolve_range(self._table(), parse_range("A1:B3"))
        assert rv.numbers() == [1, 2, 3.5, 4]
        assert rv.present() == [1, 2, "x", 3.5, 4]
        assert rv.flat() == [1, 2, "x", 0, 3.5, 4]

    def test_whole_column_tracks_grid_size(self) -> None:
        table = self._table()
        ref = ColumnRange(1, 1)
        assert resolve_range(table, ref).numbers() == [1, 3.5]
        table.set_text(5, 1, "10")
        assert resolve_range(table, ref).numbers() == [1, 3.5, 10]

    def test_whole_column_skip_header(self) -> None:
        table = Table([["100"], ["1"], ["2"]])
        assert resolve_range(table, ColumnRange(1, 1)).numbers() == [100, 1, 2]
        assert resolve_range(table, ColumnRange(1, 1), skip_header=True).numbers() == [1, 2]

    def test_whole_row(self) -> None:
        rv = resolve_range(self._table(), RowRange(3, 3))
        assert rv.values == [3.5, 4]

    def test_outside_grid_reads_empty(self) -> None:
        rv = resolve_range(self._table(), parse_range("C5:D5"))
        assert rv.values == [None, None]
        assert rv.numbers() == []
