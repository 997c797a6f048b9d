"""Cell and range addresses, and coercion of raw cell text into values.

Addresses are 1-based on both axes.  Column letters use bijective
base-26 (A=1 .. Z=26, AA=27); there is no letter for zero.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterator, Union

from tabular.formulas.errors import FormulaPropagatedError, FormulaReferenceError
from tabular.formulas.values import ErrorValue, Number, Value, fit_int, is_number

if TYPE_CHECKING:
    from tabular.table import Grid


_LETTERS_RE = re.compile(r"^[A-Za-z]+$")
_ADDR_RE = re.compile(r"^([A-Za-z]+)([0-9]+)$")
_DIGITS_RE = re.compile(r"^[0-9]+$")


# ---------------------------------------------------------------------------
# Column letters
# ---------------------------------------------------------------------------


def column_index(letters: str) -> int:
    """Convert column letter(s) to a 1-based index.  A=1, Z=26, AA=27."""
    if not _LETTERS_RE.match(letters):
        raise FormulaReferenceError(letters, f"Invalid column letters: {letters!r}")
    idx = 0
    for ch in letters.upper():
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx


def column_letters(index: int) -> str:
    """Convert a 1-based column index to letter(s).  1=A, 26=Z, 27=AA."""
    if index < 1:
        raise FormulaReferenceError(str(index), f"Column index must be positive, got {index}")
    result = ""
    n = index
    while n > 0:
        n, rem = divmod(n - 1, 26)
        result = chr(65 + rem) + result
    return result


# ---------------------------------------------------------------------------
# Address and range types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, order=True)
class Address:
    row: int
    col: int

    def __str__(self) -> str:
        return f"{column_letters(self.col)}{self.row}"


@dataclass(frozen=True)
class CellRange:
    """Rectangle between two addresses, normalised so ``start`` is top-left."""

    start: Address
    end: Address

    @classmethod
    def between(cls, a: Address, b: Address) -> CellRange:
        return cls(
            Address(min(a.row, b.row), min(a.col, b.col)),
            Address(max(a.row, b.row), max(a.col, b.col)),
        )

    def bounds(self, n_rows: int, n_cols: int, *, skip_header: bool = False) -> tuple[int, int, int, int]:
        return self.start.row, self.start.col, self.end.row, self.end.col

    def __str__(self) -> str:
        return f"{self.start}:{self.end}"


@dataclass(frozen=True)
class ColumnRange:
    """Whole columns ``A:C``; the row extent is taken from the grid when read."""

    first: int
    last: int

    def bounds(self, n_rows: int, n_cols: int, *, skip_header: bool = False) -> tuple[int, int, int, int]:
        return (2 if skip_header else 1), self.first, n_rows, self.last

    def __str__(self) -> str:
        return f"{column_letters(self.first)}:{column_letters(self.last)}"


@dataclass(frozen=True)
class RowRange:
    """Whole rows ``1:5``; the column extent is taken from the grid when read."""

    first: int
    last: int

    def bounds(self, n_rows: int, n_cols: int, *, skip_header: bool = False) -> tuple[int, int, int, int]:
        return self.first, 1, self.last, n_cols

    def __str__(self) -> str:
        return f"{self.first}:{self.last}"


RangeRef = Union[CellRange, ColumnRange, RowRange]


def iter_range(
    ref: RangeRef, n_rows: int, n_cols: int, *, skip_header: bool = False
) -> Iterator[Address]:
    """Yield the addresses covered by *ref* in row-major order."""
    r0, c0, r1, c1 = ref.bounds(n_rows, n_cols, skip_header=skip_header)
    for r in range(r0, r1 + 1):
        for c in range(c0, c1 + 1):
            yield Address(r, c)


def range_shape(ref: RangeRef, n_rows: int, n_cols: int, *, skip_header: bool = False) -> tuple[int, int]:
    r0, c0, r1, c1 = ref.bounds(n_rows, n_cols, skip_header=skip_header)
    return max(0, r1 - r0 + 1), max(0, c1 - c0 + 1)


# ---------------------------------------------------------------------------
# Parsing address text
# ---------------------------------------------------------------------------


def parse_address(text: str) -> Address:
    """Parse ``"B7"`` (any case) into an :class:`Address`.

    Raises:
        FormulaReferenceError: On malformed text or row 0.
    """
    m = _ADDR_RE.match(text.strip())
    if not m:
        raise FormulaReferenceError(text, f"Invalid cell address: {text!r}")
    row = int(m.group(2))
    if row < 1:
        raise FormulaReferenceError(text, f"Row numbers start at 1: {text!r}")
    return Address(row, column_index(m.group(1)))


def parse_range(text: str) -> CellRange:
    """Parse ``"C3:A1"`` into a normalised :class:`CellRange`."""
    if text.count(":") != 1:
        raise FormulaReferenceError(text, f"Invalid range: {text!r}")
    left, right = text.split(":")
    return CellRange.between(parse_address(left), parse_address(right))


def parse_reference(text: str) -> Address | RangeRef:
    """Parse any reference form: cell, rectangle, whole columns or whole rows."""
    text = text.strip()
    if ":" not in text:
        return parse_address(text)
    left, _, right = text.partition(":")
    if _LETTERS_RE.match(left) and _LETTERS_RE.match(right):
        a, b = column_index(left), column_index(right)
        return ColumnRange(min(a, b), max(a, b))
    if _DIGITS_RE.match(left) and _DIGITS_RE.match(right):
        a, b = int(left), int(right)
        if a < 1 or b < 1:
            raise FormulaReferenceError(text, f"Row numbers start at 1: {text!r}")
        return RowRange(min(a, b), max(a, b))
    return parse_range(text)


# ---------------------------------------------------------------------------
# Text coercion
# ---------------------------------------------------------------------------

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")
_GROUPED_RE = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d+)?$")
_AMOUNT_RE = re.compile(r"^(\d{1,3}(,\d{3})+|\d+)(\.\d+)?$|^\.\d+$")
_PERCENT_RE = re.compile(r"^([+-]?(\d{1,3}(,\d{3})+|\d+)(\.\d*)?|[+-]?\.\d+)\s*%$")

CURRENCY_SYMBOLS = "$€£¥"


def _parse_grouped(text: str) -> Number:
    plain = text.replace(",", "")
    if "." in plain:
        return float(plain)
    return fit_int(int(plain))


def _parse_currency(text: str) -> float | None:
    s = text
    negative = False
    if s.startswith("(") and s.endswith(")"):
        negative = True
        s = s[1:-1].strip()
    if s.startswith("-"):
        negative = not negative
        s = s[1:].strip()
    if s[:1] and s[:1] in CURRENCY_SYMBOLS:
        s = s[1:].strip()
    elif s[-1:] and s[-1:] in CURRENCY_SYMBOLS:
        s = s[:-1].strip()
    else:
        return None
    if s.startswith("-"):
        negative = not negative
        s = s[1:].strip()
    if not _AMOUNT_RE.match(s):
        return None
    amount = float(s.replace(",", ""))
    return -amount if negative else amount


def coerce_text(raw: str) -> Value | None:
    """Interpret raw cell text as a value.

    Tries, in order: integer, float, thousands-grouped number, currency,
    percentage, boolean.  Anything else is returned as text unchanged.
    Returns ``None`` for an empty (or whitespace-only) cell.
    """
    s = raw.strip()
    if not s:
        return None
    if _INT_RE.match(s):
        return fit_int(int(s))
    if _FLOAT_RE.match(s):
        return float(s)
    if _GROUPED_RE.match(s):
        return _parse_grouped(s)
    money = _parse_currency(s)
    if money is not None:
        return money
    if _PERCENT_RE.match(s):
        return float(s[:-1].strip().replace(",", "")) / 100
    lowered = s.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return raw


# ---------------------------------------------------------------------------
# Reading the grid
# ---------------------------------------------------------------------------


@dataclass
class RangeValue:
    """Values of a range in row-major order.

    ``None`` marks an empty cell.  Aggregates skip empty cells; the flat
    view used by extension callables and :func:`resolve_range` shows them
    as ``0``.
    """

    values: list[Value | None]
    n_rows: int
    n_cols: int

    def __len__(self) -> int:
        return len(self.values)

    def flat(self) -> list[Value]:
        return [0 if v is None else v for v in self.values]

    def present(self) -> list[Value]:
        """Non-empty values, errors included."""
        return [v for v in self.values if v is not None]

    def numbers(self, where: str = "range") -> list[Number]:
        """Numeric values only; text and empty cells are skipped, errors propagate."""
        out: list[Number] = []
        for v in self.values:
            if isinstance(v, ErrorValue):
                raise FormulaPropagatedError(v.kind, where, v.message)
            if is_number(v):
                out.append(int(v) if isinstance(v, bool) else v)
        return out


def read_cell(grid: Grid, address: Address) -> Value | None:
    """Coerced raw text of one cell; ``None`` if it is empty."""
    return coerce_text(grid.raw_text(address.row, address.col))


def resolve_range(
    grid: Grid,
    ref: RangeRef,
    *,
    skip_header: bool = False,
    read: Callable[[Address], Value | None] | None = None,
) -> RangeValue:
    """Read every cell of *ref*, expanding whole rows/columns to the grid's current size.

    Args:
        grid: The grid being read.
        ref: A rectangle, whole-column or whole-row reference.
        skip_header: Start whole-column ranges at row 2.
        read: Per-cell reader; defaults to coercing the raw text.  The
            recalculation pass passes its memoized evaluator here so that
            formula cells inside a range are evaluated first.
    """
    n_rows, n_cols = grid.cell_count()
    reader = read or (lambda addr: read_cell(grid, addr))
    shape = range_shape(ref, n_rows, n_cols, skip_header=skip_header)
    values = [reader(addr) for addr in iter_range(ref, n_rows, n_cols, skip_header=skip_header)]
    return RangeValue(values, *shape)
