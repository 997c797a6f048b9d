"""The grid collaborator: what the engine needs from a document store.

:class:`Grid` is the read/write surface the recalculation pass uses.
:class:`Table` is the in-memory implementation the CLI and the tests
use, a rectangular list of text rows with CSV load/save through polars.

All positions are 1-based, matching cell addresses (``A1`` is row 1,
column 1).
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Protocol, runtime_checkable

import polars as pl


@runtime_checkable
class Grid(Protocol):
    """Protocol for the document store a recalculation pass runs against."""

    def cell_count(self) -> tuple[int, int]:
        """Current ``(rows, cols)`` extent."""
        ...

    def raw_text(self, row: int, col: int) -> str:
        """Stored text of one cell; ``""`` when empty or out of range."""
        ...

    def set_text(self, row: int, col: int, text: str) -> None:
        """Replace the stored text of one cell."""
        ...


class Table:
    """In-memory grid of cell text.

    Rows are kept rectangular: every row has ``n_cols`` entries, padded
    with ``""``.
    """

    def __init__(self, rows: Iterable[Iterable[str]] = ()) -> None:
        self._rows: list[list[str]] = [["" if v is None else str(v) for v in row] for row in rows]
        self._n_cols = max((len(r) for r in self._rows), default=0)
        for row in self._rows:
            row.extend([""] * (self._n_cols - len(row)))

    @classmethod
    def empty(cls, n_rows: int, n_cols: int) -> Table:
        return cls([[""] * n_cols for _ in range(n_rows)])

    # ------------------------------------------------------------------
    # Grid protocol
    # ------------------------------------------------------------------

    def cell_count(self) -> tuple[int, int]:
        return len(self._rows), self._n_cols

    def raw_text(self, row: int, col: int) -> str:
        if 1 <= row <= len(self._rows) and 1 <= col <= self._n_cols:
            return self._rows[row - 1][col - 1]
        return ""

    def set_text(self, row: int, col: int, text: str) -> None:
        """Set one cell, growing the table if the position is outside it."""
        if row < 1 or col < 1:
            raise ValueError(f"cell position must be 1-based, got ({row}, {col})")
        if col > self._n_cols:
            for r in self._rows:
                r.extend([""] * (col - self._n_cols))
            self._n_cols = col
        while len(self._rows) < row:
            self._rows.append([""] * self._n_cols)
        self._rows[row - 1][col - 1] = text

    # ------------------------------------------------------------------
    # Structure edits
    # ------------------------------------------------------------------

    def insert_row(self, row: int, count: int = 1) -> None:
        """Insert *count* empty rows before 1-based *row* (``n_rows + 1`` appends)."""
        if row < 1 or row > len(self._rows) + 1:
            raise ValueError(f"row {row} out of range [1, {len(self._rows) + 1}]")
        if count < 1:
            raise ValueError("count must be >= 1")
        for _ in range(count):
            self._rows.insert(row - 1, [""] * self._n_cols)

    def delete_row(self, row: int, count: int = 1) -> None:
        """Delete *count* rows starting at 1-based *row*."""
        if row < 1 or row > len(self._rows):
            raise ValueError(f"row {row} out of range [1, {len(self._rows)}]")
        if count < 1:
            raise ValueError("count must be >= 1")
        del self._rows[row - 1 : row - 1 + count]

    def insert_col(self, col: int, count: int = 1) -> None:
        """Insert *count* empty columns before 1-based *col*."""
        if col < 1 or col > self._n_cols + 1:
            raise ValueError(f"col {col} out of range [1, {self._n_cols + 1}]")
        if count < 1:
            raise ValueError("count must be >= 1")
        for r in self._rows:
            r[col - 1 : col - 1] = [""] * count
        self._n_cols += count

    def delete_col(self, col: int, count: int = 1) -> None:
        """Delete *count* columns starting at 1-based *col*."""
        if col < 1 or col > self._n_cols:
            raise ValueError(f"col {col} out of range [1, {self._n_cols}]")
        if count < 1:
            raise ValueError("count must be >= 1")
        count = min(count, self._n_cols - col + 1)  # clamp to available
        for r in self._rows:
            del r[col - 1 : col - 1 + count]
        self._n_cols -= count

    # ------------------------------------------------------------------
    # Views and persistence
    # ------------------------------------------------------------------

    def rows(self) -> list[list[str]]:
        """A copy of the cell text, row by row."""
        return [list(r) for r in self._rows]

    def to_frame(self) -> pl.DataFrame:
        """All cells as a string-typed DataFrame with columns named by letter index."""
        data = {
            f"column_{c + 1}": [row[c] for row in self._rows] for c in range(self._n_cols)
        }
        return pl.DataFrame(data, schema={name: pl.Utf8 for name in data})

    @classmethod
    def from_frame(cls, df: pl.DataFrame) -> Table:
        rows = df.select(pl.all().cast(pl.Utf8).fill_null("")).rows()
        return cls(rows)

    @classmethod
    def read_csv(cls, path: str | Path) -> Table:
        """Load a headerless CSV file; every field is read as text."""
        path = Path(path)
        if path.stat().st_size == 0:
            return cls()
        df = pl.read_csv(
            path,
            has_header=False,
            infer_schema_length=0,
            raise_if_empty=False,
        )
        return cls.from_frame(df)

    def write_csv(self, path: str | Path) -> None:
        """Write the table as a headerless CSV file."""
        path = Path(path)
        if not self._rows or not self._n_cols:
            path.write_text("")
            return
        df = self.to_frame()
        if self._n_cols > 1:
            # Empty strings are quoted by the writer; nulls are written bare.
            # A single-column table keeps the quotes so blank rows survive.
            df = df.with_columns(
                [pl.when(pl.col(name) == "").then(None).otherwise(pl.col(name)).alias(name) for name in df.columns]
            )
        df.write_csv(path, include_header=False, null_value="")
