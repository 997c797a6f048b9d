"""Value model shared by the resolver, evaluator and function library.

A formula value is one of ``int``, ``float``, ``str``, ``bool`` or
:class:`ErrorValue`.  Python's ``bool`` is a subclass of ``int``, so
booleans take part in arithmetic as 1/0 without special handling; the
helpers below still check for ``bool`` first wherever the distinction
matters (rendering, type tests).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Union

from tabular.formulas.errors import (
    ErrorKind,
    FormulaError,
    FormulaPropagatedError,
    FormulaTypeError,
)

I64_MIN = -(2**63)
I64_MAX = 2**63 - 1


@dataclass(frozen=True)
class ErrorValue:
    """Result of a formula that failed.

    Attributes:
        kind: Which part of the engine failed.
        message: Human-readable detail, kept for logs and the CLI.
    """

    kind: ErrorKind
    message: str = ""

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorValue:
        if isinstance(exc, FormulaError):
            return cls(exc.kind, str(exc))
        return cls(ErrorKind.domain, str(exc) or type(exc).__name__)

    def __str__(self) -> str:
        return "NaN"


Value = Union[int, float, str, bool, ErrorValue]
Number = Union[int, float]


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------


def fit_int(n: int) -> Number:
    """Keep *n* as an integer while it fits in 64 bits, else promote to float."""
    if I64_MIN <= n <= I64_MAX:
        return n
    try:
        return float(n)
    except OverflowError:
        return math.inf if n > 0 else -math.inf


def is_number(value: Any) -> bool:
    """True for int, float and bool values."""
    return isinstance(value, (int, float)) and not isinstance(value, ErrorValue)


def to_number(value: Any, where: str = "operand") -> Number:
    """Return *value* as a number, or raise if it has no numeric reading.

    Booleans become 1/0.  Text is a :class:`FormulaTypeError`, never zero.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, ErrorValue):
        raise FormulaPropagatedError(value.kind, where, value.message)
    raise FormulaTypeError(f"{where} is not numeric: {value!r}")


def to_float(value: Any, where: str = "operand") -> float:
    return float(to_number(value, where))


def truthy(value: Any, where: str = "condition") -> bool:
    """A condition is true when its numeric value is non-zero."""
    return to_number(value, where) != 0


def is_failure(value: Any) -> bool:
    """True for error values and for float NaN/infinity results."""
    if isinstance(value, ErrorValue):
        return True
    return isinstance(value, float) and not math.isfinite(value)


def coerce_result(obj: Any) -> Value:
    """Normalise a Python object into the value model.

    Raises:
        TypeError: If *obj* has no representation as a formula value.
    """
    if isinstance(obj, (bool, str, ErrorValue)):
        return obj
    if isinstance(obj, int):
        return fit_int(obj)
    if isinstance(obj, float):
        return obj
    # numpy / polars scalars expose .item()
    item = getattr(obj, "item", None)
    if callable(item):
        return coerce_result(item())
    raise TypeError(f"cannot use {type(obj).__name__} as a formula value")


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def format_number(value: float) -> str:
    """Render a float the way the editor displays computed numbers."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Inf" if value > 0 else "-Inf"
    if value == int(value) and abs(value) < 1e15:
        return str(int(value))
    text = f"{value:.10f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def render(value: Value) -> str:
    """Return the display text written back into a formula cell."""
    if isinstance(value, ErrorValue):
        return str(value)
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return format_number(value)
    return value
