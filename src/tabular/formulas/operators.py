"""Arithmetic and comparison operators on formula values.

Integers stay exact through ``+ - *`` and non-negative integer powers;
anything else is computed in 64-bit floats.  Division and remainder by
zero follow IEEE-754 instead of raising.
"""

from __future__ import annotations

import math
from typing import Any

from tabular.formulas.errors import FormulaTypeError
from tabular.formulas.values import Number, Value, fit_int, to_number


def _both_int(a: Number, b: Number) -> bool:
    return isinstance(a, int) and isinstance(b, int)


def add(left: Value, right: Value) -> Number:
    a, b = to_number(left, "left operand of +"), to_number(right, "right operand of +")
    return fit_int(a + b) if _both_int(a, b) else float(a) + float(b)


def subtract(left: Value, right: Value) -> Number:
    a, b = to_number(left, "left operand of -"), to_number(right, "right operand of -")
    return fit_int(a - b) if _both_int(a, b) else float(a) - float(b)


def multiply(left: Value, right: Value) -> Number:
    a, b = to_number(left, "left operand of *"), to_number(right, "right operand of *")
    return fit_int(a * b) if _both_int(a, b) else float(a) * float(b)


def divide(left: Value, right: Value) -> float:
    a, b = to_number(left, "dividend"), to_number(right, "divisor")
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(1.0, a) * math.copysign(1.0, float(b)) * math.inf
    return a / b


def remainder(left: Value, right: Value) -> Number:
    """``a % b`` with the sign of the dividend; ``x % 0`` is NaN."""
    a, b = to_number(left, "dividend"), to_number(right, "divisor")
    if b == 0:
        return math.nan
    if _both_int(a, b):
        r = abs(a) % abs(b)
        return r if a >= 0 else -r
    try:
        return math.fmod(a, b)
    except ValueError:
        return math.nan


def power(left: Value, right: Value) -> Number:
    a, b = to_number(left, "base"), to_number(right, "exponent")
    if _both_int(a, b) and b >= 0 and (abs(a) <= 1 or b * math.log2(abs(a)) < 64):
        return fit_int(a**b)
    try:
        return math.pow(a, b)
    except OverflowError:
        odd = float(b).is_integer() and int(b) % 2 == 1
        return -math.inf if a < 0 and odd else math.inf
    except ValueError:
        # 0 ** negative, or a negative base with a fractional exponent
        if a == 0 and b < 0:
            return math.inf
        return math.nan


def negate(operand: Value) -> Number:
    a = to_number(operand, "operand of unary -")
    return fit_int(-a) if isinstance(a, int) else -a


def identity(operand: Value) -> Number:
    return to_number(operand, "operand of unary +")


_ORDERINGS = {
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
}


def _numeric(value: Any) -> bool:
    return isinstance(value, (int, float))


def compare(op: str, left: Value, right: Value) -> bool:
    """Evaluate a comparison operator.  Always returns a bool.

    Text compares with text, numbers (and booleans) with numbers.  Text
    and a number are simply unequal; ordering them is a type error.
    """
    if isinstance(left, str) and isinstance(right, str):
        a: Any = left
        b: Any = right
    elif _numeric(left) and _numeric(right):
        a, b = to_number(left), to_number(right)
    else:
        for side, value in (("left", left), ("right", right)):
            if not isinstance(value, str):
                to_number(value, f"{side} operand")
        if op == "=":
            return False
        if op == "<>":
            return True
        raise FormulaTypeError(f"cannot order text against a number with {op!r}")
    if op == "=":
        return a == b
    if op == "<>":
        return a != b
    return _ORDERINGS[op](a, b)


BINARY_OPERATORS = {
    "+": add,
    "-": subtract,
    "*": multiply,
    "/": divide,
    "%": remainder,
    "^": power,
}

UNARY_OPERATORS = {
    "-": negate,
    "+": identity,
}

COMPARISONS = frozenset({"=", "<>", "<", "<=", ">", ">="})
