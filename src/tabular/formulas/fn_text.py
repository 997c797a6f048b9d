"""Text formula functions: LEN, UPPER, LOWER, TRIM, CONCAT.

Computed arguments are rendered the way a result cell would display
them, so ``LEN(12.5)`` is 4 and ``CONCAT("n=", 3)`` is ``"n=3"``.  A
referenced cell is read as its literal text (``$1,234.56`` keeps its
symbols) and an empty one as ``""``; a referenced formula cell gives its
result.
"""

from __future__ import annotations

from tabular.formulas.values import render
from tabular.functions.registry import Arity, builtin


@builtin("LEN", Arity.FIXED, 1, text=True)
def _fn_len(args: list) -> int:
    return len(render(args[0]))


@builtin("UPPER", Arity.FIXED, 1, text=True)
def _fn_upper(args: list) -> str:
    return render(args[0]).upper()


@builtin("LOWER", Arity.FIXED, 1, text=True)
def _fn_lower(args: list) -> str:
    return render(args[0]).lower()


@builtin("TRIM", Arity.FIXED, 1, text=True)
def _fn_trim(args: list) -> str:
    """TRIM(text): strip both ends and collapse inner runs of spaces."""
    return " ".join(render(args[0]).split())


@builtin("CONCAT", Arity.VARIADIC, 1, text=True, aliases=("CONCATENATE",))
def _fn_concat(args: list) -> str:
    return "".join(render(a) for a in args)
