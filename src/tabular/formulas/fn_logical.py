"""Logical and error-handling formula functions.

``IF``, ``IFERROR`` and ``ISERROR`` are lazy: they receive unevaluated
AST nodes plus an ``evaluate`` callback, so untaken branches are never
computed.  ``AND`` / ``OR`` as functions are eager; only the infix
operators short-circuit.
"""

from __future__ import annotations

from typing import Any, Callable

from tabular.formulas.errors import ENGINE_ERRORS, CellCycleError
from tabular.formulas.values import ErrorValue, is_failure, is_number, truthy
from tabular.functions.registry import Arity, builtin


@builtin("IF", Arity.FIXED, 2, 3, lazy=True)
def _fn_if(raw_args: list, evaluate: Callable[[Any], Any]) -> Any:
    """IF(condition, then_value [, else_value]): lazy evaluation."""
    if truthy(evaluate(raw_args[0]), "IF condition"):
        return evaluate(raw_args[1])
    if len(raw_args) == 3:
        return evaluate(raw_args[2])
    return False


@builtin("IFERROR", Arity.FIXED, 2, lazy=True)
def _fn_iferror(raw_args: list, evaluate: Callable[[Any], Any]) -> Any:
    """IFERROR(value, fallback): fallback when value fails, is NaN or is infinite."""
    try:
        value = evaluate(raw_args[0])
    except CellCycleError:
        raise
    except ENGINE_ERRORS:
        return evaluate(raw_args[1])
    if is_failure(value):
        return evaluate(raw_args[1])
    return value


@builtin("ISERROR", Arity.FIXED, 1, lazy=True)
def _fn_iserror(raw_args: list, evaluate: Callable[[Any], Any]) -> bool:
    """ISERROR(expr): TRUE if the expression fails or yields NaN/infinity."""
    try:
        return is_failure(evaluate(raw_args[0]))
    except CellCycleError:
        raise
    except ENGINE_ERRORS:
        return True


@builtin("AND", Arity.VARIADIC, 1)
def _fn_and(args: list) -> bool:
    """AND(val1, val2, ...): every argument is evaluated, then all must be non-zero."""
    results = [truthy(a, "AND argument") for a in args]
    return all(results)


@builtin("OR", Arity.VARIADIC, 1)
def _fn_or(args: list) -> bool:
    """OR(val1, val2, ...): every argument is evaluated, then any must be non-zero."""
    results = [truthy(a, "OR argument") for a in args]
    return any(results)


@builtin("NOT", Arity.FIXED, 1)
def _fn_not(args: list) -> bool:
    return not truthy(args[0], "NOT argument")


@builtin("TRUE", Arity.FIXED, 0)
def _fn_true(args: list) -> bool:
    return True


@builtin("FALSE", Arity.FIXED, 0)
def _fn_false(args: list) -> bool:
    return False


@builtin("ISNUMBER", Arity.FIXED, 1)
def _fn_isnumber(args: list) -> bool:
    value = args[0]
    return is_number(value) and not isinstance(value, (bool, ErrorValue))


@builtin("ISTEXT", Arity.FIXED, 1)
def _fn_istext(args: list) -> bool:
    return isinstance(args[0], str)
