"""Tree-walking evaluator for parsed formula expressions.

The evaluator only reads the grid, through a :class:`CellResolver`.  It
raises :class:`FormulaError` subclasses on failure; turning those into
per-cell error values is the caller's job (see ``tabular.cell_graph``).
"""

from __future__ import annotations

from typing import Any, Protocol

from tabular.formulas import fn_logical, fn_math, fn_stats, fn_text  # noqa: F401  (register built-ins)
from tabular.formulas.errors import (
    FormulaArityError,
    FormulaError,
    FormulaExtensionError,
    FormulaPropagatedError,
    FormulaTypeError,
)
from tabular.formulas.nodes import (
    BinaryOp,
    CellRef,
    FunctionCall,
    Literal,
    LogicalInfix,
    Node,
    RangeNode,
    UnaryOp,
)
from tabular.formulas.operators import BINARY_OPERATORS, COMPARISONS, UNARY_OPERATORS, compare
from tabular.formulas.references import Address, RangeRef, RangeValue
from tabular.formulas.values import ErrorValue, Value, coerce_result, truthy
from tabular.functions.registry import Arity, FunctionSpec, lookup


# ---------------------------------------------------------------------------
# Resolver protocol
# ---------------------------------------------------------------------------


class CellResolver(Protocol):
    """Protocol for reading cell values during evaluation."""

    def resolve_cell(self, address: Address) -> Value | None:
        """Value of one cell, ``None`` if empty (may trigger recursive evaluation)."""
        ...

    def resolve_text(self, address: Address) -> Value | None:
        """Literal text of one cell, or the value of a formula cell; ``None`` if empty."""
        ...

    def resolve_range(self, ref: RangeRef) -> RangeValue:
        """Values of a rectangle, whole columns or whole rows, row-major."""
        ...


class EmptyResolver:
    """Resolver for formulas evaluated without a grid: every cell is empty."""

    def resolve_cell(self, address: Address) -> Value | None:
        return None

    def resolve_text(self, address: Address) -> Value | None:
        return None

    def resolve_range(self, ref: RangeRef) -> RangeValue:
        return RangeValue([], 0, 0)


def evaluate_formula(node: Node, resolver: CellResolver | None = None) -> Value:
    """Evaluate a parsed formula.

    Args:
        node: AST from ``parse_formula()``.
        resolver: Source of cell values; defaults to an empty grid.

    Returns:
        The computed value.

    Raises:
        FormulaError: On any evaluation failure.
    """
    return _eval(node, resolver or EmptyResolver())


def _eval(node: Node, resolver: CellResolver, text: bool = False) -> Value:
    """Recursively evaluate a node.

    Args:
        text: Read referenced cells as their literal text, and empty
            cells as ``""`` rather than ``0``.
    """
    if isinstance(node, Literal):
        return node.value

    if isinstance(node, CellRef):
        return _read_cell(node.address, resolver, text)

    if isinstance(node, BinaryOp):
        left = _eval(node.left, resolver)
        right = _eval(node.right, resolver)
        if node.op in COMPARISONS:
            return compare(node.op, left, right)
        return BINARY_OPERATORS[node.op](left, right)

    if isinstance(node, LogicalInfix):
        # Short-circuit: the right operand is only evaluated when needed.
        left_true = truthy(_eval(node.left, resolver), f"left operand of {node.op}")
        if node.op == "AND" and not left_true:
            return False
        if node.op == "OR" and left_true:
            return True
        return truthy(_eval(node.right, resolver), f"right operand of {node.op}")

    if isinstance(node, UnaryOp):
        operand = _eval(node.operand, resolver)
        if node.op == "NOT":
            return not truthy(operand, "operand of NOT")
        return UNARY_OPERATORS[node.op](operand)

    if isinstance(node, FunctionCall):
        return _eval_func(node, resolver)

    if isinstance(node, RangeNode):
        raise FormulaTypeError(f"range {node.ref} used where a single value is expected")

    raise FormulaError(f"Unknown node type: {type(node).__name__}")


def _read_cell(address: Address, resolver: CellResolver, text: bool) -> Value:
    value = resolver.resolve_text(address) if text else resolver.resolve_cell(address)
    if value is None:
        return "" if text else 0
    if isinstance(value, ErrorValue):
        raise FormulaPropagatedError(value.kind, str(address), value.message)
    return value


# ---------- Function dispatch ----------


def _range_arg(node: Node, resolver: CellResolver) -> RangeValue:
    """Evaluate an argument in range position; a single cell or scalar is a 1x1 range."""
    if isinstance(node, RangeNode):
        return resolver.resolve_range(node.ref)
    if isinstance(node, CellRef):
        return RangeValue([resolver.resolve_cell(node.address)], 1, 1)
    return RangeValue([_eval(node, resolver)], 1, 1)


def _scalar_arg(spec: FunctionSpec, node: Node, resolver: CellResolver) -> Value:
    if isinstance(node, RangeNode):
        raise FormulaArityError(spec.name, f"{spec.name} does not accept a range argument ({node.ref})")
    return _eval(node, resolver, text=spec.text)


def _eval_func(node: FunctionCall, resolver: CellResolver) -> Value:
    """Evaluate a function call node."""
    spec = lookup(node.name)
    raw_args = list(node.args)
    spec.check_count(len(raw_args))

    # Lazy functions receive unevaluated AST nodes
    if spec.lazy:
        return spec.impl(raw_args, lambda n: _eval(n, resolver))

    if not spec.builtin:
        return _call_extension(spec, raw_args, resolver)

    if spec.arity is Arity.RANGE:
        return spec.impl(_range_arg(raw_args[0], resolver))

    if spec.arity is Arity.TWO_RANGES:
        first = _range_arg(raw_args[0], resolver)
        second = _range_arg(raw_args[1], resolver)
        if len(first) != len(second):
            raise FormulaArityError(
                spec.name,
                f"{spec.name} requires ranges of equal size, got {len(first)} and {len(second)} cells",
            )
        return spec.impl(first, second)

    if spec.arity is Arity.RANGE_SCALAR:
        return spec.impl(_range_arg(raw_args[0], resolver), _scalar_arg(spec, raw_args[1], resolver))

    # Eager functions receive pre-evaluated values
    return spec.impl([_scalar_arg(spec, arg, resolver) for arg in raw_args])


def _extension_arg(node: Node, resolver: CellResolver) -> Any:
    if not isinstance(node, RangeNode):
        return _eval(node, resolver)
    values = resolver.resolve_range(node.ref).present()
    for value in values:
        if isinstance(value, ErrorValue):
            raise FormulaPropagatedError(value.kind, str(node.ref), value.message)
    return values


def _call_extension(spec: FunctionSpec, raw_args: list[Node], resolver: CellResolver) -> Value:
    """Call a registered extension with evaluated arguments (ranges as lists)."""
    args = [_extension_arg(arg, resolver) for arg in raw_args]
    try:
        result = spec.impl(*args)
    except Exception as exc:
        raise FormulaExtensionError(spec.name, f"raised {type(exc).__name__}: {exc}") from exc
    if isinstance(result, ErrorValue):
        raise FormulaExtensionError(spec.name, f"returned an error value ({result.kind.value})")
    try:
        return coerce_result(result)
    except (TypeError, ValueError) as exc:
        raise FormulaExtensionError(spec.name, str(exc)) from exc
