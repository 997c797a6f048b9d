"""AST node types produced by the parser."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Union

from tabular.formulas.references import Address, RangeRef
from tabular.formulas.values import Value


@dataclass(frozen=True)
class Literal:
    value: Value


@dataclass(frozen=True)
class CellRef:
    address: Address


@dataclass(frozen=True)
class RangeNode:
    ref: RangeRef


@dataclass(frozen=True)
class UnaryOp:
    op: str  # "-", "+", "NOT"
    operand: Node


@dataclass(frozen=True)
class BinaryOp:
    op: str  # arithmetic or comparison operator
    left: Node
    right: Node


@dataclass(frozen=True)
class LogicalInfix:
    """Infix ``AND`` / ``OR``.  Kept apart from BinaryOp because it short-circuits."""

    op: str  # "AND", "OR"
    left: Node
    right: Node


@dataclass(frozen=True)
class FunctionCall:
    name: str  # upper-cased
    args: tuple[Node, ...]


Node = Union[Literal, CellRef, RangeNode, UnaryOp, BinaryOp, LogicalInfix, FunctionCall]


def walk(node: Node) -> Iterator[Node]:
    """Yield *node* and all of its descendants, depth-first."""
    yield node
    if isinstance(node, UnaryOp):
        yield from walk(node.operand)
    elif isinstance(node, (BinaryOp, LogicalInfix)):
        yield from walk(node.left)
        yield from walk(node.right)
    elif isinstance(node, FunctionCall):
        for arg in node.args:
            yield from walk(arg)


def extract_refs(node: Node) -> list[Address | RangeRef]:
    """Collect every cell and range reference in a formula, in source order."""
    refs: list[Address | RangeRef] = []
    for n in walk(node):
        if isinstance(n, CellRef):
            refs.append(n.address)
        elif isinstance(n, RangeNode):
            refs.append(n.ref)
    return refs
