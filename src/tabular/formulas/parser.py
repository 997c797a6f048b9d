"""Lark-based parser for cell formulas.

Supports:
- Cell references ``B7``, ranges ``A1:C3``, whole columns ``A:C`` and whole rows ``1:5``
- Arithmetic ``+ - * / % ^``, comparisons, prefix ``NOT`` / ``!``
- Short-circuit infix ``AND`` / ``OR`` (also ``&&`` / ``||``)
- Number, string and ``TRUE`` / ``FALSE`` literals; function calls
"""

from __future__ import annotations

import re

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import UnexpectedCharacters, UnexpectedInput, VisitError

from tabular.formulas.errors import FormulaError, FormulaLexError, FormulaParseError
from tabular.formulas.lexer import TERMINALS
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
from tabular.formulas.references import parse_address, parse_range, parse_reference
from tabular.formulas.values import fit_int

# LALR(1) grammar for cell formulas.
# Operator precedence (lowest to highest):
#   1. Infix OR
#   2. Infix AND
#   3. Comparison: = <> < <= > >= (left-associative, may chain)
#   4. Addition/subtraction: + -
#   5. Multiplication/division/remainder: * / %
#   6. Prefix minus/plus/NOT
#   7. Exponentiation: ^ (right-associative, binds tighter than prefix minus)
#   8. Atoms: literal, reference, function call, parenthesized expr
GRAMMAR = r"""
start: expr

?expr: or_expr

?or_expr: and_expr
    | or_expr (OR_KW | OR_SYM) and_expr        -> logical_or

?and_expr: comparison
    | and_expr (AND_KW | AND_SYM) comparison   -> logical_and

?comparison: additive
    | comparison (EQ | NE | LT | LE | GT | GE) additive  -> binary

?additive: multiplicative
    | additive (PLUS | MINUS) multiplicative   -> binary

?multiplicative: unary
    | multiplicative (STAR | SLASH | PERCENT) unary  -> binary

?unary: power
    | (MINUS | PLUS | NOT_KW | BANG) unary     -> unary

?power: atom
    | atom CARET unary                         -> binary

?atom: NUMBER                                  -> number
    | STRING                                   -> string
    | BOOL                                     -> boolean
    | CELL                                     -> cell
    | RANGE                                    -> cell_range
    | COL_RANGE                                -> col_range
    | ROW_RANGE                                -> row_range
    | FUNC_NAME LPAR [arguments] RPAR          -> call
    | NAME                                     -> bare_name
    | LPAR expr RPAR                           -> group

arguments: expr (COMMA expr)*
""" + TERMINALS

_parser = Lark(GRAMMAR, parser="lalr", lexer="basic", start="start")

_OPERATOR_BY_TERMINAL = {
    "EQ": "=",
    "NE": "<>",
    "BANG": "NOT",
    "NOT_KW": "NOT",
}

_ESCAPE_RE = re.compile(r"\\(.)")


def _parse_number(token: Token) -> int | float:
    """Parse a NUMBER token to int or float."""
    s = str(token)
    if "." in s or "e" in s or "E" in s:
        return float(s)
    return fit_int(int(s))


@v_args(inline=True)
class _AstBuilder(Transformer):
    """Turn the lark parse tree into :mod:`tabular.formulas.nodes` objects."""

    def start(self, expr: Node) -> Node:
        return expr

    def number(self, token: Token) -> Literal:
        return Literal(_parse_number(token))

    def string(self, token: Token) -> Literal:
        return Literal(_ESCAPE_RE.sub(r"\1", str(token)[1:-1]))

    def boolean(self, token: Token) -> Literal:
        return Literal(str(token).upper() == "TRUE")

    def cell(self, token: Token) -> CellRef:
        return CellRef(parse_address(str(token)))

    def cell_range(self, token: Token) -> RangeNode:
        return RangeNode(parse_range(str(token)))

    def col_range(self, token: Token) -> RangeNode:
        return RangeNode(parse_reference(str(token)))

    def row_range(self, token: Token) -> RangeNode:
        return RangeNode(parse_reference(str(token)))

    def bare_name(self, token: Token) -> Node:
        raise FormulaParseError(f"unknown name {str(token)!r}", position=token.column)

    def group(self, _lpar: Token, expr: Node, _rpar: Token) -> Node:
        return expr

    def arguments(self, *items: Node | Token) -> list[Node]:
        return [item for item in items if not isinstance(item, Token)]

    def call(self, name: Token, _lpar: Token, args: list[Node] | None, _rpar: Token) -> FunctionCall:
        return FunctionCall(str(name).upper(), tuple(args or ()))

    def unary(self, op: Token, operand: Node) -> UnaryOp:
        return UnaryOp(_OPERATOR_BY_TERMINAL.get(op.type, str(op)), operand)

    def binary(self, left: Node, op: Token, right: Node) -> BinaryOp:
        return BinaryOp(_OPERATOR_BY_TERMINAL.get(op.type, str(op)), left, right)

    def logical_and(self, left: Node, _op: Token, right: Node) -> LogicalInfix:
        return LogicalInfix("AND", left, right)

    def logical_or(self, left: Node, _op: Token, right: Node) -> LogicalInfix:
        return LogicalInfix("OR", left, right)


_builder = _AstBuilder()


def parse_formula(text: str) -> Node:
    """Parse a formula into an AST.

    Args:
        text: The formula, with or without the leading ``=`` marker,
            e.g. ``"=SUM(A1:A3) * 2"``.

    Returns:
        The root node of the expression.

    Raises:
        FormulaLexError: On a character that starts no token.
        FormulaParseError: If the formula has invalid syntax.
        FormulaReferenceError: On an address such as ``A0``.
    """
    body = text.strip()
    if body.startswith("="):
        body = body[1:]
    if not body.strip():
        raise FormulaParseError("empty formula", position=0)
    try:
        tree = _parser.parse(body)
    except UnexpectedCharacters as exc:
        raise FormulaLexError(
            f"unexpected character {body[exc.pos_in_stream]!r}", position=exc.column
        ) from exc
    except UnexpectedInput as exc:
        # Extract position info from Lark exception if available
        pos = getattr(exc, "column", None)
        detail = (str(exc).strip().splitlines() or ["syntax error"])[0]
        raise FormulaParseError(detail, position=pos) from exc
    try:
        return _builder.transform(tree)
    except VisitError as exc:
        if isinstance(exc.orig_exc, FormulaError):
            raise exc.orig_exc from None
        raise
