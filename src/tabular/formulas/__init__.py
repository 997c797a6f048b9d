"""Formula engine: lexer, parser, value model and evaluator."""

from tabular.formulas.errors import (
    ENGINE_ERRORS,
    CellCycleError,
    ErrorKind,
    FormulaArityError,
    FormulaDomainError,
    FormulaError,
    FormulaExtensionError,
    FormulaFunctionError,
    FormulaLexError,
    FormulaParseError,
    FormulaPropagatedError,
    FormulaReferenceError,
    FormulaTypeError,
)
from tabular.formulas.evaluator import CellResolver, EmptyResolver, evaluate_formula
from tabular.formulas.lexer import TokenKind, token_kind, tokenize, tokens
from tabular.formulas.nodes import extract_refs
from tabular.formulas.parser import parse_formula
from tabular.formulas.references import (
    Address,
    CellRange,
    ColumnRange,
    RangeValue,
    RowRange,
    coerce_text,
    column_index,
    column_letters,
    parse_address,
    parse_range,
    parse_reference,
)
from tabular.formulas.values import ErrorValue, render

__all__ = [
    "Address",
    "CellCycleError",
    "CellRange",
    "CellResolver",
    "ColumnRange",
    "ENGINE_ERRORS",
    "EmptyResolver",
    "ErrorKind",
    "ErrorValue",
    "FormulaArityError",
    "FormulaDomainError",
    "FormulaError",
    "FormulaExtensionError",
    "FormulaFunctionError",
    "FormulaLexError",
    "FormulaParseError",
    "FormulaPropagatedError",
    "FormulaReferenceError",
    "FormulaTypeError",
    "RangeValue",
    "RowRange",
    "TokenKind",
    "coerce_text",
    "column_index",
    "column_letters",
    "evaluate_formula",
    "extract_refs",
    "parse_address",
    "parse_formula",
    "parse_range",
    "parse_reference",
    "render",
    "token_kind",
    "tokenize",
    "tokens",
]
