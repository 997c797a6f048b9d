"""Error types for formula lexing, parsing and evaluation.

Every failure inside the engine is a :class:`FormulaError`.  The cell
boundary (``CellGraph``) converts these into ``ErrorValue`` results, so a
bad formula never aborts a recalculation pass.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    lex = "lex"
    parse = "parse"
    arity = "arity"
    type = "type"
    domain = "domain"
    cycle = "cycle"
    name = "name"
    extension = "extension"
    reference = "reference"


class FormulaError(Exception):
    """Base class for all formula-related errors."""

    kind: ErrorKind = ErrorKind.domain


class FormulaLexError(FormulaError):
    """Unrecognised character in a formula.

    Attributes:
        position: 1-based column of the offending character.
    """

    kind = ErrorKind.lex

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        full = f"Formula lex error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class FormulaParseError(FormulaError):
    """Syntax error in a formula expression.

    Attributes:
        position: Character position where the error was detected.
        message: Human-readable description.
    """

    kind = ErrorKind.parse

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        full = f"Formula parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class FormulaReferenceError(FormulaError):
    """Malformed cell, range or column address."""

    kind = ErrorKind.reference

    def __init__(self, ref_text: str, message: str | None = None) -> None:
        self.ref_text = ref_text
        super().__init__(message or f"Invalid reference: {ref_text!r}")


class FormulaFunctionError(FormulaError):
    """Call to a function name that is not registered.

    Attributes:
        func_name: The function that caused the error.
    """

    kind = ErrorKind.name

    def __init__(self, func_name: str, message: str | None = None) -> None:
        self.func_name = func_name
        msg = message or f"Unknown function: {func_name!r}"
        super().__init__(msg)


class FormulaArityError(FormulaError):
    """Wrong argument count or shape for a function.

    Mismatched two-range calls (``CORREL(A1:A3, B1:B4)``) also land here.
    """

    kind = ErrorKind.arity

    def __init__(self, func_name: str, message: str) -> None:
        self.func_name = func_name
        super().__init__(message)


class FormulaTypeError(FormulaError):
    """An operand cannot be interpreted numerically where a number is required."""

    kind = ErrorKind.type


class FormulaDomainError(FormulaError):
    """Argument outside a function's domain (``SQRT(-1)``, ``LN(0)``, ``VAR`` on one value)."""

    kind = ErrorKind.domain


class FormulaExtensionError(FormulaError):
    """A registered extension function raised or returned an unusable value."""

    kind = ErrorKind.extension

    def __init__(self, func_name: str, message: str) -> None:
        self.func_name = func_name
        super().__init__(f"{func_name}: {message}")


class CellCycleError(FormulaError):
    """Raised when a cycle is detected during cell evaluation.

    Attributes:
        cycle_path: Addresses (``"A1"``) along the cycle, first one repeated last.
    """

    kind = ErrorKind.cycle

    def __init__(self, cycle_path: list[str]) -> None:
        self.cycle_path = cycle_path
        super().__init__(f"Circular cell reference: {' -> '.join(cycle_path)}")


class FormulaPropagatedError(FormulaError):
    """A formula read a cell whose value is already an error.

    The upstream error kind is carried over so the dependent cell reports
    the same kind as its source.
    """

    def __init__(self, kind: ErrorKind, address: str, message: str = "") -> None:
        self.kind = kind
        self.address = address
        super().__init__(f"{address} holds an error ({kind.value}){': ' + message if message else ''}")


# Errors that IFERROR/ISERROR treat as "the expression failed".
ENGINE_ERRORS: tuple[type[BaseException], ...] = (FormulaError, ArithmeticError)
