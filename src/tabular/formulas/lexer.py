"""Token definitions and scanner for formula text.

The terminal set below is shared with the LALR grammar in
``tabular.formulas.parser``; :func:`tokenize` runs the same lark lexer
on its own so callers (and tests) can inspect the token stream.

Terminal priorities decide between overlapping patterns:

- a name directly followed by ``(`` is a function name (``LOG10(``, ``AND(``)
- ``A1:B2``, ``A:C`` and ``1:5`` are single range tokens
- ``AND`` / ``OR`` / ``NOT`` / ``TRUE`` / ``FALSE`` are keywords in any case
- a number is always unsigned; ``-`` is left to the parser
"""

from __future__ import annotations

from enum import Enum
from typing import Iterator

from lark import Lark, Token
from lark.exceptions import UnexpectedCharacters

from tabular.formulas.errors import FormulaLexError

TERMINALS = r"""
FUNC_NAME.6: /[A-Za-z_][A-Za-z0-9_.]*(?=\()/
RANGE.5: /[A-Za-z]+[0-9]+:[A-Za-z]+[0-9]+(?![A-Za-z0-9_])/
COL_RANGE.5: /[A-Za-z]+:[A-Za-z]+(?![A-Za-z0-9_])/
ROW_RANGE.5: /[0-9]+:[0-9]+(?![A-Za-z0-9_.])/
CELL.4: /[A-Za-z]+[0-9]+(?![A-Za-z0-9_])/
AND_KW.3: /(?i:and)(?![A-Za-z0-9_])/
OR_KW.3: /(?i:or)(?![A-Za-z0-9_])/
NOT_KW.3: /(?i:not)(?![A-Za-z0-9_])/
BOOL.3: /(?i:true|false)(?![A-Za-z0-9_])/
NUMBER.2: /([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?/
STRING.2: /"(\\.|[^"\\])*"/
NAME.1: /[A-Za-z_][A-Za-z0-9_]*/

AND_SYM: "&&"
OR_SYM: "||"
NE: "<>" | "!="
LE: "<="
GE: ">="
EQ: "==" | "="
LT: "<"
GT: ">"
BANG: "!"
PLUS: "+"
MINUS: "-"
STAR: "*"
SLASH: "/"
PERCENT: "%"
CARET: "^"
LPAR: "("
RPAR: ")"
COMMA: ","

%import common.WS
%ignore WS
"""


class TokenKind(str, Enum):
    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    IDENTIFIER = "identifier"
    CELL_REF = "cell_ref"
    RANGE_REF = "range_ref"
    OPERATOR = "operator"
    LPAREN = "lparen"
    RPAREN = "rparen"
    COMMA = "comma"
    END = "end"


_KIND_BY_TERMINAL: dict[str, TokenKind] = {
    "NUMBER": TokenKind.NUMBER,
    "STRING": TokenKind.STRING,
    "BOOL": TokenKind.BOOLEAN,
    "FUNC_NAME": TokenKind.IDENTIFIER,
    "NAME": TokenKind.IDENTIFIER,
    "CELL": TokenKind.CELL_REF,
    "RANGE": TokenKind.RANGE_REF,
    "COL_RANGE": TokenKind.RANGE_REF,
    "ROW_RANGE": TokenKind.RANGE_REF,
    "LPAR": TokenKind.LPAREN,
    "RPAR": TokenKind.RPAREN,
    "COMMA": TokenKind.COMMA,
    "END": TokenKind.END,
}

_TOKEN_RULES = (
    "FUNC_NAME RANGE COL_RANGE ROW_RANGE CELL AND_KW OR_KW NOT_KW BOOL NUMBER STRING NAME "
    "AND_SYM OR_SYM NE LE GE EQ LT GT BANG PLUS MINUS STAR SLASH PERCENT CARET LPAR RPAR COMMA"
).split()

_SCANNER_GRAMMAR = "start: _tok*\n_tok: " + " | ".join(_TOKEN_RULES) + "\n" + TERMINALS

_scanner = Lark(_SCANNER_GRAMMAR, parser="lalr", lexer="basic")


def token_kind(token: Token) -> TokenKind:
    """Map a terminal onto its token kind; every symbol terminal is an operator."""
    return _KIND_BY_TERMINAL.get(token.type, TokenKind.OPERATOR)


def tokenize(text: str) -> Iterator[Token]:
    """Lazily scan *text* (without the leading ``=``) into tokens.

    The generator can be restarted by calling :func:`tokenize` again.

    Raises:
        FormulaLexError: On a character no terminal accepts, when the
            generator reaches it.
    """
    try:
        yield from _scanner.lex(text)
    except UnexpectedCharacters as exc:
        raise FormulaLexError(
            f"unexpected character {text[exc.pos_in_stream]!r}", position=exc.column
        ) from exc


def tokens(text: str) -> list[Token]:
    """All tokens of *text*, terminated by an ``END`` token."""
    out = list(tokenize(text))
    out.append(Token("END", "", start_pos=len(text)))
    return out
