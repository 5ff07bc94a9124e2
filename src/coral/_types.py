"""Token types shared by the lexer and parser."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TokenType(Enum):
    """Kinds of token produced by the lexer.

    ``category`` groups the fine-grained types into the coarse token kinds
    the parser reasons about (text, delimiters, literals, punctuation).
    """

    # Template text between markers
    TEXT = "text"

    # Delimiters
    EXPR_OPEN = "{{"
    EXPR_CLOSE = "}}"
    RAW_OPEN = "{{{"
    RAW_CLOSE = "}}}"
    BLOCK_OPEN = "{{#"
    BLOCK_CLOSE = "{{/"

    # Sigils directly after an opener
    HELPER_SIGIL = "~"
    PARTIAL_SIGIL = ">"

    # Names and literals
    NAME = "name"
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"

    # Punctuation
    DOT = "."
    COMMA = ","
    COLON = ":"
    QUESTION = "?"
    ASSIGN = "="
    LPAREN = "("
    RPAREN = ")"
    LBRACKET = "["
    RBRACKET = "]"

    # Operators
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    NOT = "!"
    AND = "&&"
    OR = "||"
    EQ = "=="
    NE = "!="
    STRICT_EQ = "==="
    STRICT_NE = "!=="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="

    EOF = "eof"

    @property
    def category(self) -> str:
        """Coarse token kind (e.g. 'text', 'expr_open', 'literal', 'punctuation')."""
        return _CATEGORIES.get(self, "punctuation")


_CATEGORIES: dict[TokenType, str] = {
    TokenType.TEXT: "text",
    TokenType.EXPR_OPEN: "expr_open",
    TokenType.RAW_OPEN: "expr_open",
    TokenType.EXPR_CLOSE: "expr_close",
    TokenType.RAW_CLOSE: "expr_close",
    TokenType.BLOCK_OPEN: "block_open",
    TokenType.BLOCK_CLOSE: "block_close",
    TokenType.HELPER_SIGIL: "helper_sigil",
    TokenType.PARTIAL_SIGIL: "partial_sigil",
    TokenType.NAME: "name",
    TokenType.STRING: "literal",
    TokenType.INTEGER: "literal",
    TokenType.FLOAT: "literal",
    TokenType.EOF: "eof",
}

# Tokens that end an expression run inside a marker
CLOSERS: frozenset[TokenType] = frozenset({TokenType.EXPR_CLOSE, TokenType.RAW_CLOSE})


@dataclass(frozen=True, slots=True)
class Token:
    """A lexical token.

    Attributes:
        type: Token kind
        value: Source text (decoded for strings, converted for numbers)
        lineno: 1-based line of the first character
        col_offset: 0-based column of the first character
        offset: 0-based index into the template source
    """

    type: TokenType
    value: str | int | float
    lineno: int
    col_offset: int
    offset: int = 0

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.lineno}:{self.col_offset})"
