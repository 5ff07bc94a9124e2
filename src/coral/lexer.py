"""Coral lexer: template source to a lazy token stream.

The lexer alternates between two modes:

- **Text mode** scans for the next ``{{``. Everything before it becomes one
  TEXT token. ``\\{{`` emits a literal ``{{``; ``{{! ... }}`` and
  ``{{!-- ... --}}`` comments are dropped without splitting the text run.
- **Marker mode** starts at an opener (``{{``, ``{{{``, ``{{#``, ``{{/``),
  emits an optional sigil (``~`` helper, ``>`` partial), then expression
  tokens until the matching closer.

Tokens are produced by a generator, so a parser that fails early never pays
for lexing the rest of the template. Errors carry the position of the
offending opener so an unterminated ``{{`` is never absorbed into text.

Example:
    >>> [t.type.name for t in tokenize("Hi {{ user.name }}")]
    ['TEXT', 'EXPR_OPEN', 'NAME', 'DOT', 'NAME', 'EXPR_CLOSE', 'EOF']

"""

from __future__ import annotations

import re
from bisect import bisect_right
from collections.abc import Generator, Iterator

from coral._types import Token, TokenType
from coral.environment.exceptions import ErrorCode, LexError

_NAME_RE = re.compile(r"@?[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_RE = re.compile(r"[0-9]+(\.[0-9]+)?")
_INTEGER_RE = re.compile(r"[0-9]+")
_PARTIAL_NAME_RE = re.compile(r"[A-Za-z0-9_@][A-Za-z0-9_\-./@]*")

# Longest operators first so "===" wins over "==" and "=".
_OPERATORS: tuple[tuple[str, TokenType], ...] = (
    ("===", TokenType.STRICT_EQ),
    ("!==", TokenType.STRICT_NE),
    ("==", TokenType.EQ),
    ("!=", TokenType.NE),
    ("<=", TokenType.LE),
    (">=", TokenType.GE),
    ("&&", TokenType.AND),
    ("||", TokenType.OR),
    ("+", TokenType.ADD),
    ("-", TokenType.SUB),
    ("*", TokenType.MUL),
    ("/", TokenType.DIV),
    ("%", TokenType.MOD),
    ("!", TokenType.NOT),
    ("<", TokenType.LT),
    (">", TokenType.GT),
    ("=", TokenType.ASSIGN),
    (".", TokenType.DOT),
    (",", TokenType.COMMA),
    (":", TokenType.COLON),
    ("?", TokenType.QUESTION),
    ("(", TokenType.LPAREN),
    (")", TokenType.RPAREN),
    ("[", TokenType.LBRACKET),
    ("]", TokenType.RBRACKET),
)

_STRING_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"'}

_WHITESPACE = " \t\r\n"


class Lexer:
    """Tokenizer for one template source.

    Args:
        source: Template text
        name: Template name, used in error messages
    """

    __slots__ = ("_line_starts", "_name", "_source")

    def __init__(self, source: str, name: str | None = None):
        self._source = source
        self._name = name
        self._line_starts = [0] + [m.end() for m in re.finditer("\n", source)]

    # ─────────────────────────────────────────────────────────────────────
    # Positions and errors
    # ─────────────────────────────────────────────────────────────────────

    def _position(self, offset: int) -> tuple[int, int]:
        line_index = bisect_right(self._line_starts, offset) - 1
        return line_index + 1, offset - self._line_starts[line_index]

    def _token(self, type_: TokenType, value: str | int | float, offset: int) -> Token:
        lineno, col = self._position(offset)
        return Token(type_, value, lineno, col, offset)

    def _error(
        self,
        message: str,
        offset: int,
        code: ErrorCode,
        suggestion: str | None = None,
    ) -> LexError:
        lineno, col = self._position(offset)
        return LexError(
            message,
            lineno,
            col,
            offset,
            name=self._name,
            source=self._source,
            suggestion=suggestion,
            code=code,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Text mode
    # ─────────────────────────────────────────────────────────────────────

    def tokenize(self) -> Iterator[Token]:
        """Yield tokens lazily, ending with EOF."""
        source = self._source
        pos = 0
        text_start = 0
        pieces: list[str] = []

        while True:
            idx = source.find("{{", pos)
            if idx == -1:
                pieces.append(source[pos:])
                break

            if idx > 0 and source[idx - 1] == "\\":
                pieces.append(source[pos : idx - 1])
                pieces.append("{{")
                pos = idx + 2
                continue

            pieces.append(source[pos:idx])

            if source.startswith("{{!", idx):
                pos = self._skip_comment(idx)
                continue

            text = "".join(pieces)
            if text:
                yield self._token(TokenType.TEXT, text, text_start)
            pieces = []

            pos = yield from self._lex_marker(idx)
            text_start = pos

        text = "".join(pieces)
        if text:
            yield self._token(TokenType.TEXT, text, text_start)
        yield self._token(TokenType.EOF, "", len(source))

    def _skip_comment(self, start: int) -> int:
        source = self._source
        if source.startswith("{{!--", start):
            end = source.find("--}}", start + 5)
            if end == -1:
                raise self._error(
                    "Unclosed comment: '{{!--' has no matching '--}}'",
                    start,
                    ErrorCode.UNCLOSED_COMMENT,
                )
            return end + 4
        end = source.find("}}", start + 3)
        if end == -1:
            raise self._error(
                "Unclosed comment: '{{!' has no matching '}}'",
                start,
                ErrorCode.UNCLOSED_COMMENT,
                suggestion="Use '{{!-- ... --}}' for comments that contain '}}'",
            )
        return end + 2

    # ─────────────────────────────────────────────────────────────────────
    # Marker mode
    # ─────────────────────────────────────────────────────────────────────

    def _lex_marker(self, start: int) -> Generator[Token, None, int]:
        """Lex one ``{{ ... }}`` marker. Returns the offset after the closer."""
        source = self._source

        if source.startswith("{{{", start):
            open_type, closer, close_type = TokenType.RAW_OPEN, "}}}", TokenType.RAW_CLOSE
            pos = start + 3
        else:
            closer, close_type = "}}", TokenType.EXPR_CLOSE
            pos = start + 2
            next_char = source[pos : pos + 1]
            if next_char == "#":
                open_type = TokenType.BLOCK_OPEN
                pos += 1
            elif next_char == "/":
                open_type = TokenType.BLOCK_CLOSE
                pos += 1
            else:
                open_type = TokenType.EXPR_OPEN

        yield self._token(open_type, open_type.value, start)

        partial_name_next = False
        if open_type in (TokenType.EXPR_OPEN, TokenType.RAW_OPEN) and source.startswith("~", pos):
            yield self._token(TokenType.HELPER_SIGIL, "~", pos)
            pos += 1
        elif open_type is TokenType.EXPR_OPEN and source.startswith(">", pos):
            yield self._token(TokenType.PARTIAL_SIGIL, ">", pos)
            pos += 1
            partial_name_next = True

        first = True
        prev: TokenType = open_type
        length = len(source)

        while True:
            while pos < length and source[pos] in _WHITESPACE:
                pos += 1
            if pos >= length:
                raise self._error(
                    f"Unclosed marker: '{open_type.value}' has no matching '{closer}'",
                    start,
                    ErrorCode.UNCLOSED_MARKER,
                )

            if source.startswith(closer, pos):
                yield self._token(close_type, closer, pos)
                return pos + len(closer)
            if source.startswith("}}", pos):
                raise self._error(
                    f"Raw marker opened with '{{{{{{' must close with '}}}}}}', found '}}}}'",
                    start,
                    ErrorCode.UNCLOSED_MARKER,
                )
            if source.startswith("{{", pos):
                raise self._error(
                    f"Unclosed marker: found '{{{{' before the '{closer}' closing "
                    f"'{open_type.value}'",
                    start,
                    ErrorCode.UNCLOSED_MARKER,
                )

            char = source[pos]

            if partial_name_next and char not in "'\"":
                match = _PARTIAL_NAME_RE.match(source, pos)
                if match:
                    yield self._token(TokenType.NAME, match.group(), pos)
                    pos = match.end()
                    prev = TokenType.NAME
                    partial_name_next = False
                    first = False
                    continue
            partial_name_next = False

            if char in "'\"":
                value, end = self._lex_string(pos)
                yield self._token(TokenType.STRING, value, pos)
                pos = end
                prev = TokenType.STRING
            elif "0" <= char <= "9":
                # After a dot only an integer index is valid: items.0.name
                pattern = _INTEGER_RE if prev is TokenType.DOT else _NUMBER_RE
                match = pattern.match(source, pos)
                assert match is not None
                text = match.group()
                if "." in text:
                    yield self._token(TokenType.FLOAT, float(text), pos)
                    prev = TokenType.FLOAT
                else:
                    yield self._token(TokenType.INTEGER, int(text), pos)
                    prev = TokenType.INTEGER
                pos = match.end()
            elif char.isalpha() or char in "_@":
                match = _NAME_RE.match(source, pos)
                if match is None:
                    raise self._error(
                        f"Unexpected character {char!r} in marker",
                        pos,
                        ErrorCode.UNEXPECTED_CHARACTER,
                    )
                name = match.group()
                yield self._token(TokenType.NAME, name, pos)
                if first and open_type is TokenType.BLOCK_OPEN and name == "partial":
                    partial_name_next = True
                pos = match.end()
                prev = TokenType.NAME
            else:
                for text, type_ in _OPERATORS:
                    if source.startswith(text, pos):
                        yield self._token(type_, text, pos)
                        pos += len(text)
                        prev = type_
                        break
                else:
                    raise self._error(
                        f"Unexpected character {char!r} in marker",
                        pos,
                        ErrorCode.UNEXPECTED_CHARACTER,
                    )
            first = False

    def _lex_string(self, start: int) -> tuple[str, int]:
        source = self._source
        quote = source[start]
        chars: list[str] = []
        pos = start + 1
        length = len(source)
        while pos < length:
            char = source[pos]
            if char == "\\" and pos + 1 < length:
                nxt = source[pos + 1]
                chars.append(_STRING_ESCAPES.get(nxt, "\\" + nxt))
                pos += 2
                continue
            if char == quote:
                return "".join(chars), pos + 1
            chars.append(char)
            pos += 1
        raise self._error("Unterminated string literal", start, ErrorCode.UNCLOSED_STRING)


def tokenize(source: str, name: str | None = None) -> Iterator[Token]:
    """Tokenize template source lazily.

    Args:
        source: Template text
        name: Optional template name for error messages

    Returns:
        Iterator of tokens ending with EOF

    Raises:
        LexError: On unterminated markers, comments or strings (raised while
            iterating, at the point the problem is reached)
    """
    return Lexer(source, name).tokenize()
