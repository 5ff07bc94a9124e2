"""Token navigation for the Coral parser.

The parser pulls tokens from the lexer's generator through a small
lookahead buffer, so it never materialises the whole token list.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from typing import TYPE_CHECKING

from coral._types import Token, TokenType
from coral.environment.exceptions import ErrorCode, ParseError


class TokenNavigationMixin:
    """Lookahead and error helpers shared by the parsing mixins.

    Host attributes:
        _tokens: Token iterator from the lexer
        _buffer: Lookahead buffer
        _name: Template name for errors
        _source: Template source for error snippets
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        _tokens: Iterator[Token]
        _buffer: deque[Token]
        _last: Token | None
        _name: str | None
        _source: str | None

    def _fill(self, n: int) -> None:
        while len(self._buffer) <= n:
            token = next(self._tokens, None)
            if token is None:
                # Repeat EOF past the end of the stream
                eof = self._buffer[-1] if self._buffer else self._last
                if eof is None or eof.type is not TokenType.EOF:
                    eof = Token(TokenType.EOF, "", 1, 0)
                token = eof
            self._buffer.append(token)

    @property
    def _current(self) -> Token:
        self._fill(0)
        return self._buffer[0]

    def _peek(self, offset: int = 1) -> Token:
        self._fill(offset)
        return self._buffer[offset]

    def _advance(self) -> Token:
        """Consume and return the current token."""
        self._fill(0)
        token = self._buffer.popleft()
        self._last = token
        return token

    def _match(self, *types: TokenType) -> bool:
        return self._current.type in types

    def _match_name(self, *names: str) -> bool:
        token = self._current
        return token.type is TokenType.NAME and token.value in names

    def _expect(self, token_type: TokenType, message: str | None = None) -> Token:
        """Consume a token of the given type or raise ParseError."""
        if self._current.type is not token_type:
            raise self._error(
                message or f"Expected '{token_type.value}', found {_describe(self._current)}"
            )
        return self._advance()

    def _error(
        self,
        message: str,
        token: Token | None = None,
        suggestion: str | None = None,
        code: ErrorCode = ErrorCode.UNEXPECTED_TOKEN,
    ) -> ParseError:
        """Build a ParseError located at ``token`` (default: current token)."""
        where = token or self._current
        return ParseError(
            message,
            where.lineno,
            where.col_offset,
            name=self._name,
            source=self._source,
            suggestion=suggestion,
            code=code,
        )


def _describe(token: Token) -> str:
    if token.type is TokenType.EOF:
        return "end of template"
    if token.type is TokenType.TEXT:
        return "text"
    return f"'{token.value}'"
