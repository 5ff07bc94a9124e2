"""HTML tag recognition for the Coral parser.

Template text is scanned for tags so the security validator can see every
element and attribute. A tag may span several tokens when an attribute value
holds interpolations:

    <a href="/users/{{ user.id }}" class="link">
    TEXT ─────────┘ EXPR ────────┘ TEXT ─────────

Only ``<name`` and ``</name`` start a tag; ``a < b``, ``<!DOCTYPE>`` and
``<!-- -->`` stay plain text. A ``<`` or ``</`` that ends a text run, before
a marker or at the end of the template, is an error because the tag name
would only appear at render time. Inside a tag, interpolations are allowed
only within attribute values, and block tags are not allowed at all.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from coral._types import Token, TokenType
from coral.environment.exceptions import ErrorCode
from coral.nodes import (
    Attribute,
    Element,
    EventBinding,
    Expr,
    HelperCall,
    Interpolation,
    Node,
    Text,
)

if TYPE_CHECKING:
    from coral.environment.exceptions import ParseError

_TAG_START_RE = re.compile(r"<(/?)([A-Za-z][A-Za-z0-9:-]*)")
_DANGLING_TAG_RE = re.compile(r"</?\s*\Z")
_ATTR_NAME_RE = re.compile(r"[^\s\"'<>/=`]+")
_UNQUOTED_VALUE_RE = re.compile(r"[^\s\"'<>=`]*")
_HANDLER_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*(\.[A-Za-z_$][A-Za-z0-9_$]*)*")


class MarkupParsingMixin:
    """Split TEXT tokens into Text and Element nodes.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        _current: Token

        def _peek(self, offset: int = 1) -> Token: ...
        def _advance(self) -> Token: ...
        def _match(self, *types: TokenType) -> bool: ...
        def _match_name(self, *names: str) -> bool: ...
        def _expect(self, token_type: TokenType, message: str | None = None) -> Token: ...
        def _error(
            self,
            message: str,
            token: Token | None = None,
            suggestion: str | None = None,
            code: ErrorCode = ...,
        ) -> ParseError: ...
        def _parse_expression(self) -> Expr: ...
        def _parse_argument(self) -> Expr: ...
        def _parse_helper_call(self, opener: Token, raw: bool) -> HelperCall: ...

    # ─────────────────────────────────────────────────────────────────────────
    # Text scanning
    # ─────────────────────────────────────────────────────────────────────────

    def _parse_text(self) -> list[Node]:
        """Consume the current TEXT token (and any tag continuation tokens)."""
        token = self._advance()
        text = str(token.value)
        nodes: list[Node] = []
        pos = 0
        while True:
            match = _TAG_START_RE.search(text, pos)
            if match is None:
                dangling = _DANGLING_TAG_RE.search(text, pos)
                if dangling is not None:
                    raise self._tag_error(
                        "Tag name must be written literally after '<'",
                        token,
                        dangling.start(),
                        suggestion="Write the tag name in the template, or escape the bracket as &lt;",
                    )
                if pos < len(text):
                    nodes.append(self._text_node(token, pos, text[pos:]))
                return nodes
            if match.start() > pos:
                nodes.append(self._text_node(token, pos, text[pos : match.start()]))
            element, token, text, pos = self._parse_tag(token, text, match)
            nodes.append(element)

    @staticmethod
    def _position_in(token: Token, index: int) -> tuple[int, int]:
        """Line/column of ``token.value[index]``."""
        before = str(token.value)[:index]
        newlines = before.count("\n")
        if newlines:
            return token.lineno + newlines, index - before.rfind("\n") - 1
        return token.lineno, token.col_offset + index

    def _text_node(self, token: Token, index: int, value: str) -> Text:
        lineno, col = self._position_in(token, index)
        return Text(lineno=lineno, col_offset=col, value=value)

    def _tag_error(self, message: str, token: Token, index: int, suggestion: str | None = None) -> ParseError:
        lineno, col = self._position_in(token, index)
        located = Token(TokenType.TEXT, "", lineno, col, token.offset + index)
        return self._error(message, located, suggestion=suggestion, code=ErrorCode.MALFORMED_TAG)

    # ─────────────────────────────────────────────────────────────────────────
    # Tags
    # ─────────────────────────────────────────────────────────────────────────

    def _next_tag_text(self, tag: str, token: Token, index: int) -> Token:
        """Fetch the TEXT token that continues a tag across a token boundary."""
        nxt = self._current
        match nxt.type:
            case TokenType.TEXT:
                return self._advance()
            case TokenType.EXPR_OPEN | TokenType.RAW_OPEN:
                raise self._error(
                    f"Interpolation inside <{tag}> is only allowed within an attribute value",
                    nxt,
                    suggestion='Write name="{{ value }}" instead of a bare {{ value }}',
                    code=ErrorCode.MALFORMED_TAG,
                )
            case TokenType.BLOCK_OPEN | TokenType.BLOCK_CLOSE:
                raise self._error(
                    f"Block tags cannot appear inside <{tag}>",
                    nxt,
                    suggestion="Wrap the whole element in the block instead",
                    code=ErrorCode.MALFORMED_TAG,
                )
            case _:
                raise self._tag_error(f"Unclosed HTML tag <{tag}>", token, index)

    def _parse_tag(
        self, token: Token, text: str, match: re.Match[str]
    ) -> tuple[Element, Token, str, int]:
        closing = match.group(1) == "/"
        tag = match.group(2)
        tag_start = match.start()
        lineno, col = self._position_in(token, tag_start)
        start_token, start_index = token, tag_start
        pos = match.end()
        attributes: list[Attribute] = []
        self_closing = False

        while True:
            while pos < len(text) and text[pos].isspace():
                pos += 1
            if pos >= len(text):
                token = self._next_tag_text(tag, start_token, start_index)
                text, pos = str(token.value), 0
                continue
            if text[pos] == ">":
                pos += 1
                break
            if text.startswith("/>", pos):
                self_closing = True
                pos += 2
                break
            if closing:
                raise self._tag_error(f"Closing tag </{tag}> cannot have attributes", token, pos)

            name_match = _ATTR_NAME_RE.match(text, pos)
            if name_match is None:
                raise self._tag_error(
                    f"Malformed attribute in <{tag}>: unexpected {text[pos]!r}", token, pos
                )
            name = name_match.group()
            attr_line, attr_col = self._position_in(token, pos)
            pos = name_match.end()

            parts: tuple[Node, ...] | None = None
            binding: EventBinding | None = None
            if pos < len(text) and text[pos] == "=":
                pos += 1
                parts, binding, token, text, pos = self._parse_attribute_value(tag, name, token, text, pos)

            if binding is not None and not name.lower().startswith("on"):
                raise self._tag_error(
                    f"Event binding is only allowed in on* attributes, not '{name}'",
                    token,
                    pos,
                )
            attributes.append(
                Attribute(
                    lineno=attr_line,
                    col_offset=attr_col,
                    name=name,
                    parts=parts,
                    binding=binding,
                )
            )

        element = Element(
            lineno=lineno,
            col_offset=col,
            tag=tag,
            attributes=tuple(attributes),
            closing=closing,
            self_closing=self_closing,
        )
        return element, token, text, pos

    def _parse_attribute_value(
        self, tag: str, name: str, token: Token, text: str, pos: int
    ) -> tuple[tuple[Node, ...], EventBinding | None, Token, str, int]:
        """Parse an attribute value after ``=``, crossing interpolation tokens."""
        quote: str | None = None
        if pos < len(text) and text[pos] in "\"'":
            quote = text[pos]
            pos += 1

        parts: list[Node] = []
        binding: EventBinding | None = None

        while True:
            if quote is not None:
                end = text.find(quote, pos)
                if end != -1:
                    if end > pos:
                        parts.append(self._text_node(token, pos, text[pos:end]))
                    pos = end + 1
                    break
                if pos < len(text):
                    parts.append(self._text_node(token, pos, text[pos:]))
            else:
                value_match = _UNQUOTED_VALUE_RE.match(text, pos)
                assert value_match is not None
                end = value_match.end()
                if end > pos:
                    parts.append(self._text_node(token, pos, text[pos:end]))
                if end < len(text):
                    pos = end
                    break

            # Value continues into the next token
            nxt = self._current
            if nxt.type in (TokenType.EXPR_OPEN, TokenType.RAW_OPEN):
                part = self._parse_attribute_marker(tag, name)
                if isinstance(part, EventBinding):
                    if binding is not None:
                        raise self._error(
                            "An event binding must be the entire attribute value",
                            nxt,
                            code=ErrorCode.MALFORMED_TAG,
                        )
                    binding = part
                elif binding is not None:
                    raise self._error(
                        "An event binding must be the entire attribute value",
                        nxt,
                        code=ErrorCode.MALFORMED_TAG,
                    )
                else:
                    parts.append(part)
                if self._match(TokenType.TEXT):
                    token = self._advance()
                    text, pos = str(token.value), 0
                else:
                    text, pos = "", 0
                continue
            if nxt.type is TokenType.TEXT:
                token = self._advance()
                text, pos = str(token.value), 0
                continue
            if nxt.type in (TokenType.BLOCK_OPEN, TokenType.BLOCK_CLOSE):
                raise self._error(
                    f"Block tags cannot appear inside <{tag}>",
                    nxt,
                    suggestion="Use a conditional expression: {{ flag ? 'a' : 'b' }}",
                    code=ErrorCode.MALFORMED_TAG,
                )
            raise self._error(
                f"Unclosed value of attribute '{name}' in <{tag}>",
                nxt,
                code=ErrorCode.MALFORMED_TAG,
            )

        if binding is not None and any(
            not isinstance(part, Text) or part.value.strip() for part in parts
        ):
            raise self._tag_error(
                "An event binding must be the entire attribute value", token, pos
            )
        if binding is not None:
            parts = []
        return tuple(parts), binding, token, text, pos

    def _parse_attribute_marker(self, tag: str, name: str) -> Node:
        """Parse one marker inside an attribute value."""
        opener = self._current
        raw = opener.type is TokenType.RAW_OPEN
        nxt = self._peek()

        if nxt.type is TokenType.PARTIAL_SIGIL:
            raise self._error(
                f"Partials cannot be rendered inside attribute '{name}' of <{tag}>",
                opener,
                code=ErrorCode.MALFORMED_TAG,
            )
        if nxt.type is TokenType.NAME and nxt.value == "else":
            raise self._error(
                f"Block tags cannot appear inside <{tag}>",
                opener,
                code=ErrorCode.MALFORMED_TAG,
            )
        if (
            not raw
            and nxt.type is TokenType.NAME
            and nxt.value == "bind"
            and self._peek(2).type is TokenType.NAME
        ):
            return self._parse_event_binding()

        self._advance()  # consume opener
        if self._match(TokenType.HELPER_SIGIL):
            return self._parse_helper_call(opener, raw)
        closer = TokenType.RAW_CLOSE if raw else TokenType.EXPR_CLOSE
        expr = self._parse_expression()
        self._expect(closer, f"Expected '{closer.value}' to close output marker")
        return Interpolation(lineno=opener.lineno, col_offset=opener.col_offset, expr=expr, raw=raw)

    def _parse_event_binding(self) -> EventBinding:
        """Parse ``{{bind handler arg*}}``."""
        opener = self._advance()  # '{{'
        self._advance()  # 'bind'
        handler_token = self._current
        parts = [str(self._advance().value)]
        while self._match(TokenType.DOT) and self._peek().type is TokenType.NAME:
            self._advance()
            parts.append(str(self._advance().value))
        handler = ".".join(parts)
        if not _HANDLER_RE.fullmatch(handler):
            raise self._error(
                f"Invalid event handler name '{handler}'",
                handler_token,
                code=ErrorCode.INVALID_EXPRESSION,
            )
        args: list[Expr] = []
        while not self._match(TokenType.EXPR_CLOSE):
            if self._match(TokenType.EOF):
                raise self._error("Expected '}}' to close event binding")
            args.append(self._parse_argument())
        self._advance()  # consume '}}'
        return EventBinding(
            lineno=opener.lineno,
            col_offset=opener.col_offset,
            handler=handler,
            args=tuple(args),
        )
