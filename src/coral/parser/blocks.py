"""Block and statement parsing for the Coral parser.

Block tags open with ``{{#keyword ...}}`` and close with ``{{/keyword}}``.
``{{else}}`` and ``{{else if ...}}`` are continuation markers, valid only
directly inside ``if``, ``unless`` (both forms) and ``each`` (plain ``else``
only).
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import TYPE_CHECKING

from coral._types import Token, TokenType
from coral.environment.exceptions import ErrorCode
from coral.nodes import (
    Each,
    Expr,
    HelperCall,
    If,
    Interpolation,
    Node,
    PartialDef,
    PartialRef,
    Unless,
    With,
)
from coral.parser.expressions import RESERVED_NAMES

if TYPE_CHECKING:
    from collections.abc import Container

    from coral.environment.exceptions import ParseError

# Block keyword -> parser method name
_BLOCK_PARSERS: dict[str, str] = {
    "if": "_parse_if",
    "unless": "_parse_unless",
    "each": "_parse_each",
    "with": "_parse_with",
    "partial": "_parse_partial_def",
}

# Blocks whose body may be split by {{else}}
_ELSE_BLOCKS = frozenset({"if", "unless", "each"})


class BlockParsingMixin:
    """Mixin for parsing template bodies, block tags and output markers.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        _current: Token
        _block_stack: list[tuple[str, Token]]
        _defined_partials: set[str]
        _known_partials: Container[str]

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
        def _parse_text(self) -> list[Node]: ...

    # ─────────────────────────────────────────────────────────────────────────
    # Body
    # ─────────────────────────────────────────────────────────────────────────

    def _parse_body(self) -> list[Node]:
        """Parse nodes until EOF, a closing tag or an ``{{else}}``.

        The caller decides what the stopping token means.
        """
        body: list[Node] = []
        while True:
            token = self._current
            match token.type:
                case TokenType.EOF:
                    if self._block_stack:
                        kind, opener = self._block_stack[-1]
                        raise self._error(
                            f"Unclosed block '{{{{#{kind}}}}}'",
                            opener,
                            suggestion=f"Add '{{{{/{kind}}}}}' to close it",
                            code=ErrorCode.UNCLOSED_BLOCK,
                        )
                    return body
                case TokenType.TEXT:
                    body.extend(self._parse_text())
                case TokenType.BLOCK_OPEN:
                    body.append(self._parse_block())
                case TokenType.BLOCK_CLOSE:
                    if not self._block_stack:
                        name = self._peek().value
                        raise self._error(
                            f"Unexpected '{{{{/{name}}}}}' with no open block",
                            token,
                            code=ErrorCode.UNMATCHED_END,
                        )
                    return body
                case TokenType.EXPR_OPEN | TokenType.RAW_OPEN:
                    if self._at_else():
                        self._check_else_allowed()
                        return body
                    body.append(self._parse_output_marker())
                case _:
                    raise self._error(f"Unexpected '{token.value}'")

    def _at_else(self) -> bool:
        return (
            self._current.type is TokenType.EXPR_OPEN
            and self._peek().type is TokenType.NAME
            and self._peek().value == "else"
        )

    def _check_else_allowed(self) -> None:
        token = self._current
        if not self._block_stack or self._block_stack[-1][0] not in _ELSE_BLOCKS:
            inside = f" inside '{{{{#{self._block_stack[-1][0]}}}}}'" if self._block_stack else ""
            raise self._error(
                f"'{{{{else}}}}' is not allowed here{inside}",
                token,
                suggestion="'{{else}}' is valid only inside if, unless and each blocks",
                code=ErrorCode.MISPLACED_ELSE,
            )

    # ─────────────────────────────────────────────────────────────────────────
    # Output markers
    # ─────────────────────────────────────────────────────────────────────────

    def _parse_output_marker(self) -> Node:
        """Parse ``{{ expr }}``, ``{{{ expr }}}``, ``{{~helper}}`` or ``{{> partial}}``."""
        opener = self._advance()
        raw = opener.type is TokenType.RAW_OPEN
        closer = TokenType.RAW_CLOSE if raw else TokenType.EXPR_CLOSE

        if self._match(TokenType.HELPER_SIGIL):
            return self._parse_helper_call(opener, raw)
        if self._match(TokenType.PARTIAL_SIGIL):
            return self._parse_partial_ref(opener)

        expr = self._parse_expression()
        self._expect(closer, f"Expected '{closer.value}' to close output marker")
        return Interpolation(
            lineno=opener.lineno,
            col_offset=opener.col_offset,
            expr=expr,
            raw=raw,
        )

    def _parse_helper_call(self, opener: Token, raw: bool) -> HelperCall:
        """Parse ``{{~name arg* key=value*}}``; the current token is '~'."""
        self._advance()  # consume '~'
        closer = TokenType.RAW_CLOSE if raw else TokenType.EXPR_CLOSE
        name_token = self._expect(TokenType.NAME, "Expected helper name after '~'")
        args, kwargs = self._parse_space_arguments(closer)
        self._advance()  # consume closer
        return HelperCall(
            lineno=opener.lineno,
            col_offset=opener.col_offset,
            name=str(name_token.value),
            args=args,
            kwargs=kwargs,
            raw=raw,
        )

    def _parse_space_arguments(
        self, closer: TokenType
    ) -> tuple[tuple[Expr, ...], tuple[tuple[str, Expr], ...]]:
        """Parse ``arg arg key=value`` up to (not including) ``closer``."""
        args: list[Expr] = []
        kwargs: list[tuple[str, Expr]] = []
        while not self._match(closer):
            if self._match(TokenType.EOF):
                raise self._error(f"Expected '{closer.value}'")
            if self._match(TokenType.NAME) and self._peek().type is TokenType.ASSIGN:
                key = str(self._advance().value)
                self._advance()  # consume '='
                kwargs.append((key, self._parse_argument()))
            elif kwargs:
                raise self._error(
                    "Positional argument follows keyword argument",
                    code=ErrorCode.INVALID_EXPRESSION,
                )
            else:
                args.append(self._parse_argument())
        return tuple(args), tuple(kwargs)

    # ─────────────────────────────────────────────────────────────────────────
    # Partials
    # ─────────────────────────────────────────────────────────────────────────

    def _parse_partial_name(self) -> Token:
        token = self._current
        if token.type not in (TokenType.NAME, TokenType.STRING) or not token.value:
            raise self._error("Expected partial name")
        return self._advance()

    def _parse_partial_ref(self, opener: Token) -> PartialRef:
        """Parse ``{{> name [context] [key=value]*}}``; current token is '>'."""
        self._advance()  # consume '>'
        name_token = self._parse_partial_name()
        name = str(name_token.value)
        if name not in self._defined_partials and name not in self._known_partials:
            candidates = [*self._defined_partials]
            if isinstance(self._known_partials, (set, frozenset, dict)):
                candidates.extend(self._known_partials)
            close = get_close_matches(name, candidates, n=1)
            raise self._error(
                f"Partial '{name}' is not defined",
                name_token,
                suggestion=(
                    f"Did you mean '{close[0]}'?"
                    if close
                    else "Define it earlier with {{#partial name}} or register it on the engine"
                ),
                code=ErrorCode.UNDEFINED_PARTIAL,
            )

        args, hash_pairs = self._parse_space_arguments(TokenType.EXPR_CLOSE)
        self._advance()  # consume '}}'
        if len(args) > 1:
            raise self._error(
                f"Partial '{name}' takes at most one context argument, got {len(args)}",
                name_token,
                code=ErrorCode.INVALID_EXPRESSION,
            )
        return PartialRef(
            lineno=opener.lineno,
            col_offset=opener.col_offset,
            name=name,
            context=args[0] if args else None,
            hash=hash_pairs,
        )

    def _parse_partial_def(self, start: Token) -> PartialDef:
        """Parse ``{{#partial name}}...{{/partial}}``."""
        name_token = self._parse_partial_name()
        name = str(name_token.value)
        if name in self._defined_partials:
            raise self._error(
                f"Partial '{name}' is already defined in this template",
                name_token,
                suggestion="Give each {{#partial}} a distinct name",
            )
        self._expect(TokenType.EXPR_CLOSE)
        # Visible from here on, so a partial can render itself recursively
        self._defined_partials.add(name)
        self._push_block("partial", start)
        body = self._parse_body()
        self._consume_end_tag("partial")
        return PartialDef(
            lineno=start.lineno,
            col_offset=start.col_offset,
            name=name,
            body=tuple(body),
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Blocks
    # ─────────────────────────────────────────────────────────────────────────

    def _push_block(self, kind: str, token: Token) -> None:
        self._block_stack.append((kind, token))

    def _consume_end_tag(self, kind: str) -> None:
        """Consume ``{{/kind}}`` and pop the block stack."""
        close = self._expect(TokenType.BLOCK_CLOSE, f"Expected '{{{{/{kind}}}}}'")
        name_token = self._current
        if name_token.type is not TokenType.NAME or name_token.value != kind:
            opener = self._block_stack[-1][1]
            raise self._error(
                f"Mismatched closing tag: expected '{{{{/{kind}}}}}' for the block opened "
                f"on line {opener.lineno}, found '{{{{/{name_token.value}}}}}'",
                close,
                code=ErrorCode.UNMATCHED_END,
            )
        self._advance()
        self._expect(TokenType.EXPR_CLOSE)
        self._block_stack.pop()

    def _parse_block(self) -> Node:
        start = self._advance()  # consume '{{#'
        keyword = self._current
        if keyword.type is not TokenType.NAME:
            raise self._error("Expected block name after '{{#'")
        method_name = _BLOCK_PARSERS.get(str(keyword.value))
        if method_name is None:
            close = get_close_matches(str(keyword.value), list(_BLOCK_PARSERS), n=1)
            raise self._error(
                f"Unknown block '{{{{#{keyword.value}}}}}'",
                keyword,
                suggestion=f"Did you mean '{{{{#{close[0]}}}}}'?" if close else (
                    f"Known blocks: {', '.join(_BLOCK_PARSERS)}"
                ),
            )
        self._advance()  # consume keyword
        return getattr(self, method_name)(start)

    def _parse_conditional_chain(
        self, kind: str, start: Token
    ) -> tuple[Expr, list[Node], list[tuple[Expr, tuple[Node, ...]]], list[Node]]:
        test = self._parse_expression()
        self._expect(TokenType.EXPR_CLOSE)
        self._push_block(kind, start)
        body = self._parse_body()

        elif_: list[tuple[Expr, tuple[Node, ...]]] = []
        else_: list[Node] = []
        while self._at_else():
            self._advance()  # '{{'
            self._advance()  # 'else'
            if self._match_name("if"):
                self._advance()
                branch_test = self._parse_expression()
                self._expect(TokenType.EXPR_CLOSE)
                elif_.append((branch_test, tuple(self._parse_body())))
                continue
            self._expect(TokenType.EXPR_CLOSE)
            else_ = self._parse_body()
            if self._at_else():
                raise self._error(
                    f"'{{{{else}}}}' after the final '{{{{else}}}}' of '{{{{#{kind}}}}}'",
                    code=ErrorCode.MISPLACED_ELSE,
                )
            break

        self._consume_end_tag(kind)
        return test, body, elif_, else_

    def _parse_if(self, start: Token) -> If:
        """Parse {{#if c}}...{{else if d}}...{{else}}...{{/if}}."""
        test, body, elif_, else_ = self._parse_conditional_chain("if", start)
        return If(
            lineno=start.lineno,
            col_offset=start.col_offset,
            test=test,
            body=tuple(body),
            elif_=tuple(elif_),
            else_=tuple(else_),
        )

    def _parse_unless(self, start: Token) -> Unless:
        """Parse {{#unless c}}...{{else}}...{{/unless}}."""
        test, body, elif_, else_ = self._parse_conditional_chain("unless", start)
        return Unless(
            lineno=start.lineno,
            col_offset=start.col_offset,
            test=test,
            body=tuple(body),
            elif_=tuple(elif_),
            else_=tuple(else_),
        )

    def _parse_each(self, start: Token) -> Each:
        """Parse {{#each item in items}} or the {{#each items}} shorthand."""
        rebase = True
        target = "item"
        if self._match(TokenType.NAME) and self._peek().type is TokenType.NAME and self._peek().value == "in":
            target_token = self._advance()
            target = str(target_token.value)
            if target.startswith("@") or target in RESERVED_NAMES or target == "this":
                raise self._error(
                    f"'{target}' cannot be used as a loop variable",
                    target_token,
                    code=ErrorCode.INVALID_EXPRESSION,
                )
            self._advance()  # consume 'in'
            rebase = False
        iterable = self._parse_expression()
        self._expect(TokenType.EXPR_CLOSE)

        self._push_block("each", start)
        body = self._parse_body()
        else_: list[Node] = []
        if self._at_else():
            else_token = self._advance()
            self._advance()  # 'else'
            if self._match_name("if"):
                raise self._error(
                    "'{{else if}}' is not allowed in '{{#each}}'",
                    else_token,
                    suggestion="Use a plain '{{else}}' for the empty case",
                    code=ErrorCode.MISPLACED_ELSE,
                )
            self._expect(TokenType.EXPR_CLOSE)
            else_ = self._parse_body()
            if self._at_else():
                raise self._error(
                    "Only one '{{else}}' is allowed in '{{#each}}'",
                    code=ErrorCode.MISPLACED_ELSE,
                )
        self._consume_end_tag("each")
        return Each(
            lineno=start.lineno,
            col_offset=start.col_offset,
            target=target,
            iter=iterable,
            body=tuple(body),
            else_=tuple(else_),
            rebase=rebase,
        )

    def _parse_with(self, start: Token) -> With:
        """Parse {{#with expr}} or {{#with expr as name}}."""
        expr = self._parse_expression()
        target: str | None = None
        if self._match_name("as"):
            self._advance()
            target_token = self._expect(TokenType.NAME, "Expected a name after 'as'")
            target = str(target_token.value)
            if target.startswith("@") or target in RESERVED_NAMES or target == "this":
                raise self._error(
                    f"'{target}' cannot be used as a binding name",
                    target_token,
                    code=ErrorCode.INVALID_EXPRESSION,
                )
        self._expect(TokenType.EXPR_CLOSE)
        self._push_block("with", start)
        body = self._parse_body()
        self._consume_end_tag("with")
        return With(
            lineno=start.lineno,
            col_offset=start.col_offset,
            expr=expr,
            body=tuple(body),
            target=target,
        )
