"""Coral parser: token stream to immutable AST.

The Parser class is assembled from mixins, one per concern:

    TokenNavigationMixin      lookahead buffer, expect/error helpers
    ExpressionParsingMixin    precedence-climbing expressions
    BlockParsingMixin         bodies, block tags, helpers, partials
    MarkupParsingMixin        HTML tags and attributes inside text

Partial references are checked at parse time. A reference must name either a
partial defined earlier in the same template (``{{#partial}}``) or one of the
``partials`` passed in, which the engine fills with its registered names.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator

from coral._types import Token
from coral.lexer import tokenize
from coral.nodes import Template
from coral.parser.blocks import BlockParsingMixin
from coral.parser.expressions import ExpressionParsingMixin
from coral.parser.markup import MarkupParsingMixin
from coral.parser.tokens import TokenNavigationMixin


class Parser(
    TokenNavigationMixin,
    ExpressionParsingMixin,
    BlockParsingMixin,
    MarkupParsingMixin,
):
    """Recursive-descent parser for one template.

    Args:
        tokens: Token iterable from the lexer (consumed lazily)
        name: Template name for error messages
        source: Template source for error snippets
        partials: Names of globally registered partials

    Example:
        >>> from coral.lexer import tokenize
        >>> Parser(tokenize("Hi {{ name }}")).parse().body[0].value
        'Hi '
    """

    __slots__ = (
        "_block_stack",
        "_buffer",
        "_defined_partials",
        "_known_partials",
        "_last",
        "_name",
        "_source",
        "_tokens",
    )

    def __init__(
        self,
        tokens: Iterable[Token],
        *,
        name: str | None = None,
        source: str | None = None,
        partials: Iterable[str] = frozenset(),
    ):
        self._tokens: Iterator[Token] = iter(tokens)
        self._buffer: deque[Token] = deque()
        self._last: Token | None = None
        self._name = name
        self._source = source
        self._block_stack: list[tuple[str, Token]] = []
        self._defined_partials: set[str] = set()
        self._known_partials = frozenset(partials)

    def parse(self) -> Template:
        """Parse the whole token stream.

        Raises:
            LexError: Propagated from the lazy token stream
            ParseError: On any syntax error, unbalanced block, misplaced
                ``{{else}}``, unknown partial or malformed tag
        """
        body = self._parse_body()
        # _parse_body only returns at EOF or on a stray closing tag/else at
        # top level, and both of those raise inside it.
        return Template(lineno=1, col_offset=0, body=tuple(body))


def parse(
    source: str | Iterable[Token],
    name: str | None = None,
    *,
    partials: Iterable[str] = frozenset(),
) -> Template:
    """Parse template source, or an already tokenized stream, in one step.

    Error snippets need the source text, so they are only available when
    ``source`` is a string.
    """
    if isinstance(source, str):
        return Parser(tokenize(source, name), name=name, source=source, partials=partials).parse()
    return Parser(source, name=name, partials=partials).parse()
