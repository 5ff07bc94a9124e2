"""Markup compilation for Coral compiler.

Provides mixin for compiling Element nodes. Tags are re-emitted in a
normalised form, ``<tag name="value" flag>``, with every attribute value
double-quoted:

    ================================  ========================================
    Attribute                         Output
    ================================  ========================================
    ``title='say "hi"'``              ``title="say &quot;hi&quot;"``
    ``class="row {{ kind }}"``        ``class="row "`` + ``_attr_value(kind)``
    ``href="/u/{{ id }}"``            ``_url_attr('href', (('/u/', True), (id, False)))``
    ``onclick="{{bind save id}}"``    ``data-coral-on-click="save"``
                                      ``data-coral-args-click="[...]"``
    ================================  ========================================

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import ast
from collections.abc import Sequence
from typing import TYPE_CHECKING

from coral.nodes import HelperCall, Interpolation, Text
from coral.utils.constants import EVENT_ARGS_PREFIX, EVENT_BINDING_PREFIX, URL_ATTRIBUTES

if TYPE_CHECKING:
    from coral.nodes import Attribute, Element, Expr, Node

# Output pieces: literal markup or an expression producing escaped text
_Piece = str | ast.expr


def _quote_static(text: str) -> str:
    """Static attribute text is author-written; only the quote needs care."""
    return text.replace('"', "&quot;")


class MarkupCompilationMixin:
    """Mixin for compiling HTML tags and their attributes.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        # From ExpressionCompilationMixin
        def _compile_expr(self, node: Expr) -> ast.expr: ...
        def _call(self, func: str | ast.expr, *args: ast.expr) -> ast.Call: ...
        def _compile_tuple(self, items: Sequence[Expr]) -> ast.Tuple: ...
        def _compile_helper_invocation(
            self,
            name: str,
            args: Sequence[Expr],
            kwargs: Sequence[tuple[str, Expr]],
        ) -> ast.Call: ...

        # From Compiler core
        def _emit_output(self, value_expr: ast.expr) -> ast.stmt: ...

    def _compile_element(self, node: Element) -> list[ast.stmt]:
        """Compile one tag to a run of ``_append`` calls.

        Constant pieces are merged later by the coalescing pass, so a fully
        static tag ends up as a single ``_append('<tag ...>')``.
        """
        pieces: list[_Piece] = ["</" if node.closing else "<", node.tag]
        for attr in node.attributes:
            pieces.extend(self._attribute_pieces(attr))
        pieces.append(" />" if node.self_closing else ">")

        return [
            self._emit_output(ast.Constant(value=piece) if isinstance(piece, str) else piece)
            for piece in pieces
        ]

    def _attribute_pieces(self, attr: Attribute) -> list[_Piece]:
        if attr.binding is not None:
            event = attr.name[2:].lower()
            pieces: list[_Piece] = [f' {EVENT_BINDING_PREFIX}{event}="{attr.binding.handler}"']
            if attr.binding.args:
                pieces.append(f' {EVENT_ARGS_PREFIX}{event}="')
                pieces.append(self._call("_event_args", self._compile_tuple(attr.binding.args)))
                pieces.append('"')
            return pieces

        if attr.parts is None:
            return [f" {attr.name}"]

        pieces = [f' {attr.name}="']
        if attr.is_static:
            pieces.append(_quote_static("".join(part.value for part in attr.parts)))
        elif attr.name.lower() in URL_ATTRIBUTES:
            pieces.append(self._url_value(attr.name, attr.parts))
        else:
            pieces.extend(self._value_pieces(attr.parts))
        pieces.append('"')
        return pieces

    def _dynamic_part(self, part: Node) -> ast.expr:
        """Raw value of an interpolation or helper call inside an attribute."""
        if isinstance(part, HelperCall):
            return self._compile_helper_invocation(part.name, part.args, part.kwargs)
        if isinstance(part, Interpolation):
            return self._compile_expr(part.expr)
        raise TypeError(f"Unexpected attribute part {type(part).__name__}")

    def _value_pieces(self, parts: Sequence[Node]) -> list[_Piece]:
        """Mixed attribute value: dynamic parts are always escaped."""
        pieces: list[_Piece] = []
        for part in parts:
            if isinstance(part, Text):
                pieces.append(_quote_static(part.value))
            else:
                pieces.append(self._call("_attr_value", self._dynamic_part(part)))
        return pieces

    def _url_value(self, name: str, parts: Sequence[Node]) -> ast.expr:
        """``_url_attr(name, ((value, is_static), ...))``: checked at render time."""
        pairs: list[ast.expr] = []
        for part in parts:
            if isinstance(part, Text):
                pairs.append(
                    ast.Tuple(
                        elts=[ast.Constant(value=_quote_static(part.value)), ast.Constant(value=True)],
                        ctx=ast.Load(),
                    )
                )
            else:
                pairs.append(
                    ast.Tuple(
                        elts=[self._dynamic_part(part), ast.Constant(value=False)],
                        ctx=ast.Load(),
                    )
                )
        return self._call("_url_attr", ast.Constant(value=name), ast.Tuple(elts=pairs, ctx=ast.Load()))
