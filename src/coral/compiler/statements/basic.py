"""Basic statement compilation for Coral compiler.

Provides mixin for compiling output statements (text, interpolation,
helper call).

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING

from coral.nodes import FuncCall

if TYPE_CHECKING:
    from collections.abc import Sequence

    from coral.nodes import Expr, HelperCall, Interpolation, Text


class BasicStatementMixin:
    """Mixin for compiling basic output statements.

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
        def _compile_helper_invocation(
            self,
            name: str,
            args: Sequence[Expr],
            kwargs: Sequence[tuple[str, Expr]],
        ) -> ast.Call: ...

        # From Compiler core
        def _emit_output(self, value_expr: ast.expr) -> ast.stmt: ...

    def _compile_text(self, node: Text) -> list[ast.stmt]:
        """Compile literal text: _append("literal text")"""
        if not node.value:
            return []
        return [self._emit_output(ast.Constant(value=node.value))]

    def _compile_interpolation(self, node: Interpolation) -> list[ast.stmt]:
        """Compile {{ expr }} and {{{ expr }}}.

        Escaped: _append(_escape(expr)); a bare helper call ``{{ f(x) }}``
        uses _escape_helper, which lets a Markup result through.
        Raw: _append(_raw(expr))
        """
        expr = self._compile_expr(node.expr)
        if node.raw:
            func = "_raw"
        elif isinstance(node.expr, FuncCall):
            func = "_escape_helper"
        else:
            func = "_escape"
        return [self._emit_output(self._call(func, expr))]

    def _compile_helper_call(self, node: HelperCall) -> list[ast.stmt]:
        """Compile {{~name args}}: _append(_escape_helper(_call_helper(...)))"""
        call = self._compile_helper_invocation(node.name, node.args, node.kwargs)
        func = "_raw" if node.raw else "_escape_helper"
        return [self._emit_output(self._call(func, call))]
