"""Template structure compilation for Coral compiler.

Provides mixin for compiling partial definitions and partial references.

Local partials are hoisted into module-level ``_partial_N`` functions by
``Compiler._compile_template``; here a definition compiles to nothing and a
reference to a ``_render_partial`` call.

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from coral.nodes import Expr, PartialDef, PartialRef


class TemplateStructureMixin:
    """Mixin for compiling partial definitions and references.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        # From ExpressionCompilationMixin
        def _compile_expr(self, node: Expr) -> ast.expr: ...
        def _call(self, func: str | ast.expr, *args: ast.expr) -> ast.Call: ...
        def _scope_expr(self) -> ast.Name: ...

        # From Compiler core
        def _emit_output(self, value_expr: ast.expr) -> ast.stmt: ...

    def _compile_partial_def(self, node: PartialDef) -> list[ast.stmt]:
        """{{#partial name}} renders nothing where it is written."""
        return []

    def _compile_partial_ref(self, node: PartialRef) -> list[ast.stmt]:
        """Compile {{> name [context] [key=value]*}}.

        Generates:
            _append(_render_partial('name', _scope))
            _append(_render_partial('name', _scope.rebase(ctx).push({'key': value})))

        Hash values are evaluated in the caller's scope.
        """
        scope: ast.expr = self._scope_expr()
        if node.context is not None:
            scope = self._call(
                ast.Attribute(value=scope, attr="rebase", ctx=ast.Load()),
                self._compile_expr(node.context),
            )
        if node.hash:
            scope = self._call(
                ast.Attribute(value=scope, attr="push", ctx=ast.Load()),
                ast.Dict(
                    keys=[ast.Constant(value=key) for key, _ in node.hash],
                    values=[self._compile_expr(value) for _, value in node.hash],
                ),
            )
        return [
            self._emit_output(
                self._call("_render_partial", ast.Constant(value=node.name), scope)
            )
        ]
