"""With-block statement compilation for Coral compiler.

Provides mixin for compiling ``{{#with expr}}`` (rebasing) and
``{{#with expr as name}}`` (binding).

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import ast
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from coral.nodes import Expr, Node, With


class WithBlockMixin:
    """Mixin for compiling with-block statements.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        # Host attributes (from Compiler.__init__)
        _scope_var: str

        # From ExpressionCompilationMixin
        def _compile_expr(self, node: Expr) -> ast.expr: ...
        def _call(self, func: str | ast.expr, *args: ast.expr) -> ast.Call: ...
        def _load(self, name: str) -> ast.Name: ...
        def _store(self, name: str) -> ast.Name: ...

        # From Compiler core
        def _next_name(self, prefix: str) -> str: ...

        # From ControlFlowMixin
        def _compile_block_body(self, nodes: Sequence[Node]) -> list[ast.stmt]: ...

    def _compile_with(self, node: With) -> list[ast.stmt]:
        """Compile {{#with expr}}...{{/with}}.

        The body is skipped entirely when the value is null or undefined.

        Generates:
            _with_1 = expr
            if _with_1 is not None and _with_1 is not _UNDEFINED:
                _scope_2 = _scope.rebase(_with_1)       # {{#with expr}}
                _scope_2 = _scope.push({'name': _with_1})  # {{#with expr as name}}
                ... body ...
        """
        value = self._next_name("_with")
        outer_scope = self._scope_var
        inner_scope = self._next_name("_scope")

        if node.target:
            new_scope = self._call(
                ast.Attribute(value=self._load(outer_scope), attr="push", ctx=ast.Load()),
                ast.Dict(keys=[ast.Constant(value=node.target)], values=[self._load(value)]),
            )
        else:
            new_scope = self._call(
                ast.Attribute(value=self._load(outer_scope), attr="rebase", ctx=ast.Load()),
                self._load(value),
            )

        self._scope_var = inner_scope
        try:
            body = self._compile_block_body(node.body)
        finally:
            self._scope_var = outer_scope

        return [
            ast.Assign(targets=[self._store(value)], value=self._compile_expr(node.expr)),
            ast.If(
                test=ast.BoolOp(
                    op=ast.And(),
                    values=[
                        ast.Compare(
                            left=self._load(value),
                            ops=[ast.IsNot()],
                            comparators=[ast.Constant(value=None)],
                        ),
                        ast.Compare(
                            left=self._load(value),
                            ops=[ast.IsNot()],
                            comparators=[self._load("_UNDEFINED")],
                        ),
                    ],
                ),
                body=[ast.Assign(targets=[self._store(inner_scope)], value=new_scope), *body],
                orelse=[],
            ),
        ]
