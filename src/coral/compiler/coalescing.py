"""Constant output coalescing for the Coral compiler.

Markup-heavy templates produce long runs of static output: text, static
tags, the fixed halves of attribute values. Each would otherwise become its
own ``_append('...')`` call. This pass merges adjacent constant appends into
one:

    _append('<li class="')      →    _append('<li class="row">')
    _append('row')
    _append('">')

Only constant appends are merged; line markers and dynamic appends act as
barriers, so output order is unchanged.
"""

from __future__ import annotations

import ast
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from coral.nodes import Node


def _constant_append(stmt: ast.stmt) -> str | None:
    """Text of an ``_append('...')`` statement, or None."""
    if not isinstance(stmt, ast.Expr) or not isinstance(stmt.value, ast.Call):
        return None
    call = stmt.value
    if (
        isinstance(call.func, ast.Name)
        and call.func.id == "_append"
        and len(call.args) == 1
        and isinstance(call.args[0], ast.Constant)
        and isinstance(call.args[0].value, str)
    ):
        return call.args[0].value
    return None


class ConstantCoalescingMixin:
    """Merge adjacent constant ``_append`` calls.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:

        def _compile_node(self, node: Node) -> list[ast.stmt]: ...
        def _emit_output(self, value_expr: ast.expr) -> ast.stmt: ...

    def _compile_body_with_coalescing(self, nodes: Sequence[Node]) -> list[ast.stmt]:
        """Compile a node sequence, merging constant output."""
        stmts: list[ast.stmt] = []
        for node in nodes:
            stmts.extend(self._compile_node(node))
        return self._coalesce(stmts)

    def _coalesce(self, stmts: list[ast.stmt]) -> list[ast.stmt]:
        result: list[ast.stmt] = []
        pending: list[str] = []

        def flush() -> None:
            if pending:
                result.append(self._emit_output(ast.Constant(value="".join(pending))))
                pending.clear()

        for stmt in stmts:
            text = _constant_append(stmt)
            if text is None:
                flush()
                result.append(stmt)
            elif text:
                pending.append(text)
        flush()
        return result
