"""Control flow statement compilation for Coral compiler.

Provides mixin for compiling control flow statements (if, unless, each).

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import ast
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from coral.nodes import Each, Expr, If, Node, Unless


class ControlFlowMixin:
    """Mixin for compiling control flow statements.

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
        def _scope_expr(self) -> ast.Name: ...

        # From Compiler core
        def _next_name(self, prefix: str) -> str: ...

        # From ConstantCoalescingMixin
        def _compile_body_with_coalescing(self, nodes: Sequence[Node]) -> list[ast.stmt]: ...

    def _compile_block_body(self, nodes: Sequence[Node]) -> list[ast.stmt]:
        """Compile a nested body; Python needs at least one statement."""
        return self._compile_body_with_coalescing(nodes) or [ast.Pass()]

    def _compile_conditional(
        self,
        test: ast.expr,
        body: Sequence[Node],
        elif_: Sequence[tuple[Expr, Sequence[Node]]],
        else_: Sequence[Node],
    ) -> list[ast.stmt]:
        """Build ``if test: ... elif ...: ... else: ...`` in source order."""
        orelse: list[ast.stmt] = self._compile_body_with_coalescing(else_)

        # Chain from the last branch outwards so the first elif is tested first
        for elif_test, elif_body in reversed(elif_):
            orelse = [
                ast.If(
                    test=self._compile_expr(elif_test),
                    body=self._compile_block_body(elif_body),
                    orelse=orelse,
                )
            ]

        return [
            ast.If(
                test=test,
                body=self._compile_block_body(body),
                orelse=orelse,
            )
        ]

    def _compile_if(self, node: If) -> list[ast.stmt]:
        """Compile {{#if}} with its else-if chain."""
        return self._compile_conditional(
            self._compile_expr(node.test),
            node.body,
            node.elif_,
            node.else_,
        )

    def _compile_unless(self, node: Unless) -> list[ast.stmt]:
        """Compile {{#unless}}: the first branch runs when the test is falsy."""
        test = ast.UnaryOp(op=ast.Not(), operand=self._compile_expr(node.test))
        return self._compile_conditional(test, node.body, node.elif_, node.else_)

    def _compile_each(self, node: Each) -> list[ast.stmt]:
        """Compile {{#each item in items}}...{{else}}...{{/each}}.

        Generates:
            _items_1 = _each_items(items)
            if _items_1:
                _last_1 = _len(_items_1) - 1
                for _index_1, (_key_1, _item_1) in _enumerate(_items_1):
                    _scope_2 = _scope.push({'item': _item_1, '@index': _index_1, ...})
                    ... body ...
            else:
                ... else body ...

        The rebasing form ``{{#each items}}`` uses ``_scope.rebase(_item_1, {...})``
        so unqualified names resolve against the element first.
        """
        items = self._next_name("_items")
        last = self._next_name("_last")
        index = self._next_name("_index")
        key = self._next_name("_key")
        item = self._next_name("_item")
        outer_scope = self._scope_var
        inner_scope = self._next_name("_scope")

        frame = ast.Dict(
            keys=[
                ast.Constant(value=node.target),
                ast.Constant(value="@index"),
                ast.Constant(value="@first"),
                ast.Constant(value="@last"),
                ast.Constant(value="@key"),
            ],
            values=[
                self._load(item),
                self._load(index),
                ast.Compare(left=self._load(index), ops=[ast.Eq()], comparators=[ast.Constant(value=0)]),
                ast.Compare(left=self._load(index), ops=[ast.Eq()], comparators=[self._load(last)]),
                self._load(key),
            ],
        )
        scope_attr = "rebase" if node.rebase else "push"
        scope_args: list[ast.expr] = [self._load(item), frame] if node.rebase else [frame]

        self._scope_var = inner_scope
        try:
            body = self._compile_body_with_coalescing(node.body)
        finally:
            self._scope_var = outer_scope

        loop = ast.For(
            target=ast.Tuple(
                elts=[
                    self._store(index),
                    ast.Tuple(elts=[self._store(key), self._store(item)], ctx=ast.Store()),
                ],
                ctx=ast.Store(),
            ),
            iter=self._call("_enumerate", self._load(items)),
            body=[
                ast.Assign(
                    targets=[self._store(inner_scope)],
                    value=self._call(
                        ast.Attribute(value=self._load(outer_scope), attr=scope_attr, ctx=ast.Load()),
                        *scope_args,
                    ),
                ),
                *body,
            ],
            orelse=[],
        )

        return [
            # _items_N = _each_items(iter)
            ast.Assign(
                targets=[self._store(items)],
                value=self._call("_each_items", self._compile_expr(node.iter)),
            ),
            ast.If(
                test=self._load(items),
                body=[
                    # _last_N = _len(_items_N) - 1
                    ast.Assign(
                        targets=[self._store(last)],
                        value=ast.BinOp(
                            left=self._call("_len", self._load(items)),
                            op=ast.Sub(),
                            right=ast.Constant(value=1),
                        ),
                    ),
                    loop,
                ],
                orelse=self._compile_body_with_coalescing(node.else_),
            ),
        ]
