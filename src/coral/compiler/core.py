"""Coral Compiler Core: main Compiler class.

The Compiler transforms Coral AST into Python AST, then compiles to an
executable code object. Uses a mixin-based design for maintainability.

Design Principles:
1. **AST-to-AST**: Generate `ast.Module`, not source strings
2. **StringBuilder**: Output via `buf.append()`, join at end
3. **Immutable scopes**: every block binds a fresh `_scope_N` local, so
   leaving the block is leaving the frame
4. **O(1) dispatch**: Dict-based node type → handler lookup

Generated module for a template with one local partial:

    ```python
    def _partial_0(_scope):
        buf = []
        _append = buf.append
        # partial body...
        return ''.join(buf)

    _local_partials = {'row': _partial_0}

    def render(_scope):
        buf = []
        _append = buf.append
        _append('<ul>')
        _get_render_ctx().at(3, None)
        _append(_render_partial('row', _scope))
        _append('</ul>')
        return ''.join(buf)
    ```

"""

from __future__ import annotations

import ast
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from coral.analysis.visitor import iter_nodes
from coral.compiler.coalescing import ConstantCoalescingMixin
from coral.compiler.expressions import ExpressionCompilationMixin, describe_expr
from coral.compiler.statements import StatementCompilationMixin
from coral.nodes import (
    Each,
    Element,
    HelperCall,
    If,
    Interpolation,
    PartialDef,
    Unless,
    With,
)

if TYPE_CHECKING:
    import types

    from coral.nodes import Node
    from coral.nodes import Template as TemplateNode

_ROOT_SCOPE = "_scope"


def _node_expression(node: Node) -> str | None:
    """Source-like text of the expression a statement evaluates, for errors."""
    match node:
        case Interpolation(expr=expr) | With(expr=expr):
            return describe_expr(expr)
        case If(test=test) | Unless(test=test):
            return describe_expr(test)
        case Each(iter=iterable):
            return describe_expr(iterable)
        case HelperCall(name=name, args=args, kwargs=kwargs):
            parts = [f"~{name}", *(describe_expr(a) for a in args)]
            parts.extend(f"{key}={describe_expr(value)}" for key, value in kwargs)
            return " ".join(parts)
    return None


class Compiler(
    ExpressionCompilationMixin,
    StatementCompilationMixin,
    ConstantCoalescingMixin,
):
    """Compile Coral AST to Python code objects.

    The Compiler transforms a validated Template AST into an `ast.Module`,
    then compiles it to a code object ready for `exec()`. The generated code
    defines `render(_scope)`, one `_partial_N(_scope)` per local partial and
    the `_local_partials` name → function mapping.

    The compiler never validates: callers run SecurityValidator first.

    Attributes:
        _strict_mode: Undefined names and paths raise instead of rendering blank
        _name: Template name for compile() and error messages
        _scope_var: Name of the local holding the innermost Scope
        _block_counter: Counter for unique variable names

    Node Dispatch:
        Uses O(1) dict lookup for node type → handler:
            ```python
            dispatch = {
                "Text": self._compile_text,
                "Interpolation": self._compile_interpolation,
                "Each": self._compile_each,
                ...
            }
            handler = dispatch[type(node).__name__]
            ```

    Line Tracking:
        For nodes that can cause runtime errors (Interpolation, Each, If,
        etc.), generates `_get_render_ctx().at(N, "expr")` before the node's code.
        RenderError and wrapped runtime errors read the line and expression
        back for diagnostics.

    Example:
            >>> from coral.compiler import Compiler
            >>> from coral.parser import parse
            >>> from coral.template.helpers import STATIC_NAMESPACE
            >>> from coral.template.scope import Scope
            >>>
            >>> code = Compiler().compile(parse("Hello, {{ name }}!"), name="greeting")
            >>> namespace = dict(STATIC_NAMESPACE)
            >>> exec(code, namespace)
            >>> namespace["render"](Scope.root({"name": "World"}))
            'Hello, World!'

    """

    __slots__ = (
        "_block_counter",
        "_name",
        "_node_dispatch",
        "_scope_var",
        "_strict_mode",
    )

    # Nodes that evaluate expressions and so can fail at render time
    _LINE_TRACKED_NODES = frozenset(
        {
            "Interpolation",
            "HelperCall",
            "If",
            "Unless",
            "Each",
            "With",
            "PartialRef",
            "Element",
        }
    )

    def __init__(self, *, strict_mode: bool = False):
        self._strict_mode = strict_mode
        self._name: str | None = None
        self._scope_var = _ROOT_SCOPE
        self._block_counter = 0

    def compile(
        self,
        node: TemplateNode,
        name: str | None = None,
        filename: str | None = None,
    ) -> types.CodeType:
        """Compile template AST to code object.

        Args:
            node: Root Template node (already validated)
            name: Template name for error messages
            filename: Source filename for tracebacks

        Returns:
            Compiled code object ready for exec()
        """
        self._name = name
        self._scope_var = _ROOT_SCOPE
        self._block_counter = 0

        module = self._compile_template(node)
        ast.fix_missing_locations(module)

        return compile(
            module,
            filename or name or "<template>",
            "exec",
        )

    def _next_name(self, prefix: str) -> str:
        """Unique local variable name: ``_each_3``, ``_scope_4``..."""
        self._block_counter += 1
        return f"{prefix}_{self._block_counter}"

    def _emit_output(self, value_expr: ast.expr) -> ast.stmt:
        """Generate output statement: ``_append(value)``.

        All output generation in compiled templates flows through this method.
        """
        return ast.Expr(
            value=ast.Call(
                func=ast.Name(id="_append", ctx=ast.Load()),
                args=[value_expr],
                keywords=[],
            ),
        )

    def _compile_template(self, node: TemplateNode) -> ast.Module:
        """Generate the Python module for one template.

        Local partials are hoisted to module-level functions regardless of
        where they are defined, so a partial can reference itself or any
        partial defined before the reference.
        """
        module_body: list[ast.stmt] = []
        partials: dict[str, str] = {}

        for index, child in enumerate(n for n in iter_nodes(node) if isinstance(n, PartialDef)):
            func_name = f"_partial_{index}"
            module_body.append(self._make_function(func_name, child.body))
            partials[child.name] = func_name

        # _local_partials = {'name': _partial_0, ...}
        module_body.append(
            ast.Assign(
                targets=[ast.Name(id="_local_partials", ctx=ast.Store())],
                value=ast.Dict(
                    keys=[ast.Constant(value=name) for name in partials],
                    values=[ast.Name(id=func, ctx=ast.Load()) for func in partials.values()],
                ),
            )
        )
        module_body.append(self._make_function("render", node.body))

        return ast.Module(body=module_body, type_ignores=[])

    def _make_function(self, func_name: str, nodes: Sequence[Node]) -> ast.FunctionDef:
        """Generate ``def func_name(_scope): ... return ''.join(buf)``."""
        saved_scope = self._scope_var
        self._scope_var = _ROOT_SCOPE

        body: list[ast.stmt] = [
            # buf = []
            ast.Assign(
                targets=[ast.Name(id="buf", ctx=ast.Store())],
                value=ast.List(elts=[], ctx=ast.Load()),
            ),
            # _append = buf.append (cache method lookup)
            ast.Assign(
                targets=[ast.Name(id="_append", ctx=ast.Store())],
                value=ast.Attribute(
                    value=ast.Name(id="buf", ctx=ast.Load()),
                    attr="append",
                    ctx=ast.Load(),
                ),
            ),
        ]
        body.extend(self._compile_body_with_coalescing(nodes))

        # return ''.join(buf)
        body.append(
            ast.Return(
                value=ast.Call(
                    func=ast.Attribute(
                        value=ast.Constant(value=""),
                        attr="join",
                        ctx=ast.Load(),
                    ),
                    args=[ast.Name(id="buf", ctx=ast.Load())],
                    keywords=[],
                ),
            )
        )
        self._scope_var = saved_scope

        return ast.FunctionDef(
            name=func_name,
            args=ast.arguments(
                posonlyargs=[],
                args=[ast.arg(arg=_ROOT_SCOPE)],
                vararg=None,
                kwonlyargs=[],
                kw_defaults=[],
                kwarg=None,
                defaults=[],
            ),
            body=body,
            decorator_list=[],
            returns=None,
        )

    def _make_line_marker(self, lineno: int, expression: str | None = None) -> ast.stmt:
        """Generate RenderContext location update for error tracking.

        Generates: _get_render_ctx().at(lineno, 'expression')
        """
        return ast.Expr(
            value=ast.Call(
                func=ast.Attribute(
                    value=ast.Call(
                        func=ast.Name(id="_get_render_ctx", ctx=ast.Load()),
                        args=[],
                        keywords=[],
                    ),
                    attr="at",
                    ctx=ast.Load(),
                ),
                args=[ast.Constant(value=lineno), ast.Constant(value=expression)],
                keywords=[],
            )
        )

    def _compile_node(self, node: Node) -> list[ast.stmt]:
        """Compile a single AST node to Python statements.

        Complexity: O(1) type dispatch using class name lookup.
        """
        node_type = type(node).__name__

        stmts: list[ast.stmt] = []
        if node_type in self._LINE_TRACKED_NODES and self._needs_line_marker(node):
            stmts.append(self._make_line_marker(node.lineno, _node_expression(node)))

        handler = self._get_node_dispatch().get(node_type)
        if handler is None:
            raise TypeError(f"Cannot compile node {node_type}")
        stmts.extend(handler(node))
        return stmts

    def _needs_line_marker(self, node: Node) -> bool:
        """Static elements cannot fail, so they get no marker."""
        if isinstance(node, Element):
            return not all(attr.is_static for attr in node.attributes)
        return True

    def _get_node_dispatch(self) -> dict[str, Callable[..., list[ast.stmt]]]:
        """Get node type dispatch table (cached on first call)."""
        if not hasattr(self, "_node_dispatch"):
            self._node_dispatch = {
                "Text": self._compile_text,
                "Interpolation": self._compile_interpolation,
                "HelperCall": self._compile_helper_call,
                "If": self._compile_if,
                "Unless": self._compile_unless,
                "Each": self._compile_each,
                "With": self._compile_with,
                "PartialDef": self._compile_partial_def,
                "PartialRef": self._compile_partial_ref,
                "Element": self._compile_element,
            }
        return self._node_dispatch
