"""Expression compilation for the Coral compiler.

Every expression compiles to a call into the runtime helpers of
``coral.template.helpers`` rather than to raw Python operators, so data of
any type goes through the same checks:

    ==================  ==========================================
    Template            Generated Python
    ==================  ==========================================
    ``user``            ``_scope.resolve('user')``
    ``user.name``       ``_getattr(_scope.resolve('user'), 'name')``
    ``items.[0]``       ``_getitem(..., 0)``
    ``a + b``           ``_add(a, b)``
    ``a * b``           ``_arith('*', a, b)``
    ``a === b``         ``_strict_eq(a, b)``
    ``a < b``           ``_compare('<', a, b)``
    ``s.trim()``        ``_call_method(s, 'trim', ())``
    ``fmt(x, d=2)``     ``_call_helper('fmt', _scope, (x,), {'d': 2})``
    ==================  ==========================================

In strict mode, names and path steps use the ``*_strict`` variants, which
raise UndefinedError with the dotted path instead of yielding UNDEFINED.
"""

from __future__ import annotations

import ast
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from coral.nodes import (
    BinOp,
    BoolOp,
    Compare,
    CondExpr,
    Const,
    FuncCall,
    Getattr,
    Getitem,
    MethodCall,
    Name,
    UnaryOp,
)

if TYPE_CHECKING:
    from coral.nodes import Expr

_EQUALITY = {
    "==": ("_loose_eq", False),
    "!=": ("_loose_eq", True),
    "===": ("_strict_eq", False),
    "!==": ("_strict_eq", True),
}


def describe_expr(node: Any) -> str:
    """Render an expression back to template syntax (for error messages).

    Example:
        >>> from coral.parser import parse
        >>> describe_expr(parse("{{ a.b[c] + 1 }}").body[0].expr)
        'a.b[c] + 1'
    """
    match node:
        case Const(value=str() as value):
            return repr(value)
        case Const(value=True):
            return "true"
        case Const(value=False):
            return "false"
        case Const(value=None):
            return "null"
        case Const(value=value):
            return str(value)
        case Name(name=name):
            return name
        case Getattr(obj=obj, attr=attr):
            return f"{describe_expr(obj)}.{attr}"
        case Getitem(obj=obj, key=Const(value=int() as index)):
            return f"{describe_expr(obj)}.[{index}]"
        case Getitem(obj=obj, key=key):
            return f"{describe_expr(obj)}[{describe_expr(key)}]"
        case MethodCall(obj=obj, method=method, args=args):
            inner = ", ".join(describe_expr(a) for a in args)
            return f"{describe_expr(obj)}.{method}({inner})"
        case FuncCall(name=name, args=args, kwargs=kwargs):
            inner = [describe_expr(a) for a in args]
            inner.extend(f"{k}={describe_expr(v)}" for k, v in kwargs)
            return f"{name}({', '.join(inner)})"
        case BinOp(op=op, left=left, right=right) | Compare(op=op, left=left, right=right):
            return f"{describe_expr(left)} {op} {describe_expr(right)}"
        case UnaryOp(op="not", operand=operand):
            return f"!{describe_expr(operand)}"
        case UnaryOp(op=op, operand=operand):
            return f"{op}{describe_expr(operand)}"
        case BoolOp(op=op, values=values):
            joiner = " && " if op == "and" else " || "
            return joiner.join(describe_expr(v) for v in values)
        case CondExpr(test=test, if_true=if_true, if_false=if_false):
            return f"{describe_expr(test)} ? {describe_expr(if_true)} : {describe_expr(if_false)}"
    return f"<{type(node).__name__}>"


class ExpressionCompilationMixin:
    """Compile Coral expression nodes to Python ``ast.expr``.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        _strict_mode: bool
        _scope_var: str

    # ─────────────────────────────────────────────────────────────────────────
    # AST construction shortcuts
    # ─────────────────────────────────────────────────────────────────────────

    @staticmethod
    def _load(name: str) -> ast.Name:
        return ast.Name(id=name, ctx=ast.Load())

    @staticmethod
    def _store(name: str) -> ast.Name:
        return ast.Name(id=name, ctx=ast.Store())

    def _call(self, func: str | ast.expr, *args: ast.expr) -> ast.Call:
        target = self._load(func) if isinstance(func, str) else func
        return ast.Call(func=target, args=list(args), keywords=[])

    def _scope_expr(self) -> ast.Name:
        return self._load(self._scope_var)

    # ─────────────────────────────────────────────────────────────────────────
    # Expressions
    # ─────────────────────────────────────────────────────────────────────────

    def _compile_expr(self, node: Expr) -> ast.expr:
        """Compile one expression node."""
        match node:
            case Const(value=value):
                return ast.Constant(value=value)

            case Name(name=name):
                if self._strict_mode and name not in ("this", "@root"):
                    return self._call("_lookup_strict", self._scope_expr(), ast.Constant(value=name))
                return self._call(
                    ast.Attribute(value=self._scope_expr(), attr="resolve", ctx=ast.Load()),
                    ast.Constant(value=name),
                )

            case Getattr(obj=obj, attr=attr):
                if self._strict_mode:
                    return self._call(
                        "_getattr_strict",
                        self._compile_expr(obj),
                        ast.Constant(value=attr),
                        ast.Constant(value=describe_expr(node)),
                    )
                return self._call("_getattr", self._compile_expr(obj), ast.Constant(value=attr))

            case Getitem(obj=obj, key=key):
                if self._strict_mode:
                    return self._call(
                        "_getitem_strict",
                        self._compile_expr(obj),
                        self._compile_expr(key),
                        ast.Constant(value=describe_expr(node)),
                    )
                return self._call("_getitem", self._compile_expr(obj), self._compile_expr(key))

            case MethodCall(obj=obj, method=method, args=args):
                return self._call(
                    "_call_method",
                    self._compile_expr(obj),
                    ast.Constant(value=method),
                    self._compile_tuple(args),
                )

            case FuncCall(name=name, args=args, kwargs=kwargs):
                return self._compile_helper_invocation(name, args, kwargs)

            case BinOp(op="+", left=left, right=right):
                return self._call("_add", self._compile_expr(left), self._compile_expr(right))

            case BinOp(op=op, left=left, right=right):
                return self._call(
                    "_arith",
                    ast.Constant(value=op),
                    self._compile_expr(left),
                    self._compile_expr(right),
                )

            case UnaryOp(op="not", operand=operand):
                return ast.UnaryOp(op=ast.Not(), operand=self._compile_expr(operand))

            case UnaryOp(op=op, operand=operand):
                return self._call("_negate", ast.Constant(value=op), self._compile_expr(operand))

            case Compare(op=op, left=left, right=right):
                return self._compile_compare(op, left, right)

            case BoolOp(op=op, values=values):
                return ast.BoolOp(
                    op=ast.And() if op == "and" else ast.Or(),
                    values=[self._compile_expr(v) for v in values],
                )

            case CondExpr(test=test, if_true=if_true, if_false=if_false):
                return ast.IfExp(
                    test=self._compile_expr(test),
                    body=self._compile_expr(if_true),
                    orelse=self._compile_expr(if_false),
                )

        raise TypeError(f"Cannot compile expression node {type(node).__name__}")

    def _compile_compare(self, op: str, left: Expr, right: Expr) -> ast.expr:
        if op in _EQUALITY:
            func, negate = _EQUALITY[op]
            call = self._call(func, self._compile_expr(left), self._compile_expr(right))
            return ast.UnaryOp(op=ast.Not(), operand=call) if negate else call
        return self._call(
            "_compare",
            ast.Constant(value=op),
            self._compile_expr(left),
            self._compile_expr(right),
        )

    def _compile_tuple(self, items: Sequence[Expr]) -> ast.Tuple:
        return ast.Tuple(elts=[self._compile_expr(item) for item in items], ctx=ast.Load())

    def _compile_kwargs(self, kwargs: Sequence[tuple[str, Expr]]) -> ast.expr:
        if not kwargs:
            return ast.Constant(value=None)
        return ast.Dict(
            keys=[ast.Constant(value=key) for key, _ in kwargs],
            values=[self._compile_expr(value) for _, value in kwargs],
        )

    def _compile_helper_invocation(
        self,
        name: str,
        args: Sequence[Expr],
        kwargs: Sequence[tuple[str, Expr]],
    ) -> ast.Call:
        """``_call_helper(name, scope, (args...), {kwargs} | None)``"""
        return self._call(
            "_call_helper",
            ast.Constant(value=name),
            self._scope_expr(),
            self._compile_tuple(args),
            self._compile_kwargs(kwargs),
        )
