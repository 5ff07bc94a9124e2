"""Expression nodes for the Coral AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from coral.nodes.base import Node


@dataclass(frozen=True, slots=True)
class Expr(Node):
    """Base class for expressions."""


@dataclass(frozen=True, slots=True)
class Const(Expr):
    """Literal: string, number, true/false, null, undefined."""

    value: str | int | float | bool | None


@dataclass(frozen=True, slots=True)
class Name(Expr):
    """Scope lookup: ``user``, ``this``, ``@index``, ``@root``."""

    name: str


@dataclass(frozen=True, slots=True)
class Getattr(Expr):
    """Attribute access: ``obj.attr``"""

    obj: Expr
    attr: str


@dataclass(frozen=True, slots=True)
class Getitem(Expr):
    """Subscript access: ``obj[key]`` or ``obj.[0]``"""

    obj: Expr
    key: Expr


@dataclass(frozen=True, slots=True)
class MethodCall(Expr):
    """Allow-listed method call: ``title.toUpperCase()``"""

    obj: Expr
    method: str
    args: Sequence[Expr] = ()


@dataclass(frozen=True, slots=True)
class FuncCall(Expr):
    """Helper call inside an expression: ``uppercase(name)``"""

    name: str
    args: Sequence[Expr] = ()
    kwargs: Sequence[tuple[str, Expr]] = ()


@dataclass(frozen=True, slots=True)
class BinOp(Expr):
    """Arithmetic: ``left op right`` with op in ``+ - * / %``"""

    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True, slots=True)
class UnaryOp(Expr):
    """Unary operation: ``!x``, ``-x``, ``+x``"""

    op: str
    operand: Expr


@dataclass(frozen=True, slots=True)
class Compare(Expr):
    """Comparison: ``left op right`` with op in ``== != === !== < <= > >=``"""

    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True, slots=True)
class BoolOp(Expr):
    """Short-circuit logic: ``a && b``, ``a || b``"""

    op: Literal["and", "or"]
    values: Sequence[Expr]


@dataclass(frozen=True, slots=True)
class CondExpr(Expr):
    """Ternary: ``test ? if_true : if_false``"""

    test: Expr
    if_true: Expr
    if_false: Expr


AnyExpr = (
    Const
    | Name
    | Getattr
    | Getitem
    | MethodCall
    | FuncCall
    | BinOp
    | UnaryOp
    | Compare
    | BoolOp
    | CondExpr
)
