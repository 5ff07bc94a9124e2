"""Coral AST node definitions.

Immutable, frozen dataclasses for the template syntax tree. The set of node
kinds is closed: ``AnyNode`` and ``AnyExpr`` list every variant, and the
compiler and validator dispatch over them exhaustively.

Categories:
    - **Base**: Node, Expr
    - **Output**: Text, Interpolation, HelperCall
    - **Control flow**: If, Unless, Each, With
    - **Structure**: Template, PartialDef, PartialRef
    - **Markup**: Element, Attribute, EventBinding
    - **Expressions**: Const, Name, Getattr, Getitem, MethodCall, FuncCall,
      BinOp, UnaryOp, Compare, BoolOp, CondExpr

"""

from coral.nodes.base import Node
from coral.nodes.control_flow import Each, If, Unless, With
from coral.nodes.expressions import (
    AnyExpr,
    BinOp,
    BoolOp,
    Compare,
    CondExpr,
    Const,
    Expr,
    FuncCall,
    Getattr,
    Getitem,
    MethodCall,
    Name,
    UnaryOp,
)
from coral.nodes.markup import Attribute, Element, EventBinding
from coral.nodes.output import HelperCall, Interpolation, Text
from coral.nodes.structure import PartialDef, PartialRef, Template

AnyNode = (
    Text
    | Interpolation
    | HelperCall
    | If
    | Unless
    | Each
    | With
    | PartialDef
    | PartialRef
    | Element
    | Attribute
    | EventBinding
    | Template
)

# Nodes that can appear in a block body
STATEMENT_TYPES: tuple[type[Node], ...] = (
    Text,
    Interpolation,
    HelperCall,
    If,
    Unless,
    Each,
    With,
    PartialDef,
    PartialRef,
    Element,
)

__all__ = [
    "AnyExpr",
    "AnyNode",
    "Attribute",
    "BinOp",
    "BoolOp",
    "Compare",
    "CondExpr",
    "Const",
    "Each",
    "Element",
    "EventBinding",
    "Expr",
    "FuncCall",
    "Getattr",
    "Getitem",
    "HelperCall",
    "If",
    "Interpolation",
    "MethodCall",
    "Name",
    "Node",
    "STATEMENT_TYPES",
    "PartialDef",
    "PartialRef",
    "Template",
    "Text",
    "UnaryOp",
    "Unless",
    "With",
]
