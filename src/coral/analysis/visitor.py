"""Shared visitor patterns for Coral AST analysis.

Provides the child attribute lists and ``visit_children`` for generic AST
traversal. Used by the SecurityValidator, DependencyWalker and the compiler's
partial collection.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from coral.nodes import Node

# Shared attr lists for generic child traversal
CONTAINER_ATTRS = ("body", "elif_", "else_")
EXPR_ATTRS = (
    "test",
    "expr",
    "iter",
    "left",
    "right",
    "operand",
    "obj",
    "key",
    "if_true",
    "if_false",
    "context",
    "binding",
)
SEQUENCE_ATTRS = ("args", "values", "attributes", "parts")
PAIR_ATTRS = ("kwargs", "hash")


def visit_children(node: Node, visit: Callable[[Node], None]) -> None:
    """Visit all child nodes of a Coral AST node in document order.

    Handles container attrs (body, elif_, else_), expression attrs,
    sequence attrs and ``(name, expr)`` pair attrs (kwargs, hash).
    """
    # Expression attributes come first: a test is evaluated before its body
    for attr in EXPR_ATTRS:
        child = getattr(node, attr, None)
        if child is not None and hasattr(child, "lineno"):
            visit(child)

    # Sequence attributes
    for attr in SEQUENCE_ATTRS:
        children = getattr(node, attr, None)
        if children:
            for child in children:
                visit(child)

    for attr in PAIR_ATTRS:
        pairs = getattr(node, attr, None)
        if pairs:
            for _name, value in pairs:
                visit(value)

    # Container attributes
    for attr in CONTAINER_ATTRS:
        children = getattr(node, attr, None)
        if not children:
            continue
        for child in children:
            if isinstance(child, tuple):
                test, body = child
                visit(test)
                for b in body:
                    visit(b)
            else:
                visit(child)


def iter_nodes(node: Node) -> Iterator[Node]:
    """Yield ``node`` and every descendant, depth-first in document order."""
    stack: list[Node] = [node]
    while stack:
        current = stack.pop()
        yield current
        children: list[Node] = []
        visit_children(current, children.append)
        stack.extend(reversed(children))
