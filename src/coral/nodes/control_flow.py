"""Control flow nodes for the Coral AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from coral.nodes.base import Node
from coral.nodes.expressions import Expr


@dataclass(frozen=True, slots=True)
class If(Node):
    """Conditional: {{#if c}}...{{else if d}}...{{else}}...{{/if}}"""

    test: Expr
    body: Sequence[Node]
    elif_: Sequence[tuple[Expr, Sequence[Node]]] = ()
    else_: Sequence[Node] = ()


@dataclass(frozen=True, slots=True)
class Unless(Node):
    """Negated conditional: {{#unless c}}...{{else}}...{{/unless}}

    ``else if`` branches behave as in ``If``; only the first test is negated.
    """

    test: Expr
    body: Sequence[Node]
    elif_: Sequence[tuple[Expr, Sequence[Node]]] = ()
    else_: Sequence[Node] = ()


@dataclass(frozen=True, slots=True)
class Each(Node):
    """Iteration: {{#each item in items}}...{{else}}...{{/each}}

    ``rebase`` is True for the ``{{#each items}}`` shorthand, which also makes
    each element the current ``this``.
    """

    target: str
    iter: Expr
    body: Sequence[Node]
    else_: Sequence[Node] = ()
    rebase: bool = False


@dataclass(frozen=True, slots=True)
class With(Node):
    """Scope change: {{#with expr}}...{{/with}} or {{#with expr as name}}"""

    expr: Expr
    body: Sequence[Node]
    target: str | None = None
