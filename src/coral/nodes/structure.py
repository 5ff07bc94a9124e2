"""Template structure nodes for the Coral AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from coral.nodes.base import Node
from coral.nodes.expressions import Expr


@dataclass(frozen=True, slots=True)
class Template(Node):
    """Root node of a parsed template."""

    body: Sequence[Node]


@dataclass(frozen=True, slots=True)
class PartialDef(Node):
    """Local partial: {{#partial name}}...{{/partial}}. Renders nothing."""

    name: str
    body: Sequence[Node]


@dataclass(frozen=True, slots=True)
class PartialRef(Node):
    """Partial reference: {{> name [context] [key=value]*}}"""

    name: str
    context: Expr | None = None
    hash: Sequence[tuple[str, Expr]] = ()
