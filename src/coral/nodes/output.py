"""Output nodes for the Coral AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from coral.nodes.base import Node
from coral.nodes.expressions import Expr


@dataclass(frozen=True, slots=True)
class Text(Node):
    """Literal template text between markers."""

    value: str


@dataclass(frozen=True, slots=True)
class Interpolation(Node):
    """Output expression: ``{{ expr }}``, or ``{{{ expr }}}`` when raw.

    ``raw`` is fixed at parse time; nothing in the data can change it.
    """

    expr: Expr
    raw: bool = False


@dataclass(frozen=True, slots=True)
class HelperCall(Node):
    """Helper output: ``{{~name arg key=value}}``"""

    name: str
    args: Sequence[Expr] = ()
    kwargs: Sequence[tuple[str, Expr]] = ()
    raw: bool = False
