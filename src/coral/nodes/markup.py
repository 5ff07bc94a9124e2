"""HTML markup nodes for the Coral AST.

Tags are recognised inside template text so the validator can inspect them.
An Element is one tag (opening, closing or self-closing); it owns its
Attribute children, and each Attribute owns the Text/Interpolation/HelperCall
parts of its value.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from coral.nodes.base import Node
from coral.nodes.expressions import Expr
from coral.nodes.output import Text


@dataclass(frozen=True, slots=True)
class EventBinding(Node):
    """Structured event binding: on-attribute value ``{{bind handler arg*}}``.

    Renders as data attributes naming the handler; it never becomes an
    inline script.
    """

    handler: str
    args: Sequence[Expr] = ()


@dataclass(frozen=True, slots=True)
class Attribute(Node):
    """Tag attribute.

    Attributes:
        name: Attribute name as written
        parts: Value parts (Text, Interpolation, HelperCall); None for a
            bare boolean attribute such as ``disabled``
        binding: Event binding when the value is ``{{bind ...}}``
    """

    name: str
    parts: Sequence[Node] | None = None
    binding: EventBinding | None = None

    @property
    def is_static(self) -> bool:
        """True when the value has no dynamic parts."""
        if self.binding is not None:
            return False
        return all(isinstance(part, Text) for part in self.parts or ())


@dataclass(frozen=True, slots=True)
class Element(Node):
    """HTML tag: ``<a href="...">``, ``</a>`` or ``<br/>``"""

    tag: str
    attributes: Sequence[Attribute] = ()
    closing: bool = False
    self_closing: bool = False
