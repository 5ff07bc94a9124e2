"""Scope chain for template name resolution.

A Scope is an immutable chain of frames, innermost first. Each frame holds
explicit bindings (``item``, ``@index``, ``with ... as`` names, partial hash
arguments) and optionally a data object that unqualified names fall back to
(the render context at the root, the current element inside
``{{#each items}}``, the value inside ``{{#with value}}``).

``push`` and ``rebase`` return new scopes, so a block's frame disappears
when its generated code returns: nothing is popped, nothing can leak.

    {{#each users}}{{ name }} of {{ @root.team }}{{/each}}

    frame 2  bindings {item, @index, @first, @last, @key}  data = user
    frame 1  bindings {}                                   data = context

``name`` resolves in frame 2's data, ``@root`` is frame 1's data.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from coral.template.helpers import UNDEFINED, get_attr

_NO_DATA: Any = object()


class Scope:
    """One frame of the scope chain.

    Attributes:
        bindings: Names bound by this frame
        parent: Enclosing frame, or None at the root

    Example:
        >>> scope = Scope.root({"user": {"name": "Ada"}})
        >>> inner = scope.rebase({"name": "Bob"}).push({"@index": 0})
        >>> inner.resolve("name"), inner.resolve("@index"), inner.root_data["user"]["name"]
        ('Bob', 0, 'Ada')
    """

    __slots__ = ("_data", "_root", "bindings", "parent")

    def __init__(
        self,
        bindings: Mapping[str, Any] | None = None,
        data: Any = _NO_DATA,
        parent: Scope | None = None,
    ):
        self.bindings: Mapping[str, Any] = bindings or {}
        self._data = data
        self.parent = parent
        self._root: Any = parent._root if parent is not None else data

    @classmethod
    def root(cls, context: Mapping[str, Any] | None = None) -> Scope:
        """Root scope over the render context."""
        return cls(data=context if context is not None else {})

    def push(self, bindings: Mapping[str, Any]) -> Scope:
        """New innermost frame with explicit bindings."""
        return Scope(bindings, parent=self)

    def rebase(self, value: Any, bindings: Mapping[str, Any] | None = None) -> Scope:
        """New innermost frame whose data is ``value`` (it becomes ``this``)."""
        return Scope(bindings, data=value, parent=self)

    @property
    def this(self) -> Any:
        """Innermost data object."""
        scope: Scope | None = self
        while scope is not None:
            if scope._data is not _NO_DATA:
                return scope._data
            scope = scope.parent
        return UNDEFINED

    @property
    def root_data(self) -> Any:
        """The render context (``@root``)."""
        return self._root

    def resolve(self, name: str) -> Any:
        """Resolve an unqualified name innermost-first; UNDEFINED when absent."""
        if name == "this":
            return self.this
        if name == "@root":
            return self._root
        scope: Scope | None = self
        while scope is not None:
            bindings = scope.bindings
            if name in bindings:
                return bindings[name]
            data = scope._data
            if data is not _NO_DATA and not name.startswith("@"):
                value = _resolve_in(data, name)
                if value is not UNDEFINED:
                    return value
            scope = scope.parent
        return UNDEFINED

    def names(self) -> frozenset[str]:
        """All names visible from this frame (for "did you mean" hints)."""
        found: set[str] = {"this", "@root"}
        scope: Scope | None = self
        while scope is not None:
            found.update(scope.bindings)
            if isinstance(scope._data, Mapping):
                found.update(k for k in scope._data if isinstance(k, str))
            scope = scope.parent
        return frozenset(found)

    def depth(self) -> int:
        count = 0
        scope: Scope | None = self
        while scope is not None:
            count += 1
            scope = scope.parent
        return count

    def __repr__(self) -> str:
        return f"<Scope depth={self.depth()} bindings={sorted(self.bindings)}>"


def _resolve_in(data: Any, name: str) -> Any:
    if isinstance(data, Mapping):
        try:
            return data[name]
        except KeyError:
            return UNDEFINED
    if data is None or isinstance(data, (str, int, float, bool, list, tuple)):
        # Scalars and sequences have no named fields to fall back to
        return UNDEFINED
    return get_attr(data, name)
