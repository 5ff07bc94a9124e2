"""Dependency analysis for template introspection.

Extracts the context paths, helpers and partials a template may use.
Produces a conservative superset: may include unused paths but never
excludes paths that are actually used.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from coral.analysis.visitor import visit_children
from coral.nodes import Const, Getattr, Getitem, Name

if TYPE_CHECKING:
    from coral.nodes import (
        Each,
        FuncCall,
        HelperCall,
        Node,
        PartialDef,
        PartialRef,
        With,
    )

# Names that never come from the data context
_SCOPE_NAMES = frozenset({"this"})


@dataclass(frozen=True, slots=True)
class TemplateDependencies:
    """What a compiled template reads.

    Attributes:
        paths: Dotted context paths (``user.name``, ``items``)
        helpers: Helper names called through ``{{~name}}`` or ``name(...)``
        partials: Partial names referenced with ``{{> name}}``
        local_partials: Partials defined in the template itself
    """

    paths: frozenset[str] = frozenset()
    helpers: frozenset[str] = frozenset()
    partials: frozenset[str] = frozenset()
    local_partials: frozenset[str] = frozenset()

    @property
    def external_partials(self) -> frozenset[str]:
        """Referenced partials that must be registered on the engine."""
        return self.partials - self.local_partials


class DependencyWalker:
    """Collect context dependencies from a Coral AST.

    Walks the AST and collects all context paths (e.g., "user.name",
    "items") an expression or block may access.

    Thread-safe: Creates new state for each analyze() call.

    Scope Handling:
        - ``each item in items`` excludes ``item`` inside its body
        - ``with x as y`` excludes ``y`` inside its body
        - ``@index``-style data variables are never dependencies
        - Names inside ``{{#each items}}``/``{{#with x}}`` rebased bodies may
          come from the element; they are still reported as paths

    Example:
        >>> from coral.parser import parse
        >>> deps = DependencyWalker().analyze(parse("{{#each p in posts}}{{ p.title }}{{/each}}"))
        >>> sorted(deps.paths)
        ['posts']
    """

    def __init__(self) -> None:
        self._scope_stack: list[set[str]] = []
        self._paths: set[str] = set()
        self._helpers: set[str] = set()
        self._partials: set[str] = set()
        self._local_partials: set[str] = set()
        self._dispatch: dict[str, Callable[..., None]] = {}
        for name in dir(self):
            if name.startswith("_visit_"):
                method = getattr(self, name)
                if callable(method):
                    self._dispatch[name[7:]] = method

    def analyze(self, node: Node) -> TemplateDependencies:
        """Analyze a node and return everything it depends on."""
        self._scope_stack = [set()]
        self._paths = set()
        self._helpers = set()
        self._partials = set()
        self._local_partials = set()
        self._visit(node)
        return TemplateDependencies(
            paths=frozenset(self._paths),
            helpers=frozenset(self._helpers),
            partials=frozenset(self._partials),
            local_partials=frozenset(self._local_partials),
        )

    def _visit(self, node: Node) -> None:
        handler = self._dispatch.get(type(node).__name__.lower())
        if handler:
            handler(node)
        else:
            visit_children(node, self._visit)

    def _is_local(self, name: str) -> bool:
        return any(name in scope for scope in self._scope_stack)

    def _add_name(self, name: str) -> None:
        if name.startswith("@") or name in _SCOPE_NAMES or self._is_local(name):
            return
        self._paths.add(name)

    def _build_path(self, node: Node) -> str | None:
        """Dotted path for a static chain of Name/Getattr/constant Getitem."""
        parts: list[str] = []
        current = node
        while True:
            if isinstance(current, Getattr):
                parts.append(current.attr)
                current = current.obj
            elif isinstance(current, Getitem) and isinstance(current.key, Const):
                parts.append(str(current.key.value))
                current = current.obj
            elif isinstance(current, Name):
                parts.append(current.name)
                break
            else:
                return None
        parts.reverse()
        root = parts[0]
        if root == "@root":
            parts = parts[1:]
            if not parts:
                return None
        elif root.startswith("@") or root in _SCOPE_NAMES or self._is_local(root):
            return None
        return ".".join(parts)

    def _visit_name(self, node: Name) -> None:
        self._add_name(node.name)

    def _visit_getattr(self, node: Getattr) -> None:
        path = self._build_path(node)
        if path:
            self._paths.add(path)
        else:
            self._visit(node.obj)

    def _visit_getitem(self, node: Getitem) -> None:
        if isinstance(node.key, Const):
            path = self._build_path(node)
            if path:
                self._paths.add(path)
                return
        self._visit(node.obj)
        self._visit(node.key)

    def _visit_each(self, node: Each) -> None:
        self._visit(node.iter)
        bound = {node.target, "@index", "@first", "@last", "@key"}
        self._scope_stack.append(bound)
        for child in node.body:
            self._visit(child)
        self._scope_stack.pop()
        for child in node.else_:
            self._visit(child)

    def _visit_with(self, node: With) -> None:
        self._visit(node.expr)
        self._scope_stack.append({node.target} if node.target else set())
        for child in node.body:
            self._visit(child)
        self._scope_stack.pop()

    def _visit_helpercall(self, node: HelperCall) -> None:
        self._helpers.add(node.name)
        visit_children(node, self._visit)

    def _visit_funccall(self, node: FuncCall) -> None:
        self._helpers.add(node.name)
        visit_children(node, self._visit)

    def _visit_partialref(self, node: PartialRef) -> None:
        self._partials.add(node.name)
        visit_children(node, self._visit)

    def _visit_partialdef(self, node: PartialDef) -> None:
        self._local_partials.add(node.name)
        # Partials see whatever scope they are rendered with
        self._scope_stack.append(set())
        for child in node.body:
            self._visit(child)
        self._scope_stack.pop()


def collect_dependencies(node: Node) -> TemplateDependencies:
    """Convenience wrapper around DependencyWalker."""
    return DependencyWalker().analyze(node)
