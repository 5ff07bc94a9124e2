"""Static analysis over the Coral AST.

- ``visitor``: generic child traversal shared by every pass
- ``validator``: the security pass run before code generation
- ``dependencies``: paths, helpers and partials a template uses

"""

from coral.analysis.dependencies import (
    DependencyWalker,
    TemplateDependencies,
    collect_dependencies,
)
from coral.analysis.validator import SecurityValidator
from coral.analysis.visitor import iter_nodes, visit_children

__all__ = [
    "DependencyWalker",
    "SecurityValidator",
    "TemplateDependencies",
    "collect_dependencies",
    "iter_nodes",
    "visit_children",
]
