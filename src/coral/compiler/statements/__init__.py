"""Statement compilation for Coral compiler.

Provides mixins for compiling Coral statement AST nodes to Python AST statements.

The statements package is organized into logical modules:
- basic: Basic output (text, interpolation, helper call)
- control_flow: Control flow (if, unless, each)
- with_blocks: Scope rebasing and binding with ``{{#with}}``
- template_structure: Partial definitions and references
- markup: HTML tags, attributes and event bindings

Uses inline TYPE_CHECKING declarations for host attributes.

"""

from __future__ import annotations

from coral.compiler.statements.basic import BasicStatementMixin
from coral.compiler.statements.control_flow import ControlFlowMixin
from coral.compiler.statements.markup import MarkupCompilationMixin
from coral.compiler.statements.template_structure import TemplateStructureMixin
from coral.compiler.statements.with_blocks import WithBlockMixin


class StatementCompilationMixin(
    BasicStatementMixin,
    ControlFlowMixin,
    WithBlockMixin,
    TemplateStructureMixin,
    MarkupCompilationMixin,
):
    """Combined mixin for compiling all statement types.

    This class combines all statement compilation mixins into a single
    interface that can be inherited by the Compiler class.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks in each individual mixin.

    """
