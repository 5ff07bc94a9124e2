"""Coral template runtime.

- ``core``: CompiledTemplate, the render entry point
- ``scope``: the immutable scope chain used for name resolution
- ``helpers``: runtime functions injected into generated code
- ``methods``: the closed allow-list of ``expr.method()`` calls

"""

from coral.template.core import CompiledTemplate
from coral.template.helpers import UNDEFINED
from coral.template.methods import ALLOWED_METHODS
from coral.template.scope import Scope

__all__ = ["ALLOWED_METHODS", "UNDEFINED", "CompiledTemplate", "Scope"]
