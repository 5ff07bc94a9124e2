"""Coral Compiler: transforms Coral AST to Python code objects.

The compiler generates Python `ast.Module` objects directly (not source
strings), then compiles them with `compile()`. The resulting code object
defines `render(_scope)` plus one function per local partial, and is
executed once per CompiledTemplate.

Output uses the StringBuilder pattern: append to a list, ''.join() at the end.

"""

from coral.compiler.core import Compiler
from coral.compiler.expressions import describe_expr

__all__ = ["Compiler", "describe_expr"]
