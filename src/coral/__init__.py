"""Coral: a safe, compiled template engine for HTML.

Coral turns Handlebars-style templates into Python functions once and
renders them many times. All output is HTML-escaped unless a template asks
for raw output with ``{{{ }}}``, a decision made at parse time.

Quickstart:
    >>> from coral import Environment
    >>> env = Environment()
    >>> env.render("Hello, {{ name }}!", {"name": "World"})
    'Hello, World!'
    >>> env.render("{{~uppercase a}}", a="hi")
    'HI'

Architecture:
Template Source → Lexer → Parser → Coral AST → Validator → Compiler → Python AST → exec()

Pipeline stages:
1. **Lexer**: Lazily tokenizes template source
2. **Parser**: Builds an immutable Coral AST from tokens
3. **Validator**: One total pass rejecting unsafe tags, attributes and URLs
4. **Compiler**: Transforms the Coral AST into an ``ast.Module``
5. **CompiledTemplate**: Wraps the compiled code with the ``render()`` interface

Caching:
Each Environment owns two LRU caches: compiled templates keyed by source,
and (optionally) rendered output keyed by source plus a context digest.
Nothing is process-global; independent engines can coexist.

Thread-Safety:
- Compiled templates are immutable; ``render()`` uses only local state
- Helper and partial registries are copy-on-write
- Caches serialise their check/insert/evict steps under a lock

"""

# Environment first: it fixes the import order of its submodules
from coral.environment import (
    Arity,
    CompileError,
    EngineConfig,
    Environment,
    ErrorCode,
    HelperEntry,
    HelperRegistry,
    LexError,
    ParseError,
    RenderError,
    SecurityError,
    TemplateError,
    UndefinedError,
    UnknownHelperError,
)
from coral._types import Token, TokenType
from coral.analysis import SecurityValidator
from coral.compiler import Compiler
from coral.lexer import Lexer, tokenize
from coral.parser import Parser, parse
from coral.template import CompiledTemplate, Scope
from coral.utils import LRUCache, Markup, html_escape, is_safe_url

__version__ = "0.1.0"

__all__ = [
    "Arity",
    "CompileError",
    "CompiledTemplate",
    "Compiler",
    "EngineConfig",
    "Environment",
    "ErrorCode",
    "HelperEntry",
    "HelperRegistry",
    "LRUCache",
    "LexError",
    "Lexer",
    "Markup",
    "ParseError",
    "Parser",
    "RenderError",
    "Scope",
    "SecurityError",
    "SecurityValidator",
    "TemplateError",
    "Token",
    "TokenType",
    "UndefinedError",
    "UnknownHelperError",
    "__version__",
    "html_escape",
    "is_safe_url",
    "tokenize",
]
