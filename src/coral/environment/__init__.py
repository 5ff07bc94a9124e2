"""Coral environment: the engine instance and its collaborators.

- ``core``: Environment, the pipeline and cache owner
- ``config``: EngineConfig
- ``registry``: HelperRegistry, HelperEntry, Arity
- ``helpers``: built-in helpers
- ``exceptions``: the error hierarchy and error codes
- ``terminal``: ANSI colouring for diagnostics

"""

# Exceptions first: modules imported by core import them by submodule path
from coral.environment.exceptions import (
    CompileError,
    ErrorCode,
    LexError,
    ParseError,
    RenderError,
    SecurityError,
    TemplateError,
    UndefinedError,
    UnknownHelperError,
)
from coral.environment.config import EngineConfig
from coral.environment.core import Environment
from coral.environment.registry import Arity, HelperEntry, HelperRegistry

__all__ = [
    "Arity",
    "CompileError",
    "EngineConfig",
    "Environment",
    "ErrorCode",
    "HelperEntry",
    "HelperRegistry",
    "LexError",
    "ParseError",
    "RenderError",
    "SecurityError",
    "TemplateError",
    "UndefinedError",
    "UnknownHelperError",
]
