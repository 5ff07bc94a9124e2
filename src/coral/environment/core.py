"""Core Environment class for Coral template system.

The Environment is the engine instance: it owns the configuration, the
helper and partial registries and both cache layers, and runs the compile
pipeline:

    source ─► tokenize ─► parse ─► validate ─► compile ─► CompiledTemplate
                                                               │
                         template cache (key: source) ◄────────┘
                         output cache   (key: source + context digest)

Several independently configured environments can live in one process;
nothing is module-global.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeVar

from coral.analysis.validator import SecurityValidator
from coral.compiler import Compiler
from coral.environment.config import EngineConfig
from coral.environment.exceptions import ErrorCode, RenderError
from coral.environment.helpers import DEFAULT_HELPERS
from coral.environment.registry import Arity, HelperEntry, HelperRegistry
from coral.lexer import tokenize
from coral.nodes import Node, Template
from coral.parser import Parser
from coral.template.core import CompiledTemplate
from coral.utils.lru_cache import LRUCache

if TYPE_CHECKING:
    from coral._types import Token

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _context_digest(context: Any) -> str | None:
    """SHA-256 of the canonical JSON form of a context, None if not JSON."""
    try:
        canonical = json.dumps(
            context,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=True,
        )
    except (TypeError, ValueError):
        return None
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class Environment:
    """Central configuration and template management hub.

    Args:
        config: Base configuration (default: ``EngineConfig()``)
        **options: Overrides applied on top of ``config``; snake_case or
            camelCase (``strict_mode=True`` or ``strictMode=True``)

    Attributes:
        helpers: Read-only view of this engine's helpers, built-ins included

    Thread-Safety:
        Compiled templates and registries are read-only snapshots during
        render. The caches serialise their own check/insert/evict steps and
        partial registration is lock-guarded, so one Environment can serve
        concurrent renders on many threads.

    Example:
        >>> env = Environment(strict_mode=False)
        >>> env.render("Hello {{ name }}", {"name": "World"})
        'Hello World'
        >>> env.register_helper("shout", lambda s: str(s).upper() + "!", arity=1)
        >>> env.render("{{~shout word}}", word="hey")
        'HEY!'
    """

    def __init__(self, config: EngineConfig | None = None, **options: Any):
        self._config = (config or EngineConfig()).with_options(**options)
        cfg = self._config

        self._helpers = HelperRegistry()
        for name, (func, arity) in DEFAULT_HELPERS.items():
            self._helpers.register(name, func, arity=arity)

        self._validator = SecurityValidator(
            allowed_tags=cfg.allowed_tags,
            allowed_attributes=cfg.allowed_attributes,
            raw_output_enabled=cfg.raw_output_enabled,
        )
        self._template_cache: LRUCache[str, CompiledTemplate] = LRUCache(
            cfg.cache_capacity, name="templates"
        )
        self._output_cache: LRUCache[tuple[str, str], str] = LRUCache(
            cfg.output_cache_capacity, name="output"
        )

        # name -> source text or pre-compiled template; copy-on-write
        self._partials: Mapping[str, str | CompiledTemplate] = MappingProxyType({})
        self._lock = threading.Lock()

    @property
    def config(self) -> EngineConfig:
        """The engine's (immutable) configuration."""
        return self._config

    @property
    def helpers(self) -> Mapping[str, HelperEntry]:
        """Registered helpers by name; register through ``register_helper``."""
        return self._helpers.snapshot()

    # =========================================================================
    # Pipeline stages
    # =========================================================================

    def tokenize(self, source: str, name: str | None = None) -> Iterator[Token]:
        """Lazily tokenize template source."""
        return tokenize(source, name)

    def parse(self, source: str, name: str | None = None) -> Template:
        """Tokenize and parse; partial references may name registered partials.

        Raises:
            LexError: Unterminated marker or bad character
            ParseError: Grammar violation or unknown partial
        """
        parser = Parser(
            tokenize(source, name),
            name=name,
            source=source,
            partials=frozenset(self._partials),
        )
        return parser.parse()

    def validate(self, node: Node, *, name: str | None = None, source: str | None = None) -> None:
        """Run the security validator over a parsed template.

        Raises:
            SecurityError: On the first unsafe construct
        """
        self._validator.validate(node, name=name, source=source)

    def compile(self, source: str, name: str | None = None) -> CompiledTemplate:
        """Run the full pipeline without touching the cache.

        Raises:
            LexError, ParseError, SecurityError: The template is rejected;
                nothing is cached
        """
        start = time.perf_counter()
        node = self.parse(source, name)
        self.validate(node, name=name, source=source)
        template = self._compile_node(node, source, name)
        logger.debug(
            "Compiled %s in %.2fms",
            name or "<template>",
            (time.perf_counter() - start) * 1000,
        )
        return template

    def _compile_node(
        self, node: Template, source: str | None, name: str | None
    ) -> CompiledTemplate:
        code = Compiler(strict_mode=self._config.strict_mode).compile(node, name=name)
        return CompiledTemplate(self, code, source, name=name, ast=node)

    # =========================================================================
    # Cached compilation and rendering
    # =========================================================================

    def get_or_compile(self, source: str, name: str | None = None) -> CompiledTemplate:
        """Compile through the template cache.

        The cache key is the source text alone. On a hit the cached template
        is returned (whatever name it was first compiled under) and its
        recency refreshed; on a miss the pipeline runs outside the cache
        lock, and if another thread cached the same source meanwhile, its
        template wins and this one is discarded.
        """
        return self._template_cache.get_or_set(source, lambda: self.compile(source, name))

    def from_string(self, source: str, name: str | None = None) -> CompiledTemplate:
        """Alias of ``get_or_compile``."""
        return self.get_or_compile(source, name)

    def render(self, source: str, context: Any = None, **kwargs: Any) -> str:
        """Compile (cached) and render in one call.

        With ``output_cache_capacity > 0`` the rendered string is memoised
        under ``(source, sha256(canonical JSON of the context))``. Contexts
        that cannot be serialised to JSON always render fresh.
        """
        template = self.get_or_compile(source)
        if self._output_cache.maxsize == 0:
            return template.render(context, **kwargs)

        data = {**(context or {}), **kwargs} if kwargs else context
        digest = _context_digest(data if data is not None else {})
        if digest is None:
            return template.render(data)

        key = (source, digest)
        cached = self._output_cache.get(key)
        if cached is not None:
            return cached
        output = template.render(data)
        self._output_cache.set(key, output)
        return output

    # =========================================================================
    # Helpers
    # =========================================================================

    def register_helper(
        self,
        name: str,
        func: Callable[..., Any],
        *,
        arity: Arity | int | tuple[int, int | None] | None = None,
        pass_context: bool = False,
        replace: bool = False,
    ) -> None:
        """Register a helper callable as ``{{~name ...}}`` or ``name(...)``.

        Args:
            name: Identifier; must be unused unless ``replace`` is True
            func: Pure function of its arguments
            arity: None (variadic), an int, a ``(min, max)`` tuple or Arity
            pass_context: Append the calling Scope as the last argument
            replace: Allow overriding an existing helper

        Helpers resolve at render time, so already-compiled templates see
        the new helper immediately. The output cache is cleared.
        """
        self._helpers.register(
            name, func, arity=arity, pass_context=pass_context, replace=replace
        )
        self._output_cache.clear()
        logger.debug("Registered helper %s", name)

    def helper(
        self,
        name: str | None = None,
        *,
        arity: Arity | int | tuple[int, int | None] | None = None,
        pass_context: bool = False,
        replace: bool = False,
    ) -> Callable[[F], F]:
        """Decorator form of ``register_helper``.

        Example:
            >>> @env.helper(arity=1)
            ... def money(value):
            ...     return f"${value:,.2f}"
        """

        def decorator(func: F) -> F:
            self.register_helper(
                name or func.__name__,
                func,
                arity=arity,
                pass_context=pass_context,
                replace=replace,
            )
            return func

        return decorator

    def get_helper(self, name: str) -> HelperEntry | None:
        return self._helpers.get(name)

    # =========================================================================
    # Partials
    # =========================================================================

    def register_partial(self, name: str, partial: str | Node) -> None:
        """Register a global partial, rendered with ``{{> name}}``.

        Args:
            name: Partial name; a later registration of the same name wins
            partial: Template source (compiled lazily through the template
                cache on first use), or a pre-parsed node (validated and
                compiled now)

        Raises:
            SecurityError: A pre-parsed node fails validation
        """
        if not isinstance(name, str) or not name:
            raise ValueError("Partial name must be a non-empty string")

        value: str | CompiledTemplate
        if isinstance(partial, str):
            value = partial
        elif isinstance(partial, Node):
            if isinstance(partial, Template):
                node = partial
            else:
                node = Template(lineno=1, col_offset=0, body=(partial,))
            template_name = f"partial:{name}"
            self.validate(node, name=template_name)
            value = self._compile_node(node, None, template_name)
        else:
            raise TypeError(
                f"Partial '{name}' must be template source or a parsed node, "
                f"got {type(partial).__name__}"
            )

        with self._lock:
            updated = dict(self._partials)
            updated[name] = value
            self._partials = MappingProxyType(updated)
        self._output_cache.clear()
        logger.debug("Registered partial %s", name)

    def get_partial(self, name: str) -> CompiledTemplate:
        """Compiled template for a registered partial.

        Raises:
            RenderError: UNKNOWN_PARTIAL when nothing is registered under name
        """
        value = self._partials.get(name)
        if value is None:
            raise RenderError(
                f"Partial '{name}' is not registered",
                kind=ErrorCode.UNKNOWN_PARTIAL,
                name=name,
                suggestion="Register it with env.register_partial() before rendering",
            )
        if isinstance(value, CompiledTemplate):
            return value
        return self.get_or_compile(value, f"partial:{name}")

    @property
    def partial_names(self) -> frozenset[str]:
        return frozenset(self._partials)

    # =========================================================================
    # Cache management
    # =========================================================================

    def cache_info(self) -> dict[str, dict[str, Any]]:
        """Hit/miss/eviction/discard counters, size and capacity per cache.

        Example:
            >>> env.cache_info()["templates"]["size"]
            3
        """
        return {
            "templates": self._template_cache.stats(),
            "output": self._output_cache.stats(),
        }

    def clear_cache(self) -> None:
        """Empty both cache layers and reset their counters."""
        self._template_cache.clear()
        self._output_cache.clear()

    def __repr__(self) -> str:
        return (
            f"<Environment strict_mode={self._config.strict_mode} "
            f"templates={len(self._template_cache)}/{self._template_cache.maxsize}>"
        )
