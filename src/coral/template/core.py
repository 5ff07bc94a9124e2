"""Coral CompiledTemplate: compiled template object ready for rendering.

The CompiledTemplate wraps a compiled code object and provides the
``render()`` API. Templates are immutable and thread-safe for concurrent
rendering.

Architecture:
    ```
    CompiledTemplate
    ├── _env_ref: WeakRef[Environment]  # Prevents circular refs
    ├── _render_func: callable          # Extracted render(_scope) function
    ├── _local_partials: dict           # {{#partial}} name → function
    ├── source_hash, compiled_at        # Identity and age
    └── ast, name, source               # For introspection and errors
    ```

StringBuilder Pattern:
Generated code uses ``buf.append()`` + ``''.join(buf)``:
    ```python
    def render(_scope):
        buf = []
        _append = buf.append
        _append("Hello, ")
        _append(_escape(_scope.resolve("name")))
        return ''.join(buf)
    ```

Memory Safety:
Uses ``weakref.ref(env)`` to break potential cycles:
``CompiledTemplate → (weak) → Environment → cache → CompiledTemplate``

Thread-Safety:
- Templates are immutable after construction
- ``render()`` creates only local state (buf list, Scope frames)
- Per-render bookkeeping lives in a ContextVar (``coral.render_context``)

"""

from __future__ import annotations

import hashlib
import time
import weakref
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from coral.analysis.dependencies import TemplateDependencies, collect_dependencies
from coral.environment.exceptions import (
    ErrorCode,
    RenderError,
    TemplateError,
    UnknownHelperError,
    build_source_snippet,
)
from coral.render_context import (
    get_render_context_required,
    render_context,
    reset_render_context,
    set_render_context,
)
from coral.template.helpers import STATIC_NAMESPACE
from coral.template.methods import call_method
from coral.template.scope import Scope

if TYPE_CHECKING:
    import types
    from collections.abc import Callable

    from coral.environment.core import Environment
    from coral.nodes import Template as TemplateNode
    from coral.render_context import RenderContext


def source_hash(source: str) -> str:
    """SHA-256 hex digest identifying a template source."""
    return hashlib.sha256(source.encode("utf-8")).hexdigest()


class CompiledTemplate:
    """Compiled template ready for rendering.

    Created by ``Environment.compile()`` / ``get_or_compile()``; not meant to
    be constructed directly.

    Attributes:
        name: Template name (for error messages), or None for inline sources
        source: Template source text (None for a pre-parsed partial)
        source_hash: SHA-256 of the source
        compiled_at: ``time.time()`` when compilation finished
        ast: The validated Template node the code was generated from

    Example:
        >>> from coral import Environment
        >>> t = Environment().from_string("Hello, {{ name }}!")
        >>> t.render(name="World")
        'Hello, World!'
        >>> t.render({"name": "<b>"})
        'Hello, &lt;b&gt;!'
    """

    def __init__(
        self,
        env: Environment,
        code: types.CodeType,
        source: str | None,
        name: str | None = None,
        ast: TemplateNode | None = None,
    ):
        # Use weakref to prevent circular reference: Template <-> Environment
        self._env_ref: weakref.ref[Environment] = weakref.ref(env)
        self.name = name
        self.source = source
        # Partials registered as pre-parsed ASTs have no source text
        self.source_hash = source_hash(source if source is not None else repr(ast))
        self.ast = ast
        self._dependencies: TemplateDependencies | None = None

        env_ref = self._env_ref

        def _call_helper(
            helper_name: str,
            scope: Scope,
            args: tuple[Any, ...],
            kwargs: dict[str, Any] | None,
        ) -> Any:
            _env = env_ref()
            if _env is None:
                raise RuntimeError(
                    f"Environment has been garbage collected while calling helper '{helper_name}'"
                )
            helpers = _env.helpers
            entry = helpers.get(helper_name)
            if entry is None:
                raise UnknownHelperError(
                    helper_name,
                    available_helpers=frozenset(helpers),
                )
            return entry.invoke(args, kwargs, scope)

        def _render_partial(partial_name: str, scope: Scope) -> str:
            render_ctx = get_render_context_required()
            render_ctx.check_partial_depth(partial_name)

            owner: CompiledTemplate = self
            func = local_partials.get(partial_name)
            child_ctx: RenderContext
            if func is not None:
                child_ctx = render_ctx.child_context()
            else:
                _env = env_ref()
                if _env is None:
                    raise RuntimeError(
                        f"Environment has been garbage collected while rendering partial '{partial_name}'"
                    )
                owner = _env.get_partial(partial_name)
                func = owner._render_func
                child_ctx = render_ctx.child_context(f"partial:{partial_name}", owner.source)

            token = set_render_context(child_ctx)
            try:
                return func(scope)
            except RenderError as e:
                e.with_location(
                    child_ctx.template_name,
                    child_ctx.line,
                    child_ctx.source,
                    child_ctx.template_stack,
                    child_ctx.expression,
                )
                raise
            except TemplateError:
                raise
            except Exception as e:
                raise owner._enhance_error(e, child_ctx) from e
            finally:
                reset_render_context(token)

        # Start with shared static namespace (copied once, not constructed)
        namespace: dict[str, Any] = STATIC_NAMESPACE.copy()
        namespace.update(
            {
                "_call_helper": _call_helper,
                "_call_method": call_method,
                "_render_partial": _render_partial,
                "_get_render_ctx": get_render_context_required,
            }
        )
        exec(code, namespace)
        local_partials: dict[str, Callable[[Scope], str]] = namespace["_local_partials"]
        self._render_func: Callable[[Scope], str] = namespace["render"]
        self._local_partials = local_partials
        self.compiled_at = time.time()

    @property
    def _env(self) -> Environment:
        """Get the Environment (dereferences weak reference)."""
        env = self._env_ref()
        if env is None:
            raise RuntimeError(
                f"Environment has been garbage collected (template: {self.name or 'unknown'})"
            )
        return env

    @property
    def dependencies(self) -> TemplateDependencies:
        """Context paths, helpers and partials this template references.

        Computed on first access. Conservative: may over-report paths read
        inside rebased ``each``/``with`` bodies, never under-reports.
        """
        if self._dependencies is None:
            self._dependencies = (
                collect_dependencies(self.ast) if self.ast is not None else TemplateDependencies()
            )
        return self._dependencies

    @property
    def local_partials(self) -> frozenset[str]:
        """Names of partials defined with ``{{#partial}}`` in this template."""
        return frozenset(self._local_partials)

    def render(self, context: Any = None, **kwargs: Any) -> str:
        """Render template with given context.

        Args:
            context: Data context; usually a mapping, but any object works
                (names then resolve against its attributes)
            **kwargs: Context variables as keyword arguments, merged over a
                mapping ``context``

        Returns:
            Rendered template as string. On failure nothing is returned:
            the error propagates and no partial output escapes.

        Raises:
            RenderError: Unknown helper, type mismatch, strict-mode undefined
                value, helper failure or any other runtime failure

        Example:
            >>> t.render(name="World")
            'Hello, World!'
            >>> t.render({"name": "World"})
            'Hello, World!'
        """
        if kwargs:
            if context is None:
                data: Any = dict(kwargs)
            elif isinstance(context, Mapping):
                data = {**context, **kwargs}
            else:
                raise TypeError(
                    "render() keyword arguments can only be merged into a mapping context, "
                    f"got {type(context).__name__}"
                )
        else:
            data = context if context is not None else {}

        env = self._env_ref()
        max_depth = env.config.max_partial_depth if env is not None else 50

        with render_context(
            template_name=self.name,
            source=self.source,
            max_partial_depth=max_depth,
        ) as render_ctx:
            try:
                return self._render_func(Scope.root(data))
            except RenderError as e:
                e.with_location(
                    self.name,
                    render_ctx.line,
                    self.source,
                    expression=render_ctx.expression,
                )
                raise
            except TemplateError:
                raise
            except Exception as e:
                raise self._enhance_error(e, render_ctx) from e

    async def render_async(self, context: Any = None, **kwargs: Any) -> str:
        """Async wrapper for synchronous render.

        Runs the synchronous ``render()`` method in a thread pool to avoid
        blocking the event loop.
        """
        import asyncio

        return await asyncio.to_thread(self.render, context, **kwargs)

    def _enhance_error(
        self,
        error: Exception,
        render_ctx: RenderContext,
    ) -> RenderError:
        """Wrap a generic exception with template context from RenderContext.

        Converts generic Python exceptions into RenderError with template
        name, line number, and source snippet context.
        """
        lineno = render_ctx.line or None
        error_str = str(error).strip()

        # Handle empty error messages (e.g., bare exceptions)
        if not error_str:
            error_type = type(error).__name__
            non_empty = [str(a) for a in error.args if str(a).strip()]
            if non_empty:
                error_str = f"{error_type}: {', '.join(non_empty)}"
            else:
                error_str = f"{error_type} (no details available)"
        else:
            error_str = f"{type(error).__name__}: {error_str}"

        snippet = None
        source = render_ctx.source
        if source and lineno:
            snippet = build_source_snippet(source, lineno)

        return RenderError(
            error_str,
            kind=ErrorCode.RUNTIME_ERROR,
            template_name=render_ctx.template_name,
            lineno=lineno,
            source_snippet=snippet,
            template_stack=render_ctx.template_stack,
            expression=render_ctx.expression,
        )

    def __repr__(self) -> str:
        return f"<CompiledTemplate {self.name or '(inline)'} {self.source_hash[:12]}>"
