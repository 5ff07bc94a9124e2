"""Coral RenderContext: per-render state isolated from user data.

Internal render state (template name, current line, partial depth, the
partial call stack) lives in a ContextVar rather than in the data context,
so templates can use any variable names and concurrent renders on separate
threads or tasks never share it.

Generated code updates the current line before each statement that can
fail, so runtime errors point at the template line that raised them.

"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field


@dataclass
class RenderContext:
    """Per-render state isolated from user context.

    Thread Safety:
        ContextVars are thread-local by design. Each thread/async task
        has its own RenderContext instance.

    Attributes:
        template_name: Current template name for error messages
        source: Template source for runtime error snippets
        line: Current line number (updated during render by generated code)
        expression: Template expression being evaluated at ``line`` (if any)
        partial_depth: Current partial nesting depth (recursion guard)
        max_partial_depth: Maximum allowed partial depth
        template_stack: Stack of (template_name, line) for error traces
    """

    template_name: str | None = None
    source: str | None = None
    line: int = 0
    expression: str | None = None

    # 50 is deep enough for real component trees while catching runaway
    # recursion from a partial that renders itself without a base case.
    partial_depth: int = 0
    max_partial_depth: int = 50

    template_stack: list[tuple[str, int]] = field(default_factory=list)

    def at(self, line: int, expression: str | None = None) -> None:
        """Record the line and expression about to be evaluated."""
        self.line = line
        self.expression = expression

    def check_partial_depth(self, partial_name: str) -> None:
        """Raise RenderError when rendering one more partial would exceed the limit."""
        if self.partial_depth >= self.max_partial_depth:
            from coral.environment.exceptions import ErrorCode, RenderError

            raise RenderError(
                f"Maximum partial depth exceeded ({self.max_partial_depth}) "
                f"when rendering partial '{partial_name}'",
                kind=ErrorCode.PARTIAL_DEPTH,
                name=partial_name,
                suggestion="Check for a partial that renders itself without a stopping condition",
            )

    def child_context(
        self, template_name: str | None = None, source: str | None = None
    ) -> RenderContext:
        """Create the context for a partial with incremented depth.

        Appends the current location to ``template_stack`` for error traces.
        A local partial keeps the parent's source; a global partial brings
        its own.
        """
        new_stack = self.template_stack.copy()
        if self.template_name and self.line > 0:
            new_stack.append((self.template_name, self.line))

        return RenderContext(
            template_name=template_name or self.template_name,
            source=source if source is not None else self.source,
            line=0,
            partial_depth=self.partial_depth + 1,
            max_partial_depth=self.max_partial_depth,
            template_stack=new_stack,
        )


# Module-level ContextVar
_render_context: ContextVar[RenderContext | None] = ContextVar(
    "coral_render_context",
    default=None,
)


def get_render_context() -> RenderContext | None:
    """Get current render context (None if not in render)."""
    return _render_context.get()


def get_render_context_required() -> RenderContext:
    """Get current render context, raise if not in render.

    Used by generated code for line tracking.

    Raises:
        RuntimeError: If not in a render context
    """
    ctx = _render_context.get()
    if ctx is None:
        raise RuntimeError("Not in a render context")
    return ctx


@contextmanager
def render_context(
    template_name: str | None = None,
    source: str | None = None,
    max_partial_depth: int = 50,
) -> Iterator[RenderContext]:
    """Context manager for render-scoped state.

    Creates a new RenderContext and sets it as the current context for the
    duration of the with block, restoring the previous one on exit.

    Example:
        with render_context(template_name="card") as ctx:
            html = template._render_func(scope)
            # ctx.line updated during render for error tracking
    """
    ctx = RenderContext(
        template_name=template_name,
        source=source,
        max_partial_depth=max_partial_depth,
    )
    token: Token[RenderContext | None] = _render_context.set(ctx)
    try:
        yield ctx
    finally:
        _render_context.reset(token)


def set_render_context(ctx: RenderContext) -> Token[RenderContext | None]:
    """Set a RenderContext and return the reset token.

    Low-level function for partial rendering, which swaps in a child
    context and restores the parent afterwards.
    """
    return _render_context.set(ctx)


def reset_render_context(token: Token[RenderContext | None]) -> None:
    """Reset render context using a token from set_render_context."""
    _render_context.reset(token)
