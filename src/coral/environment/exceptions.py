"""Exceptions for the Coral template engine.

Exception Hierarchy:
TemplateError (base)
├── CompileError              # Template rejected; never cached or rendered
│   ├── LexError              # Unterminated marker, bad character
│   ├── ParseError            # Grammar violation, undefined partial
│   └── SecurityError         # Disallowed tag/attribute, unsafe URL
└── RenderError               # One render call failed; template stays cached
    ├── UndefinedError        # Missing value in strict mode
    └── UnknownHelperError    # Helper name not registered

Every error carries a searchable ``ErrorCode`` (``C-{LEX,PAR,SEC,RUN}-nnn``),
also exposed as ``kind``. When the template source is known, messages include
a Rust-style snippet with the offending line:

    ```
    C-RUN-002: Unknown helper 'shuot'. Did you mean 'shout'?
      Location: card.html:3
       |
       2 | <div class="card">
    >  3 |   {{~shuot title}}
       |
    ```

"""

from __future__ import annotations

from dataclasses import dataclass
from difflib import get_close_matches
from enum import Enum
from typing import TYPE_CHECKING, Any

from coral.environment import terminal

if TYPE_CHECKING:
    from coral.nodes import Node

# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------


class ErrorCode(Enum):
    """Searchable error codes.

    Format: C-{CATEGORY}-{NUMBER}
    Categories: LEX (lexer), PAR (parser), SEC (security validator),
    RUN (render time)
    """

    # Lexer errors (C-LEX-xxx)
    UNCLOSED_MARKER = "C-LEX-001"
    UNCLOSED_COMMENT = "C-LEX-002"
    UNCLOSED_STRING = "C-LEX-003"
    UNEXPECTED_CHARACTER = "C-LEX-004"

    # Parser errors (C-PAR-xxx)
    UNEXPECTED_TOKEN = "C-PAR-001"
    UNCLOSED_BLOCK = "C-PAR-002"
    INVALID_EXPRESSION = "C-PAR-003"
    UNMATCHED_END = "C-PAR-004"
    MISPLACED_ELSE = "C-PAR-005"
    UNDEFINED_PARTIAL = "C-PAR-006"
    METHOD_NOT_ALLOWED = "C-PAR-007"
    MALFORMED_TAG = "C-PAR-008"

    # Security validator errors (C-SEC-xxx)
    DISALLOWED_TAG = "C-SEC-001"
    DISALLOWED_ATTRIBUTE = "C-SEC-002"
    INLINE_EVENT_HANDLER = "C-SEC-003"
    UNSAFE_URL = "C-SEC-004"
    RAW_OUTPUT_DISABLED = "C-SEC-005"
    RAW_IN_ATTRIBUTE = "C-SEC-006"

    # Render errors (C-RUN-xxx)
    UNDEFINED_VALUE = "C-RUN-001"
    UNKNOWN_HELPER = "C-RUN-002"
    TYPE_MISMATCH = "C-RUN-003"
    HELPER_FAILED = "C-RUN-004"
    ARITY_MISMATCH = "C-RUN-005"
    PARTIAL_DEPTH = "C-RUN-006"
    UNKNOWN_PARTIAL = "C-RUN-007"
    RUNTIME_ERROR = "C-RUN-008"

    @property
    def category(self) -> str:
        """Error category ('lexer', 'parser', 'security' or 'runtime')."""
        prefix = self.value.split("-")[1]
        return {
            "LEX": "lexer",
            "PAR": "parser",
            "SEC": "security",
            "RUN": "runtime",
        }.get(prefix, "unknown")


# ---------------------------------------------------------------------------
# Source snippets
# ---------------------------------------------------------------------------


def format_template_stack(stack: list[tuple[str, int]] | None) -> str:
    """Format the partial call chain for error messages.

    Example:
        >>> print(format_template_stack([("page.html", 4), ("partial:card", 2)]))
        Template stack:
          • page.html:4
          • partial:card:2
    """
    if not stack:
        return ""
    lines = [terminal.dim_text("Template stack:")]
    for template_name, line_num in stack:
        lines.append(f"  • {terminal.location(f'{template_name}:{line_num}')}")
    return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Template source lines around an error.

    Attributes:
        lines: (line_number, line_content) pairs around the error
        error_line: 1-based line where the error occurred
        column: Optional 0-based column for the caret
    """

    lines: tuple[tuple[int, str], ...]
    error_line: int
    column: int | None = None

    def format(self) -> str:
        parts: list[str] = [terminal.dim_text("   |")]
        for lineno, content in self.lines:
            parts.append(
                terminal.format_source_line(lineno, content, is_error=lineno == self.error_line)
            )
            if lineno == self.error_line and self.column is not None:
                caret = " " * self.column + "^"
                parts.append(f"{terminal.dim_text('     |')} {terminal.paint(caret, 'error')}")
        parts.append(terminal.dim_text("   |"))
        return "\n".join(parts)


def build_source_snippet(
    source: str,
    error_line: int,
    *,
    context_lines: int = 2,
    column: int | None = None,
) -> SourceSnippet | None:
    """Build a SourceSnippet, or None when the line is outside the source."""
    all_lines = source.splitlines()
    if not 0 < error_line <= len(all_lines):
        return None
    start = max(0, error_line - 1 - context_lines)
    end = min(len(all_lines), error_line + context_lines)
    lines = tuple((i + 1, all_lines[i]) for i in range(start, end))
    return SourceSnippet(lines=lines, error_line=error_line, column=column)


def _location(name: str | None, lineno: int | None, col_offset: int | None = None) -> str:
    loc = name or "<template>"
    if lineno:
        loc += f":{lineno}"
        if col_offset is not None:
            loc += f":{col_offset}"
    return loc


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class TemplateError(Exception):
    """Base exception for all Coral template errors.

        >>> try:
        ...     env.render(source, context)
        ... except TemplateError as e:
        ...     log.error(e.format_compact())

    Attributes:
        code: ErrorCode identifying the failure
    """

    code: ErrorCode | None = None

    @property
    def kind(self) -> ErrorCode | None:
        """Alias of ``code``: what went wrong, as a stable enum value."""
        return self.code

    def format_compact(self) -> str:
        """One-screen diagnostic without Python traceback noise."""
        header = str(self).split("\n", 1)[0]
        if self.code and self.code.value not in header:
            header = f"{self.code.value}: {header}"
        return header


class CompileError(TemplateError):
    """Template was rejected while lexing, parsing or validating.

    A template that raises CompileError is never cached and never rendered.

    Attributes:
        message: Error description without location
        lineno: 1-based line (None if unknown)
        col_offset: 0-based column (None if unknown)
        name: Template name
        source: Template source, used for the snippet
        suggestion: Actionable hint
    """

    code: ErrorCode | None = ErrorCode.UNEXPECTED_TOKEN
    _label = "Compile Error"

    def __init__(
        self,
        message: str,
        lineno: int | None = None,
        col_offset: int | None = None,
        *,
        name: str | None = None,
        source: str | None = None,
        suggestion: str | None = None,
        code: ErrorCode | None = None,
    ):
        self.message = message
        self.lineno = lineno
        self.col_offset = col_offset
        self.name = name
        self.source = source
        self.suggestion = suggestion
        if code is not None:
            self.code = code
        super().__init__(self._format_message())

    @property
    def line(self) -> int | None:
        return self.lineno

    @property
    def column(self) -> int | None:
        return self.col_offset

    def _snippet(self) -> SourceSnippet | None:
        if self.source and self.lineno:
            return build_source_snippet(
                self.source, self.lineno, context_lines=0, column=self.col_offset
            )
        return None

    def _format_message(self) -> str:
        header = f"{self._label}: {self.message}\n  --> {_location(self.name, self.lineno, self.col_offset)}"
        snippet = self._snippet()
        if snippet:
            header += "\n" + snippet.format()
        if self.suggestion:
            header += f"\n  {terminal.hint('Suggestion:')} {self.suggestion}"
        return header

    def format_compact(self) -> str:
        parts = [
            terminal.format_error_header(self.code.value if self.code else None, self.message),
            f"  --> {terminal.location(_location(self.name, self.lineno, self.col_offset))}",
        ]
        snippet = self._snippet()
        if snippet:
            parts.append(snippet.format())
        if self.suggestion:
            parts.append(f"  {terminal.hint('Hint:')} {self.suggestion}")
        return "\n".join(parts)


class LexError(CompileError):
    """Malformed marker in template source.

    Raised for ``{{`` without a matching ``}}``, unterminated comments and
    strings, and characters that cannot start any token.

    Attributes:
        offset: 0-based index of the offending position in the source
    """

    code: ErrorCode | None = ErrorCode.UNCLOSED_MARKER
    _label = "Lex Error"

    def __init__(self, message: str, lineno: int, col_offset: int, offset: int = 0, **kwargs: Any):
        self.offset = offset
        super().__init__(message, lineno, col_offset, **kwargs)


class ParseError(CompileError):
    """Grammar violation found by the parser.

    Covers unmatched ``{{/...}}``, misplaced ``{{else}}``, malformed
    expressions, references to partials that are neither defined earlier in
    the template nor registered, and disallowed method calls.
    """

    code: ErrorCode | None = ErrorCode.UNEXPECTED_TOKEN
    _label = "Parse Error"


class SecurityError(CompileError):
    """The validator rejected an unsafe construct.

    Attributes:
        node: Offending AST node
        node_description: Human-readable description (``<script>``, ``onclick="..."``)
    """

    code: ErrorCode | None = ErrorCode.DISALLOWED_TAG
    _label = "Security Error"

    def __init__(
        self,
        message: str,
        node: Node,
        *,
        kind: ErrorCode,
        node_description: str | None = None,
        name: str | None = None,
        source: str | None = None,
        suggestion: str | None = None,
    ):
        self.node = node
        self.node_description = node_description or type(node).__name__
        super().__init__(
            message,
            node.lineno,
            node.col_offset,
            name=name,
            source=source,
            suggestion=suggestion,
            code=kind,
        )


class RenderError(TemplateError):
    """A single render call failed.

    The compiled template is unaffected and stays cached; other contexts can
    still render it. No partial output is ever returned.

    Attributes:
        message: Error description
        name: Helper, value or partial name involved (if any)
        expression: Template expression that failed
        template_name: Template being rendered
        lineno: Line in the template source
        suggestion: Actionable fix
        source_snippet: Lines around the failure
        template_stack: (template_name, line) chain through partials
    """

    code: ErrorCode | None = ErrorCode.RUNTIME_ERROR

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorCode | None = None,
        name: str | None = None,
        expression: str | None = None,
        template_name: str | None = None,
        lineno: int | None = None,
        suggestion: str | None = None,
        source_snippet: SourceSnippet | None = None,
        template_stack: list[tuple[str, int]] | None = None,
    ):
        if kind is not None:
            self.code = kind
        self.message = message
        self.name = name
        self.expression = expression
        self.template_name = template_name
        self.lineno = lineno
        self.suggestion = suggestion
        self.source_snippet = source_snippet
        self.template_stack = template_stack or []
        super().__init__(self._format_message())

    def with_location(
        self,
        template_name: str | None,
        lineno: int | None,
        source: str | None,
        template_stack: list[tuple[str, int]] | None = None,
        expression: str | None = None,
    ) -> RenderError:
        """Fill in location fields raised without them, in place.

        Runtime helpers raise before they know where they were called from;
        the template attaches its name, current line and snippet on the way
        out.
        """
        if self.template_name is None:
            self.template_name = template_name
        if self.lineno is None and lineno:
            self.lineno = lineno
        if self.source_snippet is None and source and self.lineno:
            self.source_snippet = build_source_snippet(source, self.lineno)
        if not self.template_stack and template_stack:
            self.template_stack = list(template_stack)
        if self.expression is None and expression:
            self.expression = expression
        self.args = (self._format_message(),)
        return self

    def _headline(self) -> str:
        return self.message

    def _format_message(self) -> str:
        parts = [f"Render Error: {self._headline()}"]
        if self.template_name or self.lineno:
            parts.append(f"  Location: {terminal.location(_location(self.template_name, self.lineno))}")
        if self.source_snippet:
            parts.append(self.source_snippet.format())
        if self.template_stack:
            parts.append(format_template_stack(self.template_stack))
        if self.expression:
            parts.append(f"  Expression: {self.expression}")
        if self.suggestion:
            parts.append(f"  {terminal.hint('Suggestion:')} {self.suggestion}")
        return "\n".join(parts)

    def format_compact(self) -> str:
        parts = [
            terminal.format_error_header(self.code.value if self.code else None, self._headline()),
            f"  Location: {terminal.location(_location(self.template_name, self.lineno))}",
        ]
        if self.source_snippet:
            parts.append(self.source_snippet.format())
        if self.template_stack:
            parts.append(format_template_stack(self.template_stack))
        if self.expression:
            parts.append(f"  Expression: {self.expression}")
        if self.suggestion:
            parts.append(f"  {terminal.hint('Hint:')} {self.suggestion}")
        return "\n".join(parts)


class _NameSuggestionMixin:
    """Adds a "Did you mean?" hint using difflib close matches."""

    name: str | None
    _available: frozenset[str]

    def _did_you_mean(self) -> str:
        if not self._available or not self.name:
            return ""
        # Dotted paths are matched on their last step
        last_step = self.name.rsplit(".", 1)[-1]
        matches = get_close_matches(last_step, sorted(self._available), n=1, cutoff=0.6)
        if matches:
            return f". Did you mean '{terminal.suggestion(matches[0])}'?"
        return ""


class UndefinedError(_NameSuggestionMixin, RenderError):
    """A path resolved to nothing while ``strict_mode`` is on.

    Example:
        >>> Environment(strict_mode=True).render("{{ titl }}", {"title": "x"})
        UndefinedError: Undefined value 'titl'. Did you mean 'title'?
    """

    code: ErrorCode | None = ErrorCode.UNDEFINED_VALUE

    def __init__(
        self,
        name: str,
        *,
        available_names: frozenset[str] | None = None,
        **kwargs: Any,
    ):
        self._available = available_names or frozenset()
        kwargs.setdefault(
            "suggestion",
            f"Pass '{name}' in the context, or guard it with {{{{#if {name}}}}}",
        )
        super().__init__(f"Undefined value '{name}'", name=name, **kwargs)

    def _headline(self) -> str:
        return self.message + self._did_you_mean()


class UnknownHelperError(_NameSuggestionMixin, RenderError):
    """A helper call names a helper that is not registered on the engine."""

    code: ErrorCode | None = ErrorCode.UNKNOWN_HELPER

    def __init__(
        self,
        name: str,
        *,
        available_helpers: frozenset[str] | None = None,
        **kwargs: Any,
    ):
        self._available = available_helpers or frozenset()
        kwargs.setdefault("suggestion", "Register it with env.register_helper() before rendering")
        super().__init__(f"Unknown helper '{name}'", name=name, **kwargs)

    def _headline(self) -> str:
        return self.message + self._did_you_mean()
