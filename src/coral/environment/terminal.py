"""ANSI colouring for diagnostics.

Colours are applied only when stdout is a TTY, unless ``FORCE_COLOR`` is
set. ``NO_COLOR`` (https://no-color.org/) turns them off.
"""

from __future__ import annotations

import os
import re
import sys

_RESET = "\033[0m"

# Diagnostic role -> ANSI sequence
_ROLES: dict[str, str] = {
    "code": "\033[91m\033[1m",
    "location": "\033[36m",
    "lineno": "\033[33m",
    "error": "\033[91m",
    "hint": "\033[32m",
    "suggestion": "\033[92m\033[1m",
    "dim": "\033[2m",
}

_ANSI_RE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


def _should_use_colors() -> bool:
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


_USE_COLORS = _should_use_colors()


def supports_color() -> bool:
    """True if diagnostics will be coloured."""
    return _USE_COLORS


def paint(text: str, role: str) -> str:
    """Wrap text in the colour for a diagnostic role (no-op without colours)."""
    if not _USE_COLORS:
        return text
    prefix = _ROLES.get(role)
    if prefix is None:
        return text
    return f"{prefix}{text}{_RESET}"


def strip_colors(text: str) -> str:
    """Remove ANSI escape sequences.

    Example:
        >>> strip_colors("\\033[31mError\\033[0m")
        'Error'
    """
    return _ANSI_RE.sub("", text)


def location(text: str) -> str:
    return paint(text, "location")


def hint(text: str) -> str:
    return paint(text, "hint")


def suggestion(text: str) -> str:
    return paint(text, "suggestion")


def dim_text(text: str) -> str:
    return paint(text, "dim")


def format_error_header(code: str | None, message: str) -> str:
    """``C-RUN-002: Unknown helper 'shout'`` with the code highlighted."""
    if code:
        return f"{paint(code, 'code')}: {message}"
    return message


def format_source_line(lineno: int, content: str, is_error: bool = False) -> str:
    """Format one numbered source line, marking the error line with ``>``."""
    marker = ">" if is_error else " "
    number = paint(f"{marker}{lineno:>3}", "lineno")
    body = paint(content, "error" if is_error else "dim")
    return f"{number} | {body}"
