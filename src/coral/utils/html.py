"""HTML escaping and URL safety for Coral.

``html_escape`` is the single escaping primitive used by compiled templates.
It runs in one pass via ``str.translate()`` and escapes the five characters
that matter in both text and attribute-value context: ``& < > " '``.

``Markup`` marks helper output that is already safe HTML. Only helper results
are trusted this way; interpolated data is always escaped, whatever its type.
"""

from __future__ import annotations

import html
import re
from typing import Any

from coral.utils.constants import UNSAFE_URL_SCHEMES

_ESCAPE_TABLE = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#x27;",
    }
)

# Browsers ignore ASCII control characters and whitespace while parsing a
# URL scheme, so "java\tscript:" still runs.
_URL_IGNORED_RE = re.compile(r"[\x00-\x20\x7f]+")


class Markup(str):
    """A string that is safe to output without escaping.

    Returned by helpers that build HTML themselves. Interpolating a Markup
    value from a helper skips escaping; a Markup value that arrives through
    the data context is escaped like any other string.

    Example:
        >>> html_escape(Markup("<b>ok</b>"))
        '<b>ok</b>'
        >>> html_escape("<b>ok</b>")
        '&lt;b&gt;ok&lt;/b&gt;'
    """

    __slots__ = ()

    def __html__(self) -> str:
        return self

    def __repr__(self) -> str:
        return f"Markup({str.__repr__(self)})"


def escape_text(text: str) -> str:
    """Escape a plain str. O(n) single pass."""
    return text.translate(_ESCAPE_TABLE)


def html_escape(value: Any) -> str:
    """Escape a value for HTML output, honouring Markup.

    Non-string values must already be converted by the caller
    (see ``coral.template.helpers.str_safe``).
    """
    if isinstance(value, Markup):
        return str.__str__(value)
    return str(value).translate(_ESCAPE_TABLE)


def unescape(text: str) -> str:
    """Decode character references in static template text."""
    return html.unescape(text)


def url_scheme_is_unsafe(url: str) -> bool:
    """True when ``url`` starts with a scheme that executes or embeds content."""
    normalized = _URL_IGNORED_RE.sub("", unescape(url)).lower()
    return normalized.startswith(UNSAFE_URL_SCHEMES)


def is_safe_url(url: str) -> bool:
    """Check a URL for javascript:, vbscript: and data: schemes.

    Character references are decoded and ignored characters removed first,
    matching how a browser reads the attribute.

    Example:
        >>> is_safe_url("/profile?id=1")
        True
        >>> is_safe_url("JaVa&#x53;cript:alert(1)")
        False
    """
    return not url_scheme_is_unsafe(url)


def static_url_prefix_is_unsafe(prefix: str) -> bool:
    """Check the static leading text of a partly dynamic URL.

    A prefix decides the scheme only once it contains ``:`` before any of
    ``/ ? #``. A prefix like ``"/users/"`` cannot form an unsafe scheme
    whatever follows, while ``"java"`` can, so the latter is left to the
    runtime check.
    """
    normalized = _URL_IGNORED_RE.sub("", unescape(prefix)).lower()
    for ch in normalized:
        if ch in "/?#":
            return False
        if ch == ":":
            return normalized.startswith(UNSAFE_URL_SCHEMES)
    return False
