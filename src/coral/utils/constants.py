"""Shared constants for Coral.

Tag and attribute allow-lists used by the security validator, plus the URL
scheme rules shared by the validator and the runtime URL check.
"""

from __future__ import annotations

# Tags that are rejected even when a caller adds them to allowed_tags
FORBIDDEN_TAGS: frozenset[str] = frozenset({"script"})

# Default tag allow-list: document structure, text-level semantics, lists,
# tables, forms and embedded media. Anything that loads or runs active
# content (script, style, iframe, object, embed, base, link, meta) is absent.
DEFAULT_ALLOWED_TAGS: frozenset[str] = frozenset(
    {
        # Sections
        "article",
        "aside",
        "footer",
        "header",
        "main",
        "nav",
        "section",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        # Grouping
        "blockquote",
        "dd",
        "div",
        "dl",
        "dt",
        "figcaption",
        "figure",
        "hr",
        "li",
        "ol",
        "p",
        "pre",
        "ul",
        # Text-level
        "a",
        "abbr",
        "b",
        "br",
        "cite",
        "code",
        "em",
        "i",
        "kbd",
        "mark",
        "q",
        "s",
        "small",
        "span",
        "strong",
        "sub",
        "sup",
        "time",
        "u",
        # Tables
        "caption",
        "col",
        "colgroup",
        "table",
        "tbody",
        "td",
        "tfoot",
        "th",
        "thead",
        "tr",
        # Forms
        "button",
        "fieldset",
        "form",
        "input",
        "label",
        "legend",
        "option",
        "optgroup",
        "select",
        "textarea",
        # Media
        "audio",
        "img",
        "picture",
        "source",
        "track",
        "video",
        # Interactive
        "details",
        "summary",
        "template",
    }
)

# Default attribute allow-list. data-* and aria-* are always accepted.
DEFAULT_ALLOWED_ATTRIBUTES: frozenset[str] = frozenset(
    {
        "action",
        "alt",
        "autocomplete",
        "checked",
        "cite",
        "class",
        "cols",
        "colspan",
        "controls",
        "datetime",
        "dir",
        "disabled",
        "for",
        "height",
        "hidden",
        "href",
        "id",
        "lang",
        "max",
        "maxlength",
        "method",
        "min",
        "minlength",
        "multiple",
        "name",
        "open",
        "pattern",
        "placeholder",
        "poster",
        "readonly",
        "rel",
        "required",
        "role",
        "rows",
        "rowspan",
        "selected",
        "size",
        "span",
        "src",
        "srcset",
        "step",
        "style",
        "tabindex",
        "target",
        "title",
        "type",
        "value",
        "width",
    }
)

# Attribute name prefixes that bypass the attribute allow-list
ALWAYS_ALLOWED_ATTRIBUTE_PREFIXES: tuple[str, ...] = ("data-", "aria-")

# Attributes whose values are navigated to or fetched by the browser
URL_ATTRIBUTES: frozenset[str] = frozenset(
    {"href", "src", "action", "formaction", "poster", "cite", "xlink:href"}
)

# URL schemes that execute or embed content
UNSAFE_URL_SCHEMES: tuple[str, ...] = ("javascript:", "vbscript:", "data:")

# Rendered in place of a runtime URL that failed the scheme check
UNSAFE_URL_REPLACEMENT = "about:invalid#coral-unsafe-url"

# Prefix of the attributes the structured event binding renders to
EVENT_BINDING_PREFIX = "data-coral-on-"
EVENT_ARGS_PREFIX = "data-coral-args-"

# Upper bound on the string a single repeat/padStart/padEnd/concat call may build
MAX_GENERATED_LENGTH = 1_000_000
