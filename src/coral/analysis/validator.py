"""Security validation for parsed Coral templates.

One complete walk over the AST after parsing and before code generation.
The first unsafe construct raises ``SecurityError``; a template that fails
validation is never compiled, cached or rendered.

Rules:
    ===================================  ====================  ===========
    Construct                            Rejected when         Code
    ===================================  ====================  ===========
    ``<tag>``                            script, or not in     C-SEC-001
                                         allowed_tags
    ``name="..."``                       not in                C-SEC-002
                                         allowed_attributes
                                         (data-*, aria-* ok)
    ``onclick="..."``                    value is not          C-SEC-003
                                         ``{{bind ...}}``
    ``href="javascript:..."``            constant unsafe       C-SEC-004
                                         scheme or prefix
    ``{{{ x }}}`` / ``{{{~h}}}``          raw output disabled   C-SEC-005
    raw marker in an attribute value     always                C-SEC-006
    ===================================  ====================  ===========

Dynamic URL values cannot be judged here; they are re-checked at render
time by ``coral.template.helpers.url_attr``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from coral.analysis.visitor import visit_children
from coral.environment.exceptions import ErrorCode, SecurityError
from coral.nodes import Attribute, Element, HelperCall, Interpolation, Text
from coral.utils.constants import (
    ALWAYS_ALLOWED_ATTRIBUTE_PREFIXES,
    DEFAULT_ALLOWED_ATTRIBUTES,
    DEFAULT_ALLOWED_TAGS,
    EVENT_ARGS_PREFIX,
    EVENT_BINDING_PREFIX,
    FORBIDDEN_TAGS,
    URL_ATTRIBUTES,
)
from coral.utils.html import is_safe_url, static_url_prefix_is_unsafe

if TYPE_CHECKING:
    from coral.nodes import Node


def describe_attribute(attr: Attribute) -> str:
    """Short source-like rendering of an attribute for error messages."""
    if attr.binding is not None:
        return f'{attr.name}="{{{{bind {attr.binding.handler}}}}}"'
    if attr.parts is None:
        return attr.name
    value = "".join(part.value if isinstance(part, Text) else "{{...}}" for part in attr.parts)
    if len(value) > 40:
        value = value[:37] + "..."
    return f'{attr.name}="{value}"'


class SecurityValidator:
    """Reject structurally unsafe templates before code generation.

    Stateless between calls and safe to share across threads.

    Args:
        allowed_tags: Tag names accepted (case-insensitive); ``script`` is
            rejected even when listed
        allowed_attributes: Attribute names accepted besides ``data-*``,
            ``aria-*`` and bound ``on*`` events
        raw_output_enabled: Whether ``{{{ }}}`` markers are accepted

    Example:
        >>> from coral.parser import parse
        >>> SecurityValidator().validate(parse("<p>{{ x }}</p>"))
        >>> SecurityValidator().validate(parse("<script></script>"))
        Traceback (most recent call last):
        ...
        coral.environment.exceptions.SecurityError: ...
    """

    __slots__ = ("_allowed_attributes", "_allowed_tags", "_raw_output_enabled")

    def __init__(
        self,
        allowed_tags: Iterable[str] | None = None,
        allowed_attributes: Iterable[str] | None = None,
        raw_output_enabled: bool = True,
    ):
        self._allowed_tags = (
            DEFAULT_ALLOWED_TAGS
            if allowed_tags is None
            else frozenset(tag.lower() for tag in allowed_tags)
        )
        self._allowed_attributes = (
            DEFAULT_ALLOWED_ATTRIBUTES
            if allowed_attributes is None
            else frozenset(attr.lower() for attr in allowed_attributes)
        )
        self._raw_output_enabled = raw_output_enabled

    def validate(self, node: Node, *, name: str | None = None, source: str | None = None) -> None:
        """Walk ``node`` completely; raise on the first unsafe construct.

        Args:
            node: Template root (or any subtree, e.g. a registered partial)
            name: Template name for error messages
            source: Template source for error snippets

        Raises:
            SecurityError: With ``kind`` set to the violated rule
        """
        _ValidationPass(self, name, source).visit(node)


class _ValidationPass:
    """State of one validate() call."""

    __slots__ = ("_config", "_name", "_source")

    def __init__(self, config: SecurityValidator, name: str | None, source: str | None):
        self._config = config
        self._name = name
        self._source = source

    def _reject(
        self,
        message: str,
        node: Node,
        kind: ErrorCode,
        description: str,
        suggestion: str | None = None,
    ) -> SecurityError:
        return SecurityError(
            message,
            node,
            kind=kind,
            node_description=description,
            name=self._name,
            source=self._source,
            suggestion=suggestion,
        )

    def visit(self, node: Node) -> None:
        match node:
            case Element():
                self._check_element(node)
            case Interpolation(raw=True) | HelperCall(raw=True):
                if not self._config._raw_output_enabled:
                    raise self._reject(
                        "Raw output is disabled for this engine",
                        node,
                        ErrorCode.RAW_OUTPUT_DISABLED,
                        "{{{ ... }}}",
                        suggestion="Use {{ ... }} so the value is escaped",
                    )
        visit_children(node, self.visit)

    def _check_element(self, element: Element) -> None:
        tag = element.tag.lower()
        shown = f"</{element.tag}>" if element.closing else f"<{element.tag}>"
        if tag in FORBIDDEN_TAGS:
            raise self._reject(
                f"{shown} tags are not allowed in templates",
                element,
                ErrorCode.DISALLOWED_TAG,
                shown,
                suggestion="Load scripts from the page, not from template markup",
            )
        if tag not in self._config._allowed_tags:
            raise self._reject(
                f"Tag {shown} is not in the allowed tag list",
                element,
                ErrorCode.DISALLOWED_TAG,
                shown,
                suggestion="Add it to allowed_tags if it is safe for this application",
            )
        for attr in element.attributes:
            self._check_attribute(element, attr)

    def _check_attribute(self, element: Element, attr: Attribute) -> None:
        name = attr.name.lower()
        description = f"<{element.tag} {describe_attribute(attr)}>"

        if name.startswith("on"):
            if attr.binding is None:
                raise self._reject(
                    f"Inline event handler '{attr.name}' on <{element.tag}> is not allowed",
                    attr,
                    ErrorCode.INLINE_EVENT_HANDLER,
                    description,
                    suggestion=f'Bind a handler instead: {attr.name}="{{{{bind handlerName}}}}"',
                )
            return

        if name.startswith((EVENT_BINDING_PREFIX, EVENT_ARGS_PREFIX)):
            raise self._reject(
                f"Attribute '{attr.name}' is reserved for event bindings",
                attr,
                ErrorCode.DISALLOWED_ATTRIBUTE,
                description,
                suggestion="Use an on* attribute with {{bind ...}}",
            )
        if name not in self._config._allowed_attributes and not name.startswith(
            ALWAYS_ALLOWED_ATTRIBUTE_PREFIXES
        ):
            raise self._reject(
                f"Attribute '{attr.name}' on <{element.tag}> is not in the allowed attribute list",
                attr,
                ErrorCode.DISALLOWED_ATTRIBUTE,
                description,
                suggestion="Add it to allowed_attributes, or use a data-* attribute",
            )

        for part in attr.parts or ():
            if isinstance(part, (Interpolation, HelperCall)) and part.raw:
                raise self._reject(
                    f"Raw output is not allowed inside attribute '{attr.name}'",
                    part,
                    ErrorCode.RAW_IN_ATTRIBUTE,
                    description,
                    suggestion="Attribute values are always escaped; use {{ ... }}",
                )

        if name in URL_ATTRIBUTES and attr.parts:
            self._check_url(element, attr, description)

    def _check_url(self, element: Element, attr: Attribute, description: str) -> None:
        parts = attr.parts or ()
        prefix: list[str] = []
        for part in parts:
            if not isinstance(part, Text):
                break
            prefix.append(part.value)
        text = "".join(prefix)
        if attr.is_static:
            unsafe = not is_safe_url(text)
        else:
            unsafe = static_url_prefix_is_unsafe(text)
        if unsafe:
            raise self._reject(
                f"Unsafe URL scheme in '{attr.name}' of <{element.tag}>",
                attr,
                ErrorCode.UNSAFE_URL,
                description,
                suggestion="javascript:, vbscript: and data: URLs are not allowed",
            )
