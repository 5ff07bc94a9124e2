"""Pure runtime helper functions injected into the template namespace.

These functions are called by compiled template code at render time.
None of them close over Environment state; they use only their parameters
and the per-render RenderContext.

Value model:
    Template data is plain Python (mappings, sequences, scalars, objects).
    A path that resolves to nothing yields ``UNDEFINED``, which renders as
    an empty string, is falsy, and absorbs further path steps. In strict
    mode the ``*_strict`` variants raise ``UndefinedError`` instead.

Thread-Safety:
All functions are stateless and safe for concurrent use.

"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from typing import Any

from coral.environment.exceptions import ErrorCode, RenderError, UndefinedError
from coral.render_context import get_render_context
from coral.utils.constants import UNSAFE_URL_REPLACEMENT
from coral.utils.html import Markup, escape_text, html_escape, is_safe_url, unescape

logger = logging.getLogger(__name__)


class _Undefined:
    """Sentinel for a path that resolved to nothing."""

    __slots__ = ()

    def __bool__(self) -> bool:
        return False

    def __str__(self) -> str:
        return ""

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __reduce__(self) -> str:
        return "UNDEFINED"


UNDEFINED: Any = _Undefined()

_SEQUENCES = (list, tuple)


# =============================================================================
# Conversion
# =============================================================================


def is_number(value: Any) -> bool:
    """True for int and float, but not bool."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def str_safe(value: Any) -> str:
    """Convert a template value to its output string.

    ``None`` and ``UNDEFINED`` render as ``""`` so missing data is blank,
    booleans as ``true``/``false``, integral floats without ``.0`` and
    sequences as comma-joined items.

    Example:
        >>> str_safe(None), str_safe(True), str_safe(3.0), str_safe([1, "a"])
        ('', 'true', '3', '1,a')
    """
    if value is None or value is UNDEFINED:
        return ""
    if isinstance(value, str):
        return str.__str__(value)
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, _SEQUENCES):
        return ",".join(str_safe(item) for item in value)
    return str(value)


def escape_value(value: Any) -> str:
    """Escape interpolated data. Markup from the data context is not trusted."""
    return escape_text(str_safe(value))


def escape_helper_result(value: Any) -> str:
    """Escape helper output, keeping Markup the helper built itself."""
    if isinstance(value, Markup):
        return html_escape(value)
    return escape_text(str_safe(value))


def raw_value(value: Any) -> str:
    """Output for ``{{{ expr }}}``: converted, never escaped."""
    return str_safe(value)


# =============================================================================
# Path resolution
# =============================================================================


def _length(obj: Any) -> Any:
    try:
        return len(obj)
    except TypeError:
        return UNDEFINED


def get_attr(obj: Any, name: str) -> Any:
    """Resolve ``obj.name`` leniently.

    Mappings are read by key, sequences and strings expose ``length``, and
    other objects expose public, non-callable attributes only.
    """
    if obj is None or obj is UNDEFINED:
        return UNDEFINED
    if isinstance(obj, Mapping):
        try:
            return obj[name]
        except KeyError:
            return _length(obj) if name == "length" else UNDEFINED
    if isinstance(obj, (str, list, tuple)):
        return len(obj) if name == "length" else UNDEFINED
    if name.startswith("_"):
        return UNDEFINED
    value = getattr(obj, name, UNDEFINED)
    if value is UNDEFINED:
        return _length(obj) if name == "length" else UNDEFINED
    if callable(value):
        return UNDEFINED
    return value


def get_item(obj: Any, key: Any) -> Any:
    """Resolve ``obj[key]`` / ``obj.[0]`` leniently."""
    if obj is None or obj is UNDEFINED:
        return UNDEFINED
    if isinstance(obj, Mapping):
        try:
            return obj[key]
        except (KeyError, TypeError):
            pass
        if isinstance(key, int) and not isinstance(key, bool):
            return obj.get(str(key), UNDEFINED)
        if isinstance(key, str):
            return get_attr(obj, key)
        return UNDEFINED
    if isinstance(obj, (str, list, tuple)):
        if isinstance(key, str):
            if not key.isdigit():
                return get_attr(obj, key)
            key = int(key)
        if isinstance(key, float) and key.is_integer():
            key = int(key)
        if isinstance(key, int) and not isinstance(key, bool) and 0 <= key < len(obj):
            return obj[key]
        return UNDEFINED
    if isinstance(key, str):
        return get_attr(obj, key)
    return UNDEFINED


def _raise_undefined(path: str, available: frozenset[str] | None = None) -> Any:
    raise UndefinedError(path, available_names=available)


def lookup_strict(scope: Any, name: str) -> Any:
    """Look up a variable in strict mode.

    In strict mode, undefined variables raise UndefinedError instead of
    rendering blank, which catches typos and missing data early.
    """
    value = scope.resolve(name)
    if value is UNDEFINED:
        _raise_undefined(name, scope.names())
    return value


def get_attr_strict(obj: Any, name: str, path: str) -> Any:
    value = get_attr(obj, name)
    if value is UNDEFINED:
        available = frozenset(obj) if isinstance(obj, Mapping) else None
        _raise_undefined(path, available)
    return value


def get_item_strict(obj: Any, key: Any, path: str) -> Any:
    value = get_item(obj, key)
    if value is UNDEFINED:
        _raise_undefined(path)
    return value


# =============================================================================
# Operators
# =============================================================================


def _type_name(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    return type(value).__name__


def _type_mismatch(op: str, left: Any, right: Any) -> RenderError:
    return RenderError(
        f"Unsupported operand types for {op}: {_type_name(left)} and {_type_name(right)}",
        kind=ErrorCode.TYPE_MISMATCH,
        suggestion="Arithmetic needs numbers on both sides; only '+' also joins strings",
    )


def add(left: Any, right: Any) -> Any:
    """``+``: numeric addition for two numbers, otherwise concatenation."""
    if is_number(left) and is_number(right):
        return left + right
    return str_safe(left) + str_safe(right)


def arith(op: str, left: Any, right: Any) -> Any:
    """``- * / %`` on numbers only."""
    if not (is_number(left) and is_number(right)):
        raise _type_mismatch(op, left, right)
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if right == 0:
        raise RenderError(
            "Division by zero" if op == "/" else "Modulo by zero",
            kind=ErrorCode.TYPE_MISMATCH,
        )
    if op == "/":
        return left / right
    # Remainder takes the sign of the dividend
    if isinstance(left, int) and isinstance(right, int):
        result = abs(left) % abs(right)
        return result if left >= 0 else -result
    return math.fmod(left, right)


def negate(op: str, operand: Any) -> Any:
    """Unary ``-`` and ``+``."""
    if not is_number(operand):
        raise RenderError(
            f"Unsupported operand type for unary {op}: {_type_name(operand)}",
            kind=ErrorCode.TYPE_MISMATCH,
        )
    return -operand if op == "-" else operand


def strict_eq(left: Any, right: Any) -> bool:
    """``===``: equal type family and equal value."""
    if is_number(left) and is_number(right):
        return bool(left == right)
    if left is UNDEFINED or right is UNDEFINED:
        return left is right
    if type(left) is not type(right):
        if isinstance(left, str) and isinstance(right, str):
            return str.__eq__(left, right)
        return False
    return bool(left == right)


def loose_eq(left: Any, right: Any) -> bool:
    """``==``: like ``===`` but null equals undefined and numeric strings equal numbers."""
    if (left is None or left is UNDEFINED) and (right is None or right is UNDEFINED):
        return True
    if is_number(left) and isinstance(right, str):
        left, right = right, left
    if isinstance(left, str) and is_number(right):
        try:
            return float(left.strip()) == right
        except ValueError:
            return False
    return strict_eq(left, right)


def compare(op: str, left: Any, right: Any) -> bool:
    """Ordering comparison between two numbers or two strings."""
    comparable = (is_number(left) and is_number(right)) or (
        isinstance(left, str) and isinstance(right, str)
    )
    if not comparable:
        raise RenderError(
            f"Cannot compare {_type_name(left)} {op} {_type_name(right)}",
            kind=ErrorCode.TYPE_MISMATCH,
            suggestion="Ordering comparisons need two numbers or two strings",
        )
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left >= right


# =============================================================================
# Iteration
# =============================================================================


def each_items(value: Any) -> list[tuple[Any, Any]]:
    """Materialise ``(key, item)`` pairs for ``{{#each}}``.

    Mappings yield their values keyed by mapping key; sequences and other
    iterables are keyed by index. ``None``/``UNDEFINED`` are empty.

    Raises:
        RenderError: For strings and other scalars.
    """
    if value is None or value is UNDEFINED:
        return []
    if isinstance(value, Mapping):
        return list(value.items())
    if isinstance(value, _SEQUENCES):
        return list(enumerate(value))
    if isinstance(value, (str, bytes, int, float, bool)):
        raise RenderError(
            f"Cannot iterate over {_type_name(value)} with {{{{#each}}}}",
            kind=ErrorCode.TYPE_MISMATCH,
            suggestion="Pass a list or mapping to {{#each}}",
        )
    try:
        return list(enumerate(value))
    except TypeError:
        raise RenderError(
            f"Cannot iterate over {_type_name(value)} with {{{{#each}}}}",
            kind=ErrorCode.TYPE_MISMATCH,
        ) from None


# =============================================================================
# Attributes
# =============================================================================


def attr_value(value: Any) -> str:
    """Dynamic part of an attribute value: always escaped, Markup included."""
    return escape_text(str_safe(value))


def url_attr(name: str, parts: tuple[tuple[Any, bool], ...]) -> str:
    """Render a URL attribute value, re-checking the scheme at render time.

    Args:
        name: Attribute name, for the log message
        parts: ``(value, is_static)`` pairs; static parts are template text
            exactly as written, dynamic parts are evaluated values

    Returns:
        The escaped attribute value, or ``UNSAFE_URL_REPLACEMENT`` when the
        assembled URL uses a forbidden scheme.
    """
    url = "".join(unescape(value) if static else str_safe(value) for value, static in parts)
    if not is_safe_url(url):
        render_ctx = get_render_context()
        logger.warning(
            "Replaced unsafe URL in '%s' attribute of %s (line %s)",
            name,
            (render_ctx.template_name if render_ctx else None) or "<template>",
            render_ctx.line if render_ctx else "?",
        )
        return UNSAFE_URL_REPLACEMENT
    return "".join(value if static else attr_value(value) for value, static in parts)


def _json_default(value: Any) -> Any:
    if value is UNDEFINED:
        return None
    if isinstance(value, (set, frozenset)):
        return list(value)
    return str_safe(value)


def event_args(args: tuple[Any, ...]) -> str:
    """JSON array of event binding arguments, escaped for an attribute."""
    return escape_text(json.dumps(list(args), default=_json_default, separators=(",", ":")))


# =============================================================================
# Shared Base Namespace
# =============================================================================
# Static entries shared across all CompiledTemplate instances. These are
# copied once per CompiledTemplate.__init__ instead of constructed each time.
#
# Thread-Safety: This dict is read-only after module load.
# =============================================================================

STATIC_NAMESPACE: dict[str, Any] = {
    "__builtins__": {"__import__": __import__},
    "_UNDEFINED": UNDEFINED,
    "_len": len,
    "_enumerate": enumerate,
    "_str_safe": str_safe,
    "_escape": escape_value,
    "_escape_helper": escape_helper_result,
    "_raw": raw_value,
    "_getattr": get_attr,
    "_getitem": get_item,
    "_lookup_strict": lookup_strict,
    "_getattr_strict": get_attr_strict,
    "_getitem_strict": get_item_strict,
    "_add": add,
    "_arith": arith,
    "_negate": negate,
    "_strict_eq": strict_eq,
    "_loose_eq": loose_eq,
    "_compare": compare,
    "_each_items": each_items,
    "_attr_value": attr_value,
    "_url_attr": url_attr,
    "_event_args": event_args,
}
