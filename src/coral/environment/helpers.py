"""Built-in helpers for Coral templates.

Helpers are called as ``{{~name args}}`` or ``name(args)`` inside an
expression. Every built-in is a pure function of its arguments, treats
undefined input as empty, and returns plain values that the template then
escapes.

Categories:
**Text**:
    - `uppercase`, `lowercase`, `capitalize`, `titlecase`, `trim`
    - `truncate(s, length, suffix="...")`
    - `replace(s, old, new)`: every occurrence
    - `slugify`: lowercase, ASCII, hyphen-separated

**Values**:
    - `default(value, fallback)`: fallback for null, undefined and ""
    - `eq(a, b)` / `ne(a, b)`: loose equality, as ``==`` in expressions
    - `json(value)`: compact JSON text

**Collections**:
    - `length`, `first`, `last`, `reverse`
    - `join(items, separator=", ")`
    - `lookup(obj, key)`: dynamic key access
    - `concat(*values)`: string concatenation

**Numbers**:
    - `format_number(n, decimals=0)`: thousands separators
    - `round(n, decimals=0)`, `abs(n)`
    - `pluralize(count, singular, plural=singular + "s")`

**Dates**:
    - `format_date(value, format="%Y-%m-%d")`: datetime, date, ISO string
      or POSIX timestamp

Example:
    ```handlebars
    <h2>{{~titlecase post.title}}</h2>
    <p>{{~truncate post.body 120}}</p>
    <small>{{ count }} {{~pluralize count "comment"}}, {{~format_date post.created "%d %b %Y"}}</small>
    ```

"""

from __future__ import annotations

import json
import re
import unicodedata
from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime, timezone
from typing import Any

from coral.template.helpers import UNDEFINED, get_item, is_number, loose_eq, str_safe

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SEP_RE = re.compile(r"[-\s]+")


def _is_empty(value: Any) -> bool:
    return value is None or value is UNDEFINED or value == ""


def _as_number(value: Any, helper: str) -> int | float:
    if is_number(value):
        return value
    if isinstance(value, str):
        try:
            return float(value) if any(c in value for c in ".eE") else int(value)
        except ValueError:
            pass
    raise TypeError(f"{helper} expects a number, got {type(value).__name__}")


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


def _uppercase(value: Any) -> str:
    return str_safe(value).upper()


def _lowercase(value: Any) -> str:
    return str_safe(value).lower()


def _capitalize(value: Any) -> str:
    text = str_safe(value)
    return text[:1].upper() + text[1:]


def _titlecase(value: Any) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in str_safe(value).split(" "))


def _trim(value: Any) -> str:
    return str_safe(value).strip()


def _truncate(value: Any, length: int, suffix: str = "...") -> str:
    """Cut to ``length`` characters including the suffix."""
    text = str_safe(value)
    if length < 0:
        raise ValueError("truncate length must be non-negative")
    if len(text) <= length:
        return text
    suffix = str_safe(suffix)
    if length <= len(suffix):
        return text[:length]
    return text[: length - len(suffix)].rstrip() + suffix


def _replace(value: Any, old: Any, new: Any) -> str:
    return str_safe(value).replace(str_safe(old), str_safe(new))


def _slugify(value: Any) -> str:
    text = unicodedata.normalize("NFKD", str_safe(value)).encode("ascii", "ignore").decode()
    text = _SLUG_STRIP_RE.sub("", text).strip().lower()
    return _SLUG_SEP_RE.sub("-", text)


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------


def _default(value: Any, fallback: Any) -> Any:
    return fallback if _is_empty(value) else value


def _eq(left: Any, right: Any) -> bool:
    return loose_eq(left, right)


def _ne(left: Any, right: Any) -> bool:
    return not loose_eq(left, right)


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


def _length(value: Any) -> int:
    if _is_empty(value):
        return 0
    try:
        return len(value)
    except TypeError:
        raise TypeError(f"length expects a string or collection, got {type(value).__name__}") from None


def _first(value: Any) -> Any:
    if isinstance(value, (str, Sequence)) and value:
        return value[0]
    return UNDEFINED


def _last(value: Any) -> Any:
    if isinstance(value, (str, Sequence)) and value:
        return value[-1]
    return UNDEFINED


def _reverse(value: Any) -> Any:
    if isinstance(value, str):
        return value[::-1]
    if isinstance(value, Sequence):
        return list(reversed(value))
    if _is_empty(value):
        return []
    raise TypeError(f"reverse expects a string or sequence, got {type(value).__name__}")


def _join(value: Any, separator: Any = ", ") -> str:
    if _is_empty(value):
        return ""
    if isinstance(value, str):
        return value
    return str_safe(separator).join(str_safe(item) for item in value)


def _lookup(obj: Any, key: Any) -> Any:
    return get_item(obj, key)


def _concat(*values: Any) -> str:
    return "".join(str_safe(value) for value in values)


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------


def _format_number(value: Any, decimals: int = 0) -> str:
    if _is_empty(value):
        return ""
    number = _as_number(value, "format_number")
    return f"{number:,.{decimals}f}"


def _round(value: Any, decimals: int = 0) -> int | float:
    number = _as_number(value, "round")
    result = round(number, decimals)
    return int(result) if decimals <= 0 else result


def _abs(value: Any) -> int | float:
    return abs(_as_number(value, "abs"))


def _pluralize(count: Any, singular: Any, plural: Any = None) -> str:
    word = str_safe(singular)
    if _as_number(count, "pluralize") == 1:
        return word
    return str_safe(plural) if plural is not None else word + "s"


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def _format_date(value: Any, fmt: str = "%Y-%m-%d") -> str:
    if _is_empty(value):
        return ""
    if isinstance(value, (datetime, date)):
        moment = value
    elif isinstance(value, str):
        moment = datetime.fromisoformat(value)
    elif is_number(value):
        moment = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        raise TypeError(f"format_date expects a date, ISO string or timestamp, got {type(value).__name__}")
    return moment.strftime(str_safe(fmt))


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def _json_default(value: Any) -> Any:
    if value is UNDEFINED:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def _to_json(value: Any, indent: int | None = None) -> str:
    if value is UNDEFINED:
        value = None
    if indent is not None and not 0 <= indent <= 16:
        raise ValueError("json indent must be between 0 and 16")
    separators = (",", ":") if indent is None else None
    return json.dumps(value, default=_json_default, indent=indent, separators=separators)



# name -> (implementation, arity)
DEFAULT_HELPERS: Mapping[str, tuple[Callable[..., Any], int | tuple[int, int | None] | None]] = {
    "uppercase": (_uppercase, 1),
    "lowercase": (_lowercase, 1),
    "capitalize": (_capitalize, 1),
    "titlecase": (_titlecase, 1),
    "trim": (_trim, 1),
    "truncate": (_truncate, (2, 3)),
    "replace": (_replace, 3),
    "slugify": (_slugify, 1),
    "default": (_default, 2),
    "eq": (_eq, 2),
    "ne": (_ne, 2),
    "json": (_to_json, (1, 2)),
    "length": (_length, 1),
    "first": (_first, 1),
    "last": (_last, 1),
    "reverse": (_reverse, 1),
    "join": (_join, (1, 2)),
    "lookup": (_lookup, 2),
    "concat": (_concat, None),
    "format_number": (_format_number, (1, 2)),
    "round": (_round, (1, 2)),
    "abs": (_abs, 1),
    "pluralize": (_pluralize, (2, 3)),
    "format_date": (_format_date, (1, 2)),
}
