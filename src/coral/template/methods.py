"""Allow-listed methods callable from template expressions.

Templates may call ``value.method(args)`` only for the methods below. The
parser rejects any other name, and ``call_method`` checks again at render
time, so no template can reach an arbitrary attribute of a host object.

Names and behaviour follow the familiar string/array methods of
Handlebars-style template languages, implemented here over Python values:

    ==============  ==================  ===================================
    Method          Receiver            Result
    ==============  ==================  ===================================
    toUpperCase     str                 upper-cased copy
    toLowerCase     str                 lower-cased copy
    trim            str                 whitespace stripped both ends
    trimStart       str                 leading whitespace stripped
    trimEnd         str                 trailing whitespace stripped
    startsWith      str                 bool
    endsWith        str                 bool
    includes        str, sequence       bool
    indexOf         str, sequence       index or -1
    slice           str, sequence       sub-range, negative indices allowed
    substring       str                 sub-range, negatives clamp to 0
    split           str                 list of str
    join            sequence            str (default separator ",")
    replace         str                 first occurrence replaced
    repeat          str                 str repeated n times
    padStart        str                 left-padded to length
    padEnd          str                 right-padded to length
    charAt          str                 one character or ""
    concat          str, sequence       joined copy
    toFixed         number              str with fixed decimals
    toString        any                 rendered string form
    ==============  ==================  ===================================

repeat, padStart, padEnd and string concat refuse to build results longer
than ``MAX_GENERATED_LENGTH`` characters.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from coral.environment.exceptions import ErrorCode, RenderError
from coral.template.helpers import is_number, str_safe
from coral.utils.constants import MAX_GENERATED_LENGTH

_SEQUENCE = (list, tuple)
_TEXT = (str,)


def _check_length(length: int, method: str) -> None:
    if length > MAX_GENERATED_LENGTH:
        raise ValueError(f"{method}() result would exceed {MAX_GENERATED_LENGTH:,} characters")


@dataclass(frozen=True, slots=True)
class MethodSpec:
    """One allow-listed method: receiver types, arity and implementation."""

    receivers: tuple[type, ...] | None
    min_args: int
    max_args: int
    func: Callable[..., Any]


def _slice(value: Any, start: int = 0, end: int | None = None) -> Any:
    return value[start:end]


def _substring(value: str, start: int, end: int | None = None) -> str:
    size = len(value)
    start = min(max(start, 0), size)
    end = size if end is None else min(max(end, 0), size)
    if start > end:
        start, end = end, start
    return value[start:end]


def _index_of(value: Any, item: Any) -> int:
    if isinstance(value, str):
        return value.find(str_safe(item))
    try:
        return list(value).index(item)
    except ValueError:
        return -1


def _includes(value: Any, item: Any) -> bool:
    if isinstance(value, str):
        return str_safe(item) in value
    return item in value


def _split(value: str, separator: str | None = None, limit: int | None = None) -> list[str]:
    if separator == "":
        parts = list(value)
    else:
        parts = value.split(separator)
    return parts if limit is None else parts[:limit]


def _join(value: Sequence[Any], separator: str = ",") -> str:
    return str_safe(separator).join(str_safe(item) for item in value)


def _pad(value: str, length: int, fill: str = " ", *, left: bool) -> str:
    missing = length - len(value)
    if missing <= 0 or not fill:
        return value
    _check_length(length, "padStart" if left else "padEnd")
    padding = (fill * (missing // len(fill) + 1))[:missing]
    return padding + value if left else value + padding


def _char_at(value: str, index: int = 0) -> str:
    return value[index] if 0 <= index < len(value) else ""


def _concat(value: Any, *others: Any) -> Any:
    if isinstance(value, str):
        text = value + "".join(str_safe(other) for other in others)
        _check_length(len(text), "concat")
        return text
    result = list(value)
    for other in others:
        if isinstance(other, _SEQUENCE):
            result.extend(other)
        else:
            result.append(other)
    return result


def _to_fixed(value: int | float, digits: int = 0) -> str:
    if not 0 <= digits <= 100:
        raise ValueError("toFixed() digits must be between 0 and 100")
    return f"{value:.{digits}f}"


def _repeat(value: str, count: int) -> str:
    if count < 0:
        raise ValueError("repeat() count must be non-negative")
    _check_length(len(value) * count, "repeat")
    return value * count


ALLOWED_METHODS: dict[str, MethodSpec] = {
    "toUpperCase": MethodSpec(_TEXT, 0, 0, str.upper),
    "toLowerCase": MethodSpec(_TEXT, 0, 0, str.lower),
    "trim": MethodSpec(_TEXT, 0, 0, str.strip),
    "trimStart": MethodSpec(_TEXT, 0, 0, str.lstrip),
    "trimEnd": MethodSpec(_TEXT, 0, 0, str.rstrip),
    "startsWith": MethodSpec(_TEXT, 1, 1, lambda s, p: s.startswith(str_safe(p))),
    "endsWith": MethodSpec(_TEXT, 1, 1, lambda s, p: s.endswith(str_safe(p))),
    "includes": MethodSpec(_TEXT + _SEQUENCE, 1, 1, _includes),
    "indexOf": MethodSpec(_TEXT + _SEQUENCE, 1, 1, _index_of),
    "slice": MethodSpec(_TEXT + _SEQUENCE, 0, 2, _slice),
    "substring": MethodSpec(_TEXT, 1, 2, _substring),
    "split": MethodSpec(_TEXT, 0, 2, _split),
    "join": MethodSpec(_SEQUENCE, 0, 1, _join),
    "replace": MethodSpec(_TEXT, 2, 2, lambda s, a, b: s.replace(str_safe(a), str_safe(b), 1)),
    "repeat": MethodSpec(_TEXT, 1, 1, _repeat),
    "padStart": MethodSpec(_TEXT, 1, 2, lambda s, n, f=" ": _pad(s, n, f, left=True)),
    "padEnd": MethodSpec(_TEXT, 1, 2, lambda s, n, f=" ": _pad(s, n, f, left=False)),
    "charAt": MethodSpec(_TEXT, 0, 1, _char_at),
    "concat": MethodSpec(_TEXT + _SEQUENCE, 0, 8, _concat),
    "toFixed": MethodSpec(None, 0, 1, _to_fixed),
    "toString": MethodSpec(None, 0, 0, str_safe),
}


def call_method(obj: Any, method: str, args: tuple[Any, ...]) -> Any:
    """Invoke an allow-listed method on a template value.

    Raises:
        RenderError: For a name outside the allow-list, a receiver of the
            wrong type, a wrong argument count or invalid arguments.
    """
    spec = ALLOWED_METHODS.get(method)
    if spec is None:
        raise RenderError(
            f"Method '{method}' is not allowed in templates",
            kind=ErrorCode.TYPE_MISMATCH,
            name=method,
            suggestion=f"Allowed methods: {', '.join(sorted(ALLOWED_METHODS))}",
        )
    if method == "toFixed":
        receiver_ok = is_number(obj)
    else:
        receiver_ok = spec.receivers is None or isinstance(obj, spec.receivers)
    if not receiver_ok:
        raise RenderError(
            f"Cannot call .{method}() on {type(obj).__name__}",
            kind=ErrorCode.TYPE_MISMATCH,
            name=method,
        )
    if not spec.min_args <= len(args) <= spec.max_args:
        expected = (
            str(spec.min_args)
            if spec.min_args == spec.max_args
            else f"{spec.min_args} to {spec.max_args}"
        )
        raise RenderError(
            f".{method}() takes {expected} argument(s), got {len(args)}",
            kind=ErrorCode.ARITY_MISMATCH,
            name=method,
        )
    try:
        return spec.func(obj, *args)
    except (TypeError, ValueError) as e:
        raise RenderError(
            f"Invalid arguments for .{method}(): {e}",
            kind=ErrorCode.TYPE_MISMATCH,
            name=method,
        ) from e
