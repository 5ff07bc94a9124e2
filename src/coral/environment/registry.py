"""Helper registry for the Coral environment.

Helpers are named pure functions callable from templates as
``{{~name args}}`` or ``name(args)`` inside expressions. Each engine owns
its own registry; there is no module-level registry.

Reads never lock: the registry hands out the current immutable snapshot.
Writers build a new dict and swap it in under a lock (copy-on-write), so a
render that started before a registration keeps a consistent view.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from coral.environment.exceptions import ErrorCode, RenderError, TemplateError


@dataclass(frozen=True, slots=True)
class Arity:
    """Accepted number of positional arguments.

    ``max=None`` means unbounded. Keyword arguments are not counted.

    Example:
        >>> Arity.of(1).accepts(1), Arity.of((1, 2)).accepts(3), Arity.of(None).accepts(9)
        (True, False, True)
    """

    min: int = 0
    max: int | None = None

    def __post_init__(self) -> None:
        if self.min < 0 or (self.max is not None and self.max < self.min):
            raise ValueError(f"Invalid arity range ({self.min}, {self.max})")

    @classmethod
    def of(cls, spec: Arity | int | tuple[int, int | None] | None) -> Arity:
        """Normalise the ``arity=`` argument of ``register_helper``."""
        if spec is None:
            return VARIADIC
        if isinstance(spec, Arity):
            return spec
        if isinstance(spec, bool):
            raise TypeError("arity must be None, an int, a (min, max) tuple or an Arity")
        if isinstance(spec, int):
            return cls(spec, spec)
        if isinstance(spec, tuple) and len(spec) == 2:
            return cls(spec[0], spec[1])
        raise TypeError("arity must be None, an int, a (min, max) tuple or an Arity")

    def accepts(self, count: int) -> bool:
        return count >= self.min and (self.max is None or count <= self.max)

    def describe(self) -> str:
        if self.max is None:
            if self.min == 0:
                return "any number of arguments"
            return f"at least {self.min} argument{'s' if self.min != 1 else ''}"
        if self.min == self.max:
            return f"exactly {self.min} argument{'s' if self.min != 1 else ''}"
        return f"{self.min} to {self.max} arguments"


VARIADIC = Arity()


@dataclass(frozen=True, slots=True)
class HelperEntry:
    """One registered helper.

    Attributes:
        name: Unique helper name
        func: The implementation
        arity: Accepted positional argument count
        pass_context: Append the calling Scope as the last positional argument
    """

    name: str
    func: Callable[..., Any]
    arity: Arity = VARIADIC
    pass_context: bool = False

    def invoke(self, args: tuple[Any, ...], kwargs: Mapping[str, Any] | None, scope: Any) -> Any:
        """Call the helper after checking its arity.

        Raises:
            RenderError: ARITY_MISMATCH for a wrong argument count,
                HELPER_FAILED (chained) when the helper itself raises
        """
        if not self.arity.accepts(len(args)):
            raise RenderError(
                f"Helper '{self.name}' takes {self.arity.describe()}, got {len(args)}",
                kind=ErrorCode.ARITY_MISMATCH,
                name=self.name,
            )
        call_args = (*args, scope) if self.pass_context else args
        try:
            if kwargs:
                return self.func(*call_args, **kwargs)
            return self.func(*call_args)
        except TemplateError:
            raise
        except Exception as e:
            raise RenderError(
                f"Helper '{self.name}' failed: {type(e).__name__}: {e}",
                kind=ErrorCode.HELPER_FAILED,
                name=self.name,
            ) from e


class HelperRegistry:
    """Dict-like, copy-on-write registry of helpers.

    Supports:
        - registry.register('name', func, arity=1)
        - entry = registry.get('name')
        - 'name' in registry, len(registry), iteration over names

    All mutations swap in a new dict under a lock; lookups read the current
    snapshot without locking.
    """

    __slots__ = ("_entries", "_lock")

    def __init__(self, entries: Mapping[str, HelperEntry] | None = None):
        self._lock = threading.Lock()
        self._entries: Mapping[str, HelperEntry] = MappingProxyType(dict(entries or {}))

    def register(
        self,
        name: str,
        func: Callable[..., Any],
        *,
        arity: Arity | int | tuple[int, int | None] | None = None,
        pass_context: bool = False,
        replace: bool = False,
    ) -> HelperEntry:
        """Register ``func`` under ``name``.

        Raises:
            ValueError: When the name is taken and ``replace`` is False, or
                the name is not a valid identifier
            TypeError: When ``func`` is not callable
        """
        if not name.isidentifier():
            raise ValueError(f"Helper name must be an identifier, got {name!r}")
        if not callable(func):
            raise TypeError(f"Helper '{name}' must be callable, got {type(func).__name__}")
        entry = HelperEntry(name, func, Arity.of(arity), pass_context)
        with self._lock:
            if name in self._entries and not replace:
                raise ValueError(
                    f"Helper '{name}' is already registered; pass replace=True to override it"
                )
            updated = dict(self._entries)
            updated[name] = entry
            self._entries = MappingProxyType(updated)
        return entry

    def unregister(self, name: str) -> None:
        """Remove a helper; KeyError when absent."""
        with self._lock:
            updated = dict(self._entries)
            del updated[name]
            self._entries = MappingProxyType(updated)

    def get(self, name: str) -> HelperEntry | None:
        return self._entries.get(name)

    def __getitem__(self, name: str) -> HelperEntry:
        return self._entries[name]

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def names(self) -> frozenset[str]:
        return frozenset(self._entries)

    def snapshot(self) -> Mapping[str, HelperEntry]:
        """Current read-only view; later registrations do not affect it."""
        return self._entries

    def copy(self) -> HelperRegistry:
        """Independent registry starting with the same helpers."""
        return HelperRegistry(self._entries)

    def __repr__(self) -> str:
        return f"<HelperRegistry {len(self._entries)} helpers>"
