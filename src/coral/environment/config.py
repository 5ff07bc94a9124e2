"""Engine configuration.

``EngineConfig`` is a frozen dataclass: an engine's settings cannot change
after construction, so compiled templates never see a different validator
or strictness than the one they were compiled under.

Options can be given as keyword arguments or loaded from a mapping with
either snake_case or camelCase keys:

    >>> EngineConfig.from_mapping({"strictMode": True, "cacheCapacity": 50}).cache_capacity
    50
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any

from coral.utils.constants import DEFAULT_ALLOWED_ATTRIBUTES, DEFAULT_ALLOWED_TAGS

# camelCase spellings accepted by from_mapping()
_CAMEL_CASE_KEYS = {
    "strictMode": "strict_mode",
    "cacheCapacity": "cache_capacity",
    "outputCacheCapacity": "output_cache_capacity",
    "allowedTags": "allowed_tags",
    "allowedAttributes": "allowed_attributes",
    "rawOutputEnabled": "raw_output_enabled",
    "maxPartialDepth": "max_partial_depth",
}


def _name_set(values: Iterable[str], option: str) -> frozenset[str]:
    if isinstance(values, str):
        raise TypeError(f"{option} must be a collection of names, not a string")
    return frozenset(value.lower() for value in values)


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Settings for one Environment.

    Attributes:
        strict_mode: Undefined names and paths raise UndefinedError instead
            of rendering as blank
        cache_capacity: Maximum number of cached compiled templates
        output_cache_capacity: Maximum number of memoised render results;
            0 disables the output cache
        allowed_tags: Tag names templates may contain (``script`` is always
            rejected)
        allowed_attributes: Attribute names templates may use; ``data-*``
            and ``aria-*`` are always allowed
        raw_output_enabled: Accept ``{{{ }}}`` raw markers
        max_partial_depth: Nesting limit for partial rendering
    """

    strict_mode: bool = False
    cache_capacity: int = 400
    output_cache_capacity: int = 0
    allowed_tags: frozenset[str] = field(default=DEFAULT_ALLOWED_TAGS)
    allowed_attributes: frozenset[str] = field(default=DEFAULT_ALLOWED_ATTRIBUTES)
    raw_output_enabled: bool = True
    max_partial_depth: int = 50

    def __post_init__(self) -> None:
        # Frozen: normalise through object.__setattr__
        object.__setattr__(self, "allowed_tags", _name_set(self.allowed_tags, "allowed_tags"))
        object.__setattr__(
            self,
            "allowed_attributes",
            _name_set(self.allowed_attributes, "allowed_attributes"),
        )
        if self.cache_capacity < 1:
            raise ValueError(f"cache_capacity must be >= 1, got {self.cache_capacity}")
        if self.output_cache_capacity < 0:
            raise ValueError(
                f"output_cache_capacity must be >= 0, got {self.output_cache_capacity}"
            )
        if self.max_partial_depth < 1:
            raise ValueError(f"max_partial_depth must be >= 1, got {self.max_partial_depth}")

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> EngineConfig:
        """Build a config from snake_case or camelCase keys.

        Raises:
            ValueError: For unknown keys, or a key given in both spellings
        """
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in options.items():
            name = _CAMEL_CASE_KEYS.get(key, key)
            if name not in known:
                raise ValueError(
                    f"Unknown engine option '{key}'. "
                    f"Known options: {', '.join(sorted(known | set(_CAMEL_CASE_KEYS)))}"
                )
            if name in values:
                raise ValueError(f"Engine option '{name}' given more than once")
            values[name] = value
        return cls(**values)

    def with_options(self, **overrides: Any) -> EngineConfig:
        """Copy of this config with some options replaced (camelCase accepted)."""
        if not overrides:
            return self
        normalised = EngineConfig.from_mapping(overrides)
        changed = {name: getattr(normalised, name) for name in _option_names(overrides)}
        return replace(self, **changed)


def _option_names(options: Mapping[str, Any]) -> list[str]:
    return [_CAMEL_CASE_KEYS.get(key, key) for key in options]
