"""Shared utilities: HTML escaping, URL checks and the LRU cache."""

from coral.utils.html import Markup, html_escape, is_safe_url
from coral.utils.lru_cache import CacheEntry, LRUCache

__all__ = [
    "CacheEntry",
    "LRUCache",
    "Markup",
    "html_escape",
    "is_safe_url",
]
