"""Tests for the LRU cache and the engine's two cache layers."""

from __future__ import annotations

import logging

import pytest

from coral import CompiledTemplate, Environment, LRUCache, ParseError, RenderError


class TestLRUCache:
    """The cache on its own."""

    def test_get_set(self):
        cache: LRUCache[str, int] = LRUCache(2)
        cache.set("a", 1)
        assert cache.get("a") == 1
        assert cache.get("missing") is None
        assert cache.get("missing", 0) == 0

    def test_evicts_least_recently_used(self):
        cache: LRUCache[str, int] = LRUCache(2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert "b" not in cache
        assert cache.keys() == ["a", "c"]
        assert cache.stats()["evictions"] == 1

    def test_never_exceeds_capacity(self):
        cache: LRUCache[int, int] = LRUCache(3)
        for i in range(10):
            cache.set(i, i)
        assert len(cache) == 3
        assert list(cache) == [7, 8, 9]

    def test_update_refreshes_recency(self):
        cache: LRUCache[str, int] = LRUCache(2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        cache.set("c", 3)
        assert cache.get("a") == 10
        assert "b" not in cache

    def test_last_access_is_monotonic(self):
        cache: LRUCache[str, int] = LRUCache(4)
        cache.set("a", 1)
        cache.set("b", 2)
        first = cache.entry("a").last_access
        cache.get("a")
        assert cache.entry("a").last_access > cache.entry("b").last_access > first - 1

    def test_zero_capacity_stores_nothing(self):
        cache: LRUCache[str, int] = LRUCache(0)
        cache.set("a", 1)
        assert cache.get_or_set("b", lambda: 2) == 2
        assert len(cache) == 0

    def test_negative_capacity(self):
        with pytest.raises(ValueError):
            LRUCache(-1)

    def test_get_or_set(self):
        cache: LRUCache[str, int] = LRUCache(2)
        calls = []

        def factory():
            calls.append(1)
            return 42

        assert cache.get_or_set("k", factory) == 42
        assert cache.get_or_set("k", factory) == 42
        assert len(calls) == 1
        stats = cache.stats()
        assert (stats["hits"], stats["misses"], stats["size"], stats["capacity"]) == (1, 1, 1, 2)

    def test_factory_error_stores_nothing(self):
        cache: LRUCache[str, int] = LRUCache(2)

        def factory():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            cache.get_or_set("k", factory)
        assert "k" not in cache

    def test_losing_race_value_is_discarded(self):
        cache: LRUCache[str, str] = LRUCache(2)

        def factory():
            # Another thread finishes first while this factory runs
            cache.set("k", "winner")
            return "loser"

        assert cache.get_or_set("k", factory) == "winner"
        assert cache.get("k") == "winner"
        assert cache.stats()["discarded"] == 1

    def test_clear_resets(self):
        cache: LRUCache[str, int] = LRUCache(2)
        cache.set("a", 1)
        cache.get("a")
        cache.clear()
        stats = cache.stats()
        assert stats["size"] == 0 and stats["hits"] == 0 and stats["hit_rate"] == 0.0

    def test_eviction_is_logged(self, caplog):
        cache: LRUCache[str, int] = LRUCache(1, name="demo")
        with caplog.at_level(logging.DEBUG, logger="coral.utils.lru_cache"):
            cache.set("a", 1)
            cache.set("b", 2)
        assert any("demo: evicted 'a'" in r.getMessage() for r in caplog.records)


class TestTemplateCache:
    """Compiled templates are cached by source text."""

    def test_hit_returns_same_object(self, env: Environment):
        first = env.get_or_compile("Hi {{ name }}")
        second = env.get_or_compile("Hi {{ name }}")
        assert first is second
        info = env.cache_info()["templates"]
        assert (info["hits"], info["misses"], info["size"]) == (1, 1, 1)

    def test_first_name_wins_for_same_source(self, env: Environment):
        first = env.get_or_compile("x", name="a.html")
        second = env.get_or_compile("x", name="b.html")
        assert second is first
        assert second.name == "a.html"

    def test_capacity_bounds_size(self):
        env = Environment(cache_capacity=2)
        for i in range(5):
            env.get_or_compile(f"template {i}")
        info = env.cache_info()["templates"]
        assert info["size"] == 2
        assert info["evictions"] == 3

    def test_evicted_template_recompiles(self):
        env = Environment(cache_capacity=1)
        first = env.get_or_compile("a")
        env.get_or_compile("b")
        again = env.get_or_compile("a")
        assert again is not first
        assert again.render() == "a"

    def test_failed_compile_not_cached(self, env: Environment):
        with pytest.raises(ParseError):
            env.get_or_compile("{{#if x}}")
        assert env.cache_info()["templates"]["size"] == 0

    def test_render_failure_does_not_poison_cache(self, env: Environment):
        source = "{{ a * 2 }}"
        with pytest.raises(RenderError):
            env.render(source, {"a": "x"})
        assert env.render(source, {"a": 4}) == "8"
        info = env.cache_info()["templates"]
        assert info["size"] == 1 and info["hits"] == 1

    def test_compile_bypasses_cache(self, env: Environment):
        template = env.compile("{{ x }}")
        assert isinstance(template, CompiledTemplate)
        assert env.cache_info()["templates"]["size"] == 0

    def test_template_metadata(self, env: Environment):
        import hashlib
        import time

        before = time.time()
        template = env.get_or_compile("<p>{{ x }}</p>", name="t.html")
        assert template.source_hash == hashlib.sha256(b"<p>{{ x }}</p>").hexdigest()
        assert before <= template.compiled_at <= time.time()
        assert template.ast is not None
        assert "t.html" in repr(template)

    def test_clear_cache(self, env: Environment):
        env.get_or_compile("a")
        env.clear_cache()
        assert env.cache_info()["templates"]["size"] == 0

    def test_caches_are_per_engine(self):
        first, second = Environment(), Environment()
        first.get_or_compile("shared")
        assert second.cache_info()["templates"]["size"] == 0


class TestOutputCache:
    """Rendered strings memoised by source and context digest."""

    def test_disabled_by_default(self, env: Environment):
        env.render("{{ x }}", {"x": 1})
        assert env.cache_info()["output"]["capacity"] == 0
        assert env.cache_info()["output"]["size"] == 0

    def test_hit_for_equal_context(self, cached_env: Environment):
        assert cached_env.render("{{ x }}", {"x": 1, "y": [1, 2]}) == "1"
        assert cached_env.render("{{ x }}", {"y": [1, 2], "x": 1}) == "1"
        info = cached_env.cache_info()["output"]
        assert (info["hits"], info["size"]) == (1, 1)

    def test_kwargs_are_part_of_the_key(self, cached_env: Environment):
        assert cached_env.render("{{ x }}", x=1) == "1"
        assert cached_env.render("{{ x }}", x=2) == "2"
        assert cached_env.render("{{ x }}", {"x": 1}) == "1"
        assert cached_env.cache_info()["output"]["hits"] == 1

    def test_different_context_misses(self, cached_env: Environment):
        cached_env.render("{{ x }}", {"x": 1})
        assert cached_env.render("{{ x }}", {"x": 2}) == "2"
        assert cached_env.cache_info()["output"]["size"] == 2

    def test_unserialisable_context_bypasses(self, cached_env: Environment):
        class Thing:
            label = "t"

        assert cached_env.render("{{ t.label }}", {"t": Thing()}) == "t"
        assert cached_env.cache_info()["output"]["size"] == 0

    def test_cleared_on_helper_registration(self, cached_env: Environment):
        cached_env.register_helper("wrap", lambda v: f"[{v}]", arity=1)
        assert cached_env.render("{{~wrap x}}", {"x": 1}) == "[1]"
        cached_env.register_helper("wrap", lambda v: f"<{v}>", arity=1, replace=True)
        assert cached_env.render("{{~wrap x}}", {"x": 1}) == "&lt;1&gt;"

    def test_cleared_on_partial_registration(self, cached_env: Environment):
        cached_env.register_partial("p", "one")
        assert cached_env.render("{{> p }}") == "one"
        cached_env.register_partial("p", "two")
        assert cached_env.render("{{> p }}") == "two"

    def test_failed_render_not_cached(self, cached_env: Environment):
        with pytest.raises(RenderError):
            cached_env.render("{{ a - 1 }}", {"a": "x"})
        assert cached_env.cache_info()["output"]["size"] == 0
