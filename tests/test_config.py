"""Tests for EngineConfig and engine options."""

from __future__ import annotations

import dataclasses

import pytest

from coral import EngineConfig, Environment
from coral.utils.constants import DEFAULT_ALLOWED_TAGS


class TestDefaults:
    def test_defaults(self):
        config = EngineConfig()
        assert config.strict_mode is False
        assert config.cache_capacity == 400
        assert config.output_cache_capacity == 0
        assert config.raw_output_enabled is True
        assert config.max_partial_depth == 50
        assert config.allowed_tags == DEFAULT_ALLOWED_TAGS
        assert "script" not in config.allowed_tags

    def test_read_only(self):
        config = EngineConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.strict_mode = True  # type: ignore[misc]


class TestFromMapping:
    """Loading options from a mapping such as parsed JSON or YAML."""

    def test_camel_case_keys(self):
        config = EngineConfig.from_mapping(
            {"strictMode": True, "cacheCapacity": 10, "rawOutputEnabled": False}
        )
        assert config.strict_mode is True
        assert config.cache_capacity == 10
        assert config.raw_output_enabled is False

    def test_snake_case_keys(self):
        config = EngineConfig.from_mapping({"max_partial_depth": 5})
        assert config.max_partial_depth == 5

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown engine option 'stict'"):
            EngineConfig.from_mapping({"stict": True})

    def test_both_spellings(self):
        with pytest.raises(ValueError, match="more than once"):
            EngineConfig.from_mapping({"strictMode": True, "strict_mode": False})

    def test_name_sets_are_lowercased(self):
        config = EngineConfig.from_mapping({"allowedTags": ["DIV", "Span"]})
        assert config.allowed_tags == frozenset({"div", "span"})


class TestValidation:
    @pytest.mark.parametrize(
        "options",
        [
            {"cache_capacity": 0},
            {"output_cache_capacity": -1},
            {"max_partial_depth": 0},
        ],
    )
    def test_out_of_range(self, options):
        with pytest.raises(ValueError):
            EngineConfig(**options)

    def test_name_set_must_not_be_string(self):
        with pytest.raises(TypeError):
            EngineConfig(allowed_tags="div")  # type: ignore[arg-type]


class TestWithOptions:
    def test_returns_copy(self):
        base = EngineConfig()
        strict = base.with_options(strictMode=True)
        assert strict.strict_mode is True
        assert base.strict_mode is False

    def test_keeps_other_settings(self):
        base = EngineConfig(cache_capacity=7)
        assert base.with_options(strict_mode=True).cache_capacity == 7

    def test_no_overrides_returns_self(self):
        base = EngineConfig()
        assert base.with_options() is base


class TestEnvironmentOptions:
    """Options given to Environment land on its config."""

    def test_config_and_overrides(self):
        env = Environment(EngineConfig(cache_capacity=3), strict_mode=True)
        assert env.config.cache_capacity == 3
        assert env.config.strict_mode is True
        assert env.cache_info()["templates"]["capacity"] == 3

    def test_unknown_option(self):
        with pytest.raises(ValueError):
            Environment(colour="red")

    def test_raw_output_disabled(self):
        from coral import SecurityError

        env = Environment(raw_output_enabled=False)
        assert env.render("{{ x }}", x="<b>") == "&lt;b&gt;"
        with pytest.raises(SecurityError):
            env.render("{{{ x }}}", x="<b>")

    def test_repr(self):
        assert "strict_mode=True" in repr(Environment(strict_mode=True))
