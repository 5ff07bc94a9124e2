"""Pytest configuration and fixtures for Coral tests."""

import pytest

from coral import Environment


@pytest.fixture
def env():
    """Create a basic Coral Environment."""
    return Environment()


@pytest.fixture
def strict_env():
    """Create a Coral Environment with strict_mode enabled."""
    return Environment(strict_mode=True)


@pytest.fixture
def cached_env():
    """Create a Coral Environment with the rendered-output cache enabled."""
    return Environment(output_cache_capacity=16)


@pytest.fixture
def env_with_partials():
    """Create a Coral Environment with a few registered partials."""
    env = Environment()
    env.register_partial("greeting", "Hello, {{ name }}!")
    env.register_partial("user-card", '<div class="card">{{ name }} ({{ role }})</div>')
    env.register_partial("list/item", "<li>{{ this }}</li>")
    return env

