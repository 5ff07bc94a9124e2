"""Template rendering benchmarks: Coral vs Jinja2.

Both engines render equivalent inline templates (the ``templates`` fixture
in conftest.py) with autoescaping on.

Template sizes:
- "minimal": Single variable
- "small": Title plus a loop over 5 strings
- "medium": 100 users with a helper call, a conditional and a URL attribute
- "large": 100x10 nested table

Run with: pytest benchmarks/test_benchmark_render.py --benchmark-only
Compare: pytest benchmarks/test_benchmark_render.py --benchmark-compare
"""

from __future__ import annotations

import pytest
from jinja2 import Environment as Jinja2Environment
from pytest_benchmark.fixture import BenchmarkFixture

from coral import Environment as CoralEnvironment

Templates = dict[str, tuple[str, str]]


@pytest.mark.benchmark(group="render:minimal")
def test_render_minimal_coral(
    benchmark: BenchmarkFixture, coral_env: CoralEnvironment, templates: Templates
) -> None:
    template = coral_env.from_string(templates["minimal"][0])
    benchmark(template.render, name="Benchmark")


@pytest.mark.benchmark(group="render:minimal")
def test_render_minimal_jinja2(
    benchmark: BenchmarkFixture, jinja2_env: Jinja2Environment, templates: Templates
) -> None:
    template = jinja2_env.from_string(templates["minimal"][1])
    benchmark(template.render, name="Benchmark")


@pytest.mark.benchmark(group="render:small")
def test_render_small_coral(
    benchmark: BenchmarkFixture,
    coral_env: CoralEnvironment,
    templates: Templates,
    small_context: dict[str, object],
) -> None:
    template = coral_env.from_string(templates["small"][0])
    benchmark(template.render, small_context)


@pytest.mark.benchmark(group="render:small")
def test_render_small_jinja2(
    benchmark: BenchmarkFixture,
    jinja2_env: Jinja2Environment,
    templates: Templates,
    small_context: dict[str, object],
) -> None:
    template = jinja2_env.from_string(templates["small"][1])
    benchmark(template.render, **small_context)


@pytest.mark.benchmark(group="render:medium")
def test_render_medium_coral(
    benchmark: BenchmarkFixture,
    coral_env: CoralEnvironment,
    templates: Templates,
    medium_context: dict[str, object],
) -> None:
    template = coral_env.from_string(templates["medium"][0])
    benchmark(template.render, medium_context)


@pytest.mark.benchmark(group="render:medium")
def test_render_medium_jinja2(
    benchmark: BenchmarkFixture,
    jinja2_env: Jinja2Environment,
    templates: Templates,
    medium_context: dict[str, object],
) -> None:
    template = jinja2_env.from_string(templates["medium"][1])
    benchmark(template.render, **medium_context)


@pytest.mark.benchmark(group="render:large")
def test_render_large_coral(
    benchmark: BenchmarkFixture,
    coral_env: CoralEnvironment,
    templates: Templates,
    large_context: dict[str, object],
) -> None:
    template = coral_env.from_string(templates["large"][0])
    benchmark(template.render, large_context)


@pytest.mark.benchmark(group="render:large")
def test_render_large_jinja2(
    benchmark: BenchmarkFixture,
    jinja2_env: Jinja2Environment,
    templates: Templates,
    large_context: dict[str, object],
) -> None:
    template = jinja2_env.from_string(templates["large"][1])
    benchmark(template.render, **large_context)


@pytest.mark.benchmark(group="compile:medium")
def test_compile_medium_coral(benchmark: BenchmarkFixture, templates: Templates) -> None:
    env = CoralEnvironment()
    benchmark(env.compile, templates["medium"][0])


@pytest.mark.benchmark(group="compile:medium")
def test_compile_medium_jinja2(benchmark: BenchmarkFixture, templates: Templates) -> None:
    env = Jinja2Environment(autoescape=True)
    benchmark(env.from_string, templates["medium"][1])


@pytest.mark.benchmark(group="render:cached-output")
def test_render_output_cache_coral(
    benchmark: BenchmarkFixture,
    templates: Templates,
    medium_context: dict[str, object],
) -> None:
    env = CoralEnvironment(output_cache_capacity=8)
    benchmark(env.render, templates["medium"][0], medium_context)
