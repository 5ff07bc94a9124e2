from __future__ import annotations

import importlib.metadata as importlib_metadata
import json
import os
import platform
import sys
from pathlib import Path

import pytest
from jinja2 import Environment as Jinja2Environment

from coral import Environment as CoralEnvironment

BASE_DIR = Path(__file__).resolve().parent
BENCHMARK_OUTPUT_DIR = BASE_DIR.parent / ".benchmarks"
BENCHMARK_OUTPUT_DIR.mkdir(exist_ok=True)

# name -> (coral source, jinja2 source)
TEMPLATES: dict[str, tuple[str, str]] = {
    "minimal": ("Hello, {{ name }}!", "Hello, {{ name }}!"),
    "small": (
        "<h1>{{ title }}</h1><ul>{{#each items}}<li>{{ this }}</li>{{/each}}</ul>",
        "<h1>{{ title }}</h1><ul>{% for item in items %}<li>{{ item }}</li>{% endfor %}</ul>",
    ),
    "medium": (
        '<div class="users">{{#each users}}'
        '<div class="user">'
        "<h2>{{~uppercase name}}</h2>"
        "{{#if admin}}<span>admin</span>{{else}}<span>member</span>{{/if}}"
        '<a href="/users/{{ id }}">{{ email }}</a>'
        "</div>"
        "{{else}}<p>No users</p>{{/each}}</div>",
        '<div class="users">{% for user in users %}'
        '<div class="user">'
        "<h2>{{ user.name|upper }}</h2>"
        "{% if user.admin %}<span>admin</span>{% else %}<span>member</span>{% endif %}"
        '<a href="/users/{{ user.id }}">{{ user.email }}</a>'
        "</div>"
        "{% else %}<p>No users</p>{% endfor %}</div>",
    ),
    "large": (
        "<table>{{#each rows}}<tr>{{#each this}}<td>{{ this }}</td>{{/each}}</tr>{{/each}}</table>",
        "<table>{% for row in rows %}<tr>{% for cell in row %}<td>{{ cell }}</td>"
        "{% endfor %}</tr>{% endfor %}</table>",
    ),
}

SMALL_CONTEXT: dict[str, object] = {
    "name": "Benchmark",
    "title": "Shopping <list>",
    "items": ["apples", "pears & plums", "bread", "milk", "eggs"],
}

MEDIUM_CONTEXT: dict[str, object] = {
    "users": [
        {"id": i, "name": f"user {i}", "email": f"user{i}@example.com", "admin": i % 7 == 0}
        for i in range(100)
    ],
}

LARGE_CONTEXT: dict[str, object] = {
    "rows": [[f"r{r}c{c}" for c in range(10)] for r in range(100)],
}


def _version(dist: str) -> str:
    try:
        return importlib_metadata.version(dist)
    except importlib_metadata.PackageNotFoundError:
        return "unknown"


def collect_environment_metadata() -> dict[str, object]:
    """Capture reproducibility metadata for each benchmark run."""
    return {
        "python": {
            "version": platform.python_version(),
            "implementation": platform.python_implementation(),
            "executable": sys.executable,
        },
        "os": {
            "system": platform.system(),
            "release": platform.release(),
            "machine": platform.machine(),
        },
        "cpu": {
            "processor": platform.processor(),
            "count": os.cpu_count(),
        },
        "coral": _version("coral-render"),
        "jinja2": _version("jinja2"),
    }


@pytest.fixture(scope="session", autouse=True)
def environment_metadata() -> dict[str, object]:
    """Write environment metadata to .benchmarks for ingestion."""
    metadata = collect_environment_metadata()
    (BENCHMARK_OUTPUT_DIR / "environment.json").write_text(json.dumps(metadata, indent=2))
    return metadata


@pytest.fixture(scope="session")
def coral_env() -> CoralEnvironment:
    return CoralEnvironment()


@pytest.fixture(scope="session")
def jinja2_env() -> Jinja2Environment:
    return Jinja2Environment(autoescape=True)


@pytest.fixture(scope="session")
def small_context() -> dict[str, object]:
    return SMALL_CONTEXT


@pytest.fixture(scope="session")
def medium_context() -> dict[str, object]:
    return MEDIUM_CONTEXT


@pytest.fixture(scope="session")
def large_context() -> dict[str, object]:
    return LARGE_CONTEXT


@pytest.fixture(scope="session")
def templates() -> dict[str, tuple[str, str]]:
    return TEMPLATES
