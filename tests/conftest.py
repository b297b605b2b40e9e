"""
tests/conftest.py
Shared fixtures for the crudgen test suite.

No external mocking libraries are used; real file I/O is performed
inside temporary directories managed by pytest's tmp_path fixture.
"""

from __future__ import annotations

import copy
import pathlib
from typing import Any, Dict

import pytest
import yaml

from crudgen.generator import parse_raw_schema
from crudgen.models import Entity, GenerationConfig, SchemaDefinition


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

ROOT_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
SCHEMA_EXAMPLE_PATH: pathlib.Path = ROOT_DIR / "schema_example.yaml"


def make_entity(name: str, **body: Any) -> Entity:
    """Build an ``Entity`` from schema-shaped keyword arguments."""
    return Entity.model_validate({"name": name, **body})


def belongs_to(name: str, **attrs: Any) -> Dict[str, Any]:
    return {"kind": "belongs_to", "name": name, "attrs": attrs}


def has_many(name: str, **attrs: Any) -> Dict[str, Any]:
    return {"kind": "has_many", "name": name, "attrs": attrs}


# ---------------------------------------------------------------------------
# Raw schema data fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def raw_schema_dict() -> Dict[str, Any]:
    """Load the reference schema_example.yaml once per session and return as dict."""
    assert SCHEMA_EXAMPLE_PATH.exists(), (
        f"Reference schema not found at {SCHEMA_EXAMPLE_PATH}. "
        "Make sure schema_example.yaml is in the project root."
    )
    with open(SCHEMA_EXAMPLE_PATH, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    assert isinstance(data, dict), "Top-level YAML must be a mapping."
    return data


@pytest.fixture()
def schema_dict(raw_schema_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Return a deep copy so each test can mutate freely."""
    return copy.deepcopy(raw_schema_dict)


@pytest.fixture()
def output_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    return tmp_path / "out"


@pytest.fixture()
def schema_yaml_path(schema_dict: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    """Write the schema dict to a temporary YAML file and return its path."""
    path = tmp_path / "schema.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(schema_dict, fh, default_flow_style=False, sort_keys=False)
    return path


@pytest.fixture()
def blog(schema_dict: Dict[str, Any], output_dir: pathlib.Path):
    """Parsed reference schema and a config pointing at ``output_dir``."""
    schema, config = parse_raw_schema(schema_dict, {"output_dir": str(output_dir)})
    return schema, config


@pytest.fixture()
def blog_schema(blog) -> SchemaDefinition:
    return blog[0]


@pytest.fixture()
def blog_config(blog) -> GenerationConfig:
    return blog[1]


# ---------------------------------------------------------------------------
# Minimal / edge-case schema fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_schema_dict() -> Dict[str, Any]:
    """Two entities, one nested under the other."""
    return {
        "target": {"framework": "rails"},
        "entities": {
            "post": {
                "attributes": {"title": "string", "body": "text"},
                "associations": [has_many("comments", dependent="destroy")],
            },
            "comment": {
                "attributes": {"body": "text"},
                "associations": [belongs_to("post")],
            },
        },
    }


@pytest.fixture()
def minimal_schema_yaml_path(
    minimal_schema_dict: Dict[str, Any], tmp_path: pathlib.Path
) -> pathlib.Path:
    """Write minimal schema to a temp YAML and return the path."""
    path = tmp_path / "minimal_schema.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(minimal_schema_dict, fh, default_flow_style=False, sort_keys=False)
    return path
