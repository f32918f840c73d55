"""
tests/conftest.py
Shared fixtures for the entitygen test suite.

All fixtures are session-scoped or function-scoped as appropriate.
No external mocking libraries are used; real file I/O is performed
inside temporary directories managed by pytest's tmp_path fixtures.
"""

from __future__ import annotations

import copy
import pathlib
from typing import Any, Dict, List

import pytest
import yaml

from entitygen.models import GenerationConfig


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

ROOT_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
ENTITIES_EXAMPLE_PATH: pathlib.Path = ROOT_DIR / "entities_example.yaml"


# ---------------------------------------------------------------------------
# Reference document fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def raw_document_dict() -> Dict[str, Any]:
    """Load the reference entities_example.yaml once per session."""
    assert ENTITIES_EXAMPLE_PATH.exists(), (
        f"Reference document not found at {ENTITIES_EXAMPLE_PATH}. "
        "Make sure entities_example.yaml is in the project root."
    )
    with open(ENTITIES_EXAMPLE_PATH, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    assert isinstance(data, dict), "Top-level YAML must be a mapping."
    return data


@pytest.fixture()
def document_dict(raw_document_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Return a deep copy so each test can mutate freely."""
    return copy.deepcopy(raw_document_dict)


@pytest.fixture()
def document_yaml_path(document_dict: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    """Write the reference document to a temporary YAML file and return its path."""
    path = tmp_path / "entities.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(document_dict, fh, default_flow_style=False, allow_unicode=True)
    return path


@pytest.fixture()
def config() -> GenerationConfig:
    return GenerationConfig(package_name="app")


def entity_dict(document: Dict[str, Any], name: str) -> Dict[str, Any]:
    """The raw declaration of entity *name* inside *document*."""
    for entity in document["entities"]:
        if entity["name"] == name:
            return entity
    raise KeyError(name)


@pytest.fixture()
def user_dict(document_dict: Dict[str, Any]) -> Dict[str, Any]:
    return entity_dict(document_dict, "User")


@pytest.fixture()
def post_dict(document_dict: Dict[str, Any]) -> Dict[str, Any]:
    return entity_dict(document_dict, "Post")


@pytest.fixture()
def product_dict(document_dict: Dict[str, Any]) -> Dict[str, Any]:
    return entity_dict(document_dict, "Product")


# ---------------------------------------------------------------------------
# Minimal / edge-case entity fixtures
# ---------------------------------------------------------------------------


def _field(name: str, type_: str, **attributes: Any) -> Dict[str, Any]:
    return {"name": name, "type": type_, "attributes": attributes}


@pytest.fixture()
def minimal_entity_dict() -> Dict[str, Any]:
    """Smallest valid entity: one identifier field, no markers."""
    return {
        "name": "Tag",
        "attributes": {"table": "tags"},
        "fields": [_field("id", "Uuid", id=True)],
    }


@pytest.fixture()
def inventory_entity_dict() -> Dict[str, Any]:
    """Identifier, unique sku and a defaulted quantity, all exposed."""
    exposed: List[str] = ["create", "update", "response"]
    return {
        "name": "Item",
        "attributes": {"table": "items", "migrations": True},
        "fields": [
            _field("id", "Uuid", id=True),
            _field("sku", "String", field=exposed, column={"unique": True}),
            _field(
                "quantity", "i32", field=exposed, filter="range", column={"default": 0}
            ),
        ],
    }


@pytest.fixture()
def article_entity_dict() -> Dict[str, Any]:
    """Soft-deleted entity with one filter of each kind."""
    return {
        "name": "Article",
        "attributes": {"table": "articles", "soft_delete": True},
        "fields": [
            _field("id", "Uuid", id=True),
            _field("title", "String", field=["create", "update", "response"], filter="like"),
            _field("author", "String", field=["create", "response"], filter=True),
            _field("views", "i64", field="response", filter="range"),
            _field("deleted_at", "Option<DateTime<Utc>>", field="skip"),
        ],
    }


@pytest.fixture()
def clickhouse_document_dict() -> Dict[str, Any]:
    """A Postgres entity next to a ClickHouse entity that needs a backend."""
    return {
        "config": {"project_name": "analytics", "package_name": "analytics"},
        "entities": [
            {
                "name": "Account",
                "attributes": {"table": "accounts"},
                "fields": [
                    _field("id", "Uuid", id=True),
                    _field("email", "String", field=["create", "response"]),
                ],
            },
            {
                "name": "PageView",
                "attributes": {"table": "page_views", "dialect": "clickhouse"},
                "fields": [
                    _field("id", "Uuid", id=True),
                    _field("path", "String", field=["create", "response"]),
                ],
            },
        ],
    }


@pytest.fixture()
def write_yaml(tmp_path: pathlib.Path):
    """Return a helper that dumps a dict to ``tmp_path/<name>`` as YAML."""

    def _write(data: Dict[str, Any], name: str = "entities.yaml") -> pathlib.Path:
        path = tmp_path / name
        with open(path, "w", encoding="utf-8") as fh:
            yaml.dump(data, fh, default_flow_style=False, allow_unicode=True)
        return path

    return _write
