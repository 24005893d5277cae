"""Shared fixtures: a fresh file-backed SQLite store per test."""

from collections.abc import Iterator

import pytest

from model_db.adapters.sql import SqlAlchemyAdapter
from model_db.persist import save
from model_db.schema.ddl import create_schema


@pytest.fixture
def adapter(tmp_path) -> Iterator[SqlAlchemyAdapter]:
    """Adapter on an empty store with every table created."""
    db = SqlAlchemyAdapter(str(tmp_path / "model.db"))
    create_schema(db)
    yield db
    db.close()


@pytest.fixture
def room(adapter) -> int:
    """Entity ``Room`` with fields ``id``, ``name`` and method ``rename``."""
    return save(adapter, "entity", {
        "name": "Room",
        "fields": [
            {"name": "id", "type": "number"},
            {"name": "name", "type": "string"},
        ],
        "methods": [{"name": "rename", "args": [{"name": "name", "type": "string"}]}],
    })
