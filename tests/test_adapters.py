"""Tests for the SQLAlchemy adapter."""

import pytest
from sqlalchemy.exc import IntegrityError

from model_db.adapters import DatabaseClient, SqlAlchemyAdapter
from model_db.adapters.base import iter_filters


class TestProtocol:
    """SqlAlchemyAdapter satisfies DatabaseClient structurally."""

    def test_has_protocol_methods(self, adapter) -> None:
        """Every protocol method is present and callable."""
        for name in ("transaction", "select", "select_one", "insert", "update",
                     "delete", "query", "execute", "close"):
            assert callable(getattr(adapter, name)), name
        client: DatabaseClient = adapter
        assert client is adapter


class TestCrud:
    """Basic dict-based CRUD."""

    def test_insert_returns_row(self, adapter) -> None:
        """insert() returns every column, defaults included."""
        entity = adapter.insert("entities", {"name": "Room"})
        field = adapter.insert("fields", {"entity_id": entity["id"], "name": "id"})
        assert field["type"] == "string"
        assert field["entity_id"] == entity["id"]

    def test_select_null_filter(self, adapter) -> None:
        """A None filter value matches IS NULL."""
        e = adapter.insert("entities", {"name": "Room"})["id"]
        d = adapter.insert("documents", {"name": "rooms", "entity_id": e})["id"]
        top = adapter.insert(
            "expansions", {"document_id": d, "name": "a", "entity_id": e, "foreign_key": "k"}
        )["id"]
        adapter.insert(
            "expansions",
            {"document_id": d, "name": "b", "entity_id": e, "foreign_key": "k", "parent_expansion_id": top},
        )

        rows = adapter.select("expansions", "name", {"parent_expansion_id": None})
        assert rows == [{"name": "a"}]

    def test_update_and_delete_counts(self, adapter) -> None:
        """update() and delete() report affected rows."""
        adapter.insert("entities", {"name": "Room"})
        assert adapter.update("entities", {"name": "Hall"}, {"name": "Room"}) == 1
        assert adapter.update("entities", {}, {"name": "Hall"}) == 0
        assert adapter.delete("entities", {"name": "Room"}) == 0
        assert adapter.delete("entities", {"name": "Hall"}) == 1

    def test_delete_requires_filters(self, adapter) -> None:
        """An unfiltered delete is refused."""
        with pytest.raises(ValueError):
            adapter.delete("entities", {})

    def test_foreign_keys_enforced(self, adapter) -> None:
        """SQLite connections run with foreign keys on."""
        with pytest.raises(IntegrityError):
            adapter.insert("fields", {"entity_id": 999, "name": "id"})

    def test_json_columns(self, tmp_path) -> None:
        """Lists in declared JSON columns are serialized."""
        db = SqlAlchemyAdapter(str(tmp_path / "j.db"), json_columns=["value"])
        try:
            db.execute("CREATE TABLE metadata (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
            db.insert("metadata", {"key": "tags", "value": ["a", "b"]})
            assert db.select_one("metadata", "value", {"key": "tags"})["value"] == '["a", "b"]'
        finally:
            db.close()


class TestTransactions:
    """All-or-nothing blocks."""

    def test_commit(self, adapter) -> None:
        """Rows written inside a block are visible after it."""
        with adapter.transaction():
            adapter.insert("entities", {"name": "Room"})
            assert adapter.in_transaction
        assert not adapter.in_transaction
        assert len(adapter.select("entities", "id")) == 1

    def test_rollback_on_error(self, adapter) -> None:
        """An exception undoes everything in the block."""
        with pytest.raises(RuntimeError):
            with adapter.transaction():
                adapter.insert("entities", {"name": "Room"})
                raise RuntimeError("boom")
        assert adapter.select("entities", "id") == []

    def test_nested_block_joins_outer(self, adapter) -> None:
        """An inner failure rolls back the outer block too."""
        with pytest.raises(RuntimeError):
            with adapter.transaction():
                adapter.insert("entities", {"name": "Room"})
                with adapter.transaction():
                    adapter.insert("entities", {"name": "Hall"})
                raise RuntimeError("boom")
        assert adapter.select("entities", "id") == []


class TestIterFilters:
    """Filter rendering."""

    def test_clauses(self) -> None:
        """Values bind by position; None renders IS NULL."""
        assert list(iter_filters({"a": 1, "b": None}, "p")) == [
            ("a = :p_0", "p_0", 1),
            ("b IS NULL", "p_1", None),
        ]
