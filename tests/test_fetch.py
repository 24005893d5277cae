"""Tests for reading records back by natural key."""

import pytest

from model_db.errors import MissingNaturalKeyError
from model_db.persist import fetch, save


class TestFetch:
    """fetch() reproduces what save() stored."""

    def test_round_trip(self, adapter, room) -> None:
        """Every supplied field comes back, after declared coercions."""
        record = {
            "entity": "Room",
            "name": "move",
            "args": [{"name": "to", "type": "string"}],
            "return_type": "Room",
            "auth_required": False,
        }
        save(adapter, "method", record)

        method = fetch(adapter, "method", {"entity": "Room", "name": "move"})

        assert method["entity"] == "Room"
        assert method["name"] == "move"
        assert method["args"] == [{"name": "to", "type": "string"}]
        assert method["return_type"] == "Room"
        assert method["auth_required"] == 0
        assert method["entity_id"] == room

    def test_compound_fk_described(self, adapter, room) -> None:
        """Compound FKs read back as 'Parent.child'."""
        save(adapter, "checklist", {"name": "Launch", "checks": [{"actor": "admin", "method": "Room.rename"}]})

        check = fetch(adapter, "check", {"checklist": "Launch", "actor": "admin", "method": "Room.rename"})

        assert check["method"] == "Room.rename"
        assert check["checklist"] == "Launch"
        assert check["seq"] == 1

    def test_missing_returns_none(self, adapter) -> None:
        """No match is None, not an error."""
        assert fetch(adapter, "entity", {"name": "Ghost"}) is None

    def test_requires_full_key(self, adapter, room) -> None:
        """Natural-key fields are required, as for delete."""
        with pytest.raises(MissingNaturalKeyError):
            fetch(adapter, "field", {"name": "id"})

    def test_children_attached(self, adapter, room) -> None:
        """Children come back under their collection keys."""
        entity = fetch(adapter, "entity", {"name": "Room"})
        assert [f["name"] for f in entity["fields"]] == ["id", "name"]
        assert [m["name"] for m in entity["methods"]] == ["rename"]

    def test_nested_expansions_not_flattened(self, adapter) -> None:
        """A document lists only top-level expansions; nested ones sit below."""
        for name in ("Project", "Task", "Comment"):
            save(adapter, "entity", {"name": name})
        save(adapter, "document", {
            "name": "project",
            "entity": "Project",
            "expansions": [{
                "name": "tasks",
                "entity": "Task",
                "foreign_key": "project_id",
                "expansions": [{"name": "comments", "entity": "Comment", "foreign_key": "task_id"}],
            }],
        })

        doc = fetch(adapter, "document", {"name": "project"})

        assert [x["name"] for x in doc["expansions"]] == ["tasks"]
        assert [x["name"] for x in doc["expansions"][0]["expansions"]] == ["comments"]

    def test_key_value(self, adapter) -> None:
        """Metadata reads back as its raw row."""
        save(adapter, "metadata", {"key": "theme", "value": "dark"})
        assert fetch(adapter, "metadata", {"key": "theme"}) == {"key": "theme", "value": "dark"}
