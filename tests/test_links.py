"""Tests for story links and check dependencies."""

import pytest

from model_db.errors import InvalidRecordError, NotFoundError, UnknownTargetTypeError
from model_db.persist import cleanup_references, resolve_link_target, save
from model_db.persist.links import link_kind
from model_db.schema.registry import LinkKind


# ------------------------------------------------------------------
# Target resolution
# ------------------------------------------------------------------


class TestResolveLinkTarget:
    """Every link kind resolves through its own lookup."""

    def test_entity_and_document_by_name(self, adapter, room) -> None:
        """Entities and documents are looked up by name."""
        doc = save(adapter, "document", {"name": "rooms", "entity": "Room"})
        assert resolve_link_target(adapter, "entity", "Room") == room
        assert resolve_link_target(adapter, "document", "rooms") == doc

    def test_method_compound_or_bare(self, adapter, room) -> None:
        """Methods accept 'Entity.method' and a bare method name."""
        method = adapter.select_one("methods", "id", {"name": "rename"})["id"]
        assert resolve_link_target(adapter, "method", "Room.rename") == method
        assert resolve_link_target(adapter, "method", "rename") == method

    def test_notification_by_channel(self, adapter, room) -> None:
        """Notifications are addressed by channel."""
        save(adapter, "method", {
            "entity": "Room",
            "name": "rename",
            "notifications": [{"channel": "room-updates", "recipients": "owners"}],
        })
        notification = adapter.select_one("notifications", "id", {"channel": "room-updates"})
        assert resolve_link_target(adapter, "notification", "room-updates") == notification["id"]

    def test_unknown_type(self, adapter) -> None:
        """A kind outside LinkKind is rejected."""
        with pytest.raises(UnknownTargetTypeError) as exc_info:
            resolve_link_target(adapter, "widget", "x")
        assert exc_info.value.kind == "widget"

    def test_link_kind_values(self) -> None:
        """LinkKind parses its own values."""
        assert link_kind("method") is LinkKind.METHOD
        assert {k.value for k in LinkKind} == {"entity", "document", "method", "notification"}


# ------------------------------------------------------------------
# Story links
# ------------------------------------------------------------------


class TestStoryLinks:
    """Links are children of stories."""

    def test_links_saved_and_idempotent(self, adapter, room) -> None:
        """Re-saving the story does not duplicate links."""
        record = {
            "actor": "admin",
            "action": "rename rooms",
            "links": [{"type": "entity", "name": "Room"}, {"type": "method", "name": "Room.rename"}],
        }
        story = save(adapter, "story", record)
        save(adapter, "story", record)

        links = adapter.select("story_links", "target_type", {"story_id": story}, order_by="id")
        assert [link["target_type"] for link in links] == ["entity", "method"]

    def test_unresolved_target_rolls_back_story(self, adapter, room) -> None:
        """A link to a missing target aborts the whole story save."""
        with pytest.raises(NotFoundError):
            save(adapter, "story", {
                "actor": "admin",
                "action": "rename rooms",
                "links": [{"type": "entity", "name": "Room"}, {"type": "entity", "name": "Ghost"}],
            })
        assert adapter.select("stories", "id") == []
        assert adapter.select("story_links", "id") == []

    def test_link_requires_type_and_name(self, adapter) -> None:
        """A link without a type is invalid."""
        with pytest.raises(InvalidRecordError):
            save(adapter, "story", {"actor": "a", "action": "b", "links": [{"name": "Room"}]})

    def test_unknown_link_type(self, adapter, room) -> None:
        """Unknown link types surface as UnknownTargetTypeError."""
        with pytest.raises(UnknownTargetTypeError):
            save(adapter, "story", {
                "actor": "a", "action": "b", "links": [{"type": "widget", "name": "Room"}],
            })

    def test_cleanup_references_counts(self, adapter, room) -> None:
        """cleanup_references reports how many links it removed."""
        save(adapter, "story", {"actor": "a", "action": "b", "links": [{"type": "entity", "name": "Room"}]})
        save(adapter, "story", {"actor": "c", "action": "d", "links": [{"type": "entity", "name": "Room"}]})

        assert cleanup_references(adapter, "entity", room) == 2
        assert cleanup_references(adapter, "entity", room) == 0


# ------------------------------------------------------------------
# Check dependencies
# ------------------------------------------------------------------


@pytest.fixture
def checklist(adapter, room) -> dict[str, int]:
    """Checklist 'Launch' with checks by admin and guest on Room.rename."""
    save(adapter, "checklist", {
        "name": "Launch",
        "checks": [
            {"actor": "admin", "method": "Room.rename"},
            {"actor": "guest", "method": "Room.rename"},
        ],
    })
    return {c["actor"]: c["id"] for c in adapter.select("checks", "id, actor")}


class TestCheckDependencies:
    """depends_on children of a check."""

    def test_dependency_by_id_shorthand(self, adapter, checklist) -> None:
        """A bare id in depends_on becomes depends_on_id."""
        save(adapter, "check", {
            "checklist": "Launch",
            "actor": "guest",
            "method": "Room.rename",
            "depends_on": [checklist["admin"]],
        })
        deps = adapter.select("check_deps", "check_id, depends_on_id")
        assert deps == [{"check_id": checklist["guest"], "depends_on_id": checklist["admin"]}]

    def test_dependency_by_natural_key(self, adapter, checklist) -> None:
        """{checklist, actor, method} resolves to the other check."""
        record = {
            "checklist": "Launch",
            "actor": "guest",
            "method": "Room.rename",
            "depends_on": [{"checklist": "Launch", "actor": "admin", "method": "Room.rename"}],
        }
        save(adapter, "check", record)
        save(adapter, "check", record)

        deps = adapter.select("check_deps", "check_id, depends_on_id")
        assert deps == [{"check_id": checklist["guest"], "depends_on_id": checklist["admin"]}]

    def test_dependency_on_missing_check(self, adapter, checklist) -> None:
        """A natural key that matches no check is not found."""
        with pytest.raises(NotFoundError):
            save(adapter, "check", {
                "checklist": "Launch",
                "actor": "guest",
                "method": "Room.rename",
                "depends_on": [{"checklist": "Launch", "actor": "owner", "method": "Room.rename"}],
            })

    def test_dependency_needs_a_reference(self, adapter, checklist) -> None:
        """An empty dependency object is invalid."""
        with pytest.raises(InvalidRecordError):
            save(adapter, "check", {
                "checklist": "Launch",
                "actor": "guest",
                "method": "Room.rename",
                "depends_on": [{"actor": "admin"}],
            })

    @pytest.mark.parametrize("bad", ["abc", 1.5])
    def test_dependency_id_must_be_integral(self, adapter, checklist, bad) -> None:
        """A non-numeric shorthand is an invalid record, not a crash."""
        with pytest.raises(InvalidRecordError):
            save(adapter, "check", {
                "checklist": "Launch",
                "actor": "guest",
                "method": "Room.rename",
                "depends_on": [bad],
            })
        assert adapter.select("check_deps", "id") == []

    def test_numeric_string_id_accepted(self, adapter, checklist) -> None:
        """A digit string names a check id."""
        save(adapter, "check", {
            "checklist": "Launch",
            "actor": "guest",
            "method": "Room.rename",
            "depends_on": [str(checklist["admin"])],
        })
        deps = adapter.select("check_deps", "depends_on_id")
        assert deps == [{"depends_on_id": checklist["admin"]}]
