"""Tests for batch command execution."""

from model_db.persist import run_batch


class TestRunBatch:
    """Each command commits or fails on its own."""

    def test_all_ok(self, adapter) -> None:
        """Saves and deletes apply in order."""
        result = run_batch(adapter, [
            ["save", "entity", {"name": "Room", "fields": [{"name": "id"}]}],
            ["save", "field", {"entity": "Room", "name": "legacy"}],
            ["delete", "field", {"entity": "Room", "name": "legacy"}],
        ])

        assert result.success
        assert result.ok == 3
        assert [f["name"] for f in adapter.select("fields", "name")] == ["id"]

    def test_failure_isolated(self, adapter) -> None:
        """A failing command does not undo or block the others."""
        result = run_batch(adapter, [
            ["save", "entity", {"name": "Room"}],
            ["save", "field", {"entity": "Ghost", "name": "id"}],
            ["save", "entity", {"name": "Hall"}],
        ])

        assert result.ok == 2
        assert result.failed == 1
        assert result.failures[0].index == 1
        assert "Ghost" in result.failures[0].message
        assert {e["name"] for e in adapter.select("entities", "name")} == {"Room", "Hall"}

    def test_failed_command_rolls_back_its_children(self, adapter) -> None:
        """Within one command the tree is still all-or-nothing."""
        result = run_batch(adapter, [
            ["save", "entity", {"name": "Room", "fields": [{"name": "id"}, "bad"]}],
        ])
        assert result.failed == 1
        assert adapter.select("entities", "id") == []

    def test_malformed_commands(self, adapter) -> None:
        """Bad shapes and unknown operations are reported per command."""
        result = run_batch(adapter, [
            "save entity Room",
            ["save", "entity"],
            ["upsert", "entity", {"name": "Room"}],
            ["save", "entity", ["Room"]],
            ["save", "widget", {"name": "x"}],
        ])
        assert result.ok == 0
        assert [f.index for f in result.failures] == [0, 1, 2, 3, 4]

    def test_database_errors_collected(self, adapter) -> None:
        """Constraint violations are failures, not crashes."""
        result = run_batch(adapter, [
            ["save", "entity", {"name": "Room"}],
            ["save", "document", {"name": "rooms"}],
        ])
        assert result.ok == 1
        assert result.failed == 1

    def test_bad_dependency_does_not_stop_batch(self, adapter) -> None:
        """An invalid check dependency fails alone; later commands still run."""
        result = run_batch(adapter, [
            ["save", "entity", {"name": "Room", "methods": [{"name": "rename"}]}],
            ["save", "checklist", {
                "name": "Launch",
                "checks": [{"actor": "admin", "method": "Room.rename", "depends_on": ["abc"]}],
            }],
            ["save", "entity", {"name": "After"}],
        ])

        assert result.ok == 2
        assert [f.index for f in result.failures] == [1]
        assert adapter.select_one("entities", "id", {"name": "After"}) is not None
        assert adapter.select("checklists", "id") == []
