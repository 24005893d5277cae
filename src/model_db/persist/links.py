"""Polymorphic story links and check dependencies.

Story links point at a target through ``(target_type, target_id)`` rather
than a typed foreign key, so the database cannot cascade deletes to them.
``cleanup_references()`` is the delete engine's half of that contract.

Usage:
    from model_db.persist.links import resolve_link_target, cleanup_references

    target_id = resolve_link_target(adapter, "method", "Room.rename")
    removed = cleanup_references(adapter, "method", target_id)
"""

import logging
from typing import Any

from model_db.adapters.base import DatabaseClient
from model_db.errors import InvalidRecordError, NotFoundError, UnknownTargetTypeError
from model_db.persist.resolve import resolve_fk
from model_db.schema.models import SimpleFk
from model_db.schema.registry import (
    CHECKLIST_FK,
    METHOD_FK,
    POLYMORPHIC_REFERENCES,
    LinkKind,
)

logger = logging.getLogger(__name__)

# Name lookups for link kinds addressed by a single column.
_NAMED_TARGETS: dict[LinkKind, SimpleFk] = {
    LinkKind.ENTITY: SimpleFk(table="entities", lookup_column="name"),
    LinkKind.DOCUMENT: SimpleFk(table="documents", lookup_column="name"),
    LinkKind.NOTIFICATION: SimpleFk(table="notifications", lookup_column="channel"),
}

_METHOD_BY_NAME = SimpleFk(table="methods", lookup_column="name")


def link_kind(kind: str) -> LinkKind:
    """Parse a target type string.

    Raises:
        UnknownTargetTypeError: If ``kind`` is not a ``LinkKind`` value.
    """
    try:
        return LinkKind(kind)
    except ValueError:
        raise UnknownTargetTypeError(kind) from None


def resolve_link_target(adapter: DatabaseClient, kind: str, name: str) -> int:
    """Resolve a story link target to its row id.

    Methods accept ``"Entity.method"`` or a bare method name; every other
    kind is looked up by its name column.
    """
    target = link_kind(kind)
    if target is LinkKind.METHOD:
        if "." in name:
            return resolve_fk(adapter, METHOD_FK, name)
        return resolve_fk(adapter, _METHOD_BY_NAME, name)
    return resolve_fk(adapter, _NAMED_TARGETS[target], name)


def save_story_link(adapter: DatabaseClient, record: dict[str, Any], story_id: int) -> int:
    """Attach a ``{type, name}`` link to a story, idempotently."""
    kind = record.get("type")
    name = record.get("name")
    if kind is None or name is None:
        raise InvalidRecordError("_story_link", "links require 'type' and 'name'")

    target_id = resolve_link_target(adapter, str(kind), str(name))
    filters = {"story_id": story_id, "target_type": str(kind), "target_id": target_id}

    existing = adapter.select_one("story_links", "id", filters)
    if existing:
        return existing["id"]
    return adapter.insert("story_links", filters)["id"]


def _resolve_check(adapter: DatabaseClient, record: dict[str, Any]) -> int:
    checklist_id = resolve_fk(adapter, CHECKLIST_FK, str(record["checklist"]))
    method_id = resolve_fk(adapter, METHOD_FK, str(record["method"]))
    actor = str(record["actor"])
    row = adapter.select_one(
        "checks",
        "id",
        {"checklist_id": checklist_id, "actor": actor, "method_id": method_id},
    )
    if row is None:
        raise NotFoundError(
            "checks", f"{actor} {record['method']}", scoped_to=checklist_id
        )
    return row["id"]


def save_check_dep(adapter: DatabaseClient, record: dict[str, Any], check_id: int) -> int:
    """Record that check ``check_id`` depends on another check.

    The dependency is given either by id (``depends_on_id`` / ``id``) or by
    the other check's natural key (``checklist``, ``actor``, ``method``).
    """
    depends_on_id = record.get("depends_on_id") or record.get("id")

    if not depends_on_id and all(record.get(k) for k in ("checklist", "actor", "method")):
        depends_on_id = _resolve_check(adapter, record)

    if not depends_on_id:
        raise InvalidRecordError(
            "_check_dep",
            "dependency requires depends_on_id or checklist + actor + method",
        )

    if isinstance(depends_on_id, str) and depends_on_id.isdigit():
        depends_on_id = int(depends_on_id)
    if not isinstance(depends_on_id, int) or isinstance(depends_on_id, bool):
        raise InvalidRecordError("_check_dep", f"depends_on_id must be a check id, got {depends_on_id!r}")

    filters = {"check_id": check_id, "depends_on_id": depends_on_id}
    existing = adapter.select_one("check_deps", "id", filters)
    if existing:
        return existing["id"]
    return adapter.insert("check_deps", filters)["id"]


def cleanup_references(adapter: DatabaseClient, kind: str, target_id: int) -> int:
    """Delete every polymorphic reference to ``(kind, target_id)``.

    Returns:
        Number of reference rows removed.
    """
    removed = 0
    for table, kind_column, id_column in POLYMORPHIC_REFERENCES:
        removed += adapter.delete(table, {kind_column: kind, id_column: target_id})
    if removed:
        logger.debug("Removed %d polymorphic references to %s %d", removed, kind, target_id)
    return removed
