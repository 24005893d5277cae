"""Natural-key to surrogate-id resolution.

Resolution is exact-match only: no case folding, no partial matching.
Compound references use a single ``.`` separator, so names containing a
literal ``.`` cannot be reached through a compound rule.

Usage:
    from model_db.persist.resolve import resolve_fk

    entity_id = resolve_fk(adapter, schema.fk_for("entity"), "Room")
    method_id = resolve_fk(adapter, METHOD_FK, "Room.rename")
"""

import logging
from typing import Any

from model_db.adapters.base import DatabaseClient
from model_db.errors import MalformedReferenceError, NotFoundError
from model_db.schema.models import CompoundFk, FkRule, SchemaDefinition, ScopedRef, SimpleFk

logger = logging.getLogger(__name__)

SEPARATOR = "."


def split_compound(value: str) -> tuple[str, str]:
    """Split ``"Parent.child"`` into its two parts.

    Raises:
        MalformedReferenceError: Unless the value holds exactly one
            separator with non-empty text on both sides.

    Example:
        >>> split_compound("Room.rename")
        ('Room', 'rename')
    """
    parts = value.split(SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise MalformedReferenceError(value)
    return parts[0], parts[1]


def _lookup_id(adapter: DatabaseClient, table: str, filters: dict[str, Any]) -> int | None:
    row = adapter.select_one(table, "id", filters)
    return row["id"] if row else None


def resolve_fk(adapter: DatabaseClient, rule: FkRule, value: str) -> int:
    """Resolve a raw reference value to the referenced row's id.

    Args:
        adapter: Database adapter (joins any open transaction).
        rule: FK rule, or a bare ``SimpleFk``/``CompoundFk``.
        value: Raw natural-key text from the record.

    Returns:
        Surrogate id of the referenced row.

    Raises:
        NotFoundError: If the referenced row (or compound parent) is absent.
        MalformedReferenceError: If a compound value is badly formed.
    """
    resolve = rule.resolve if isinstance(rule, FkRule) else rule

    if isinstance(resolve, SimpleFk):
        row_id = _lookup_id(adapter, resolve.table, {resolve.lookup_column: value})
        if row_id is None:
            raise NotFoundError(resolve.table, value)
        return row_id

    if isinstance(resolve, CompoundFk):
        parent_name, child_name = split_compound(value)
        parent_id = _lookup_id(
            adapter, resolve.parent_table, {resolve.parent_lookup_column: parent_name}
        )
        if parent_id is None:
            raise NotFoundError(resolve.parent_table, parent_name)
        row_id = _lookup_id(
            adapter,
            resolve.table,
            {resolve.parent_id_column: parent_id, resolve.lookup_column: child_name},
        )
        if row_id is None:
            raise NotFoundError(resolve.table, child_name, scoped_to=parent_id)
        return row_id

    raise TypeError(f"Unsupported FK resolution: {type(resolve).__name__}")


def resolve_fks(
    adapter: DatabaseClient, schema: SchemaDefinition, record: dict[str, Any]
) -> dict[str, int]:
    """Resolve every FK field present (and non-null) in ``record``.

    Returns:
        Dict mapping FK column to resolved id.
    """
    resolved: dict[str, int] = {}
    for fk in schema.fks:
        value = record.get(fk.field)
        if value is None:
            continue
        resolved[fk.column] = resolve_fk(adapter, fk, str(value))
        logger.debug("Resolved %s=%r -> %s=%d", fk.field, value, fk.column, resolved[fk.column])
    return resolved


def resolve_scoped(
    adapter: DatabaseClient, ref: ScopedRef, value: str, scope_id: int
) -> int:
    """Resolve a name within an already-resolved scope column."""
    row_id = _lookup_id(adapter, ref.table, {ref.scope_column: scope_id, ref.lookup_column: value})
    if row_id is None:
        raise NotFoundError(ref.table, value, scoped_to=scope_id)
    return row_id
