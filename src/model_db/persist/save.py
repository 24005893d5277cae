"""Coalescing upsert driven by the schema registry.

``save()`` matches a record to an existing row by natural key and updates
only the columns the record supplies; with no match it inserts a full row
with schema defaults.  Declared child collections are saved recursively
under the new or matched row.  The whole tree runs in one transaction, so
any failure leaves the store unchanged.

Usage:
    from model_db.persist.save import save

    room_id = save(adapter, "entity", {
        "name": "Room",
        "fields": [{"name": "id", "type": "number"}, {"name": "name"}],
    })
    save(adapter, "field", {"entity": "Room", "name": "capacity", "type": "number"})
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from model_db.adapters.base import DatabaseClient
from model_db.errors import InvalidRecordError, MissingNaturalKeyError
from model_db.persist.links import save_check_dep, save_story_link
from model_db.persist.resolve import resolve_fks, resolve_scoped
from model_db.schema.models import PARENT_KEY, ChildDef, SchemaDefinition, ScopedRef
from model_db.schema.registry import get_schema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParentLink:
    """The row a child is being saved under, and the child column that points at it."""

    id: int
    column: str


# ------------------------------------------------------------------
# Record projection helpers (shared with delete and fetch)
# ------------------------------------------------------------------


def coerce_value(schema: SchemaDefinition, field: str, value: Any) -> Any:
    """Apply the schema's storage coercion for one logical field."""
    if field in schema.booleans:
        return 1 if value else 0
    if field in schema.json_fields and not isinstance(value, str):
        return json.dumps(value)
    return value


def project_columns(schema: SchemaDefinition, record: dict[str, Any]) -> dict[str, Any]:
    """Map the scalar fields present in ``record`` to physical columns.

    Fields absent from the record are not projected: on update they stay
    untouched, on insert they take the schema default.
    """
    values: dict[str, Any] = {}
    for field, column in schema.columns.items():
        if field in record:
            values[column] = coerce_value(schema, field, record[field])

    for flag, overrides in schema.flag_overrides.items():
        if record.get(flag):
            for field, value in overrides.items():
                values[schema.columns[field]] = coerce_value(schema, field, value)

    return values


def natural_key_filters(
    schema_name: str,
    schema: SchemaDefinition,
    resolved: dict[str, int],
    values: dict[str, Any],
    parent: ParentLink | None = None,
    use_defaults: bool = True,
) -> dict[str, Any]:
    """Build the ``{column: value}`` lookup for the schema's natural key.

    Each field is taken from, in order: a resolved FK column, the parent
    link (for ``_parent_id``), the projected scalar value, and, when
    ``use_defaults`` is set, the schema default.

    Raises:
        MissingNaturalKeyError: If any field has no value.
    """
    where: dict[str, Any] = {}
    for nk in schema.natural_key:
        fk = schema.fk_for(nk)
        if fk is not None and fk.column in resolved:
            where[fk.column] = resolved[fk.column]
        elif nk == PARENT_KEY and parent is not None:
            where[parent.column] = parent.id
        elif nk in schema.columns and values.get(schema.columns[nk]) is not None:
            where[schema.columns[nk]] = values[schema.columns[nk]]
        elif use_defaults and nk in schema.columns and nk in schema.defaults:
            where[schema.columns[nk]] = coerce_value(schema, nk, schema.defaults[nk])
        else:
            raise MissingNaturalKeyError(schema_name, nk)
    return where


def expand_shorthand(child_def: ChildDef, item: Any) -> dict[str, Any]:
    """Turn a child array element into a record.

    Bare scalars expand to ``{shorthand_field: item}`` when the child
    definition declares one; anything else must already be an object.
    """
    if isinstance(item, dict):
        return dict(item)
    if child_def.shorthand_field and isinstance(item, (str, int, float)) and not isinstance(item, bool):
        return {child_def.shorthand_field: item}
    raise InvalidRecordError(
        child_def.schema_name, f"entries of '{child_def.key}' must be objects, got {item!r}"
    )


# ------------------------------------------------------------------
# Save
# ------------------------------------------------------------------


def save(adapter: DatabaseClient, schema_name: str, record: dict[str, Any]) -> int:
    """Upsert ``record`` (and its children) by natural key.

    Args:
        adapter: Database adapter.
        schema_name: Public schema name, e.g. ``"entity"``.
        record: Semi-structured record; child collections are nested arrays.

    Returns:
        Surrogate id of the saved row, or ``0`` for key-value schemas.

    Raises:
        UnknownSchemaError: Before any transaction is opened.
        NotFoundError, MalformedReferenceError, MissingNaturalKeyError,
        InvalidRecordError: The transaction is rolled back.
    """
    schema = get_schema(schema_name)
    if not isinstance(record, dict):
        raise InvalidRecordError(schema_name, "record must be an object")

    with adapter.transaction():
        return _save(adapter, schema_name, schema, record)


def _save(
    adapter: DatabaseClient,
    schema_name: str,
    schema: SchemaDefinition,
    record: dict[str, Any],
    parent: ParentLink | None = None,
    inherited: dict[str, int] | None = None,
) -> int:
    if schema.kind == "key_value":
        return _save_key_value(adapter, schema_name, schema, record)
    if schema.kind == "story_link":
        return save_story_link(adapter, record, _require_parent(schema_name, parent).id)
    if schema.kind == "check_dep":
        return save_check_dep(adapter, record, _require_parent(schema_name, parent).id)

    # 1. Resolve FKs, then layer ancestor scope and the parent link on top
    resolved = resolve_fks(adapter, schema, record)
    if inherited:
        resolved.update(inherited)

    if parent is not None:
        resolved[parent.column] = parent.id

    ref = schema.parent_ref
    if ref is not None and record.get(ref.field) is not None:
        resolved[ref.column] = _resolve_parent_ref(adapter, schema_name, ref, record, resolved)

    # The parent link wins over anything the record names
    if parent is not None:
        resolved[parent.column] = parent.id

    # 2. Project scalars and compute the natural key
    values = project_columns(schema, record)
    where = natural_key_filters(schema_name, schema, resolved, values, parent)

    # 3. Update the matched row, or insert a new one
    existing = adapter.select_one(schema.table, "id", where)

    if existing:
        row_id = existing["id"]
        changes = {**values, **resolved}
        for column in where:
            changes.pop(column, None)
        if parent is not None:
            changes.pop(parent.column, None)
        if changes:
            adapter.update(schema.table, changes, {"id": row_id})
        logger.debug("Updated %s %d (%d columns)", schema.table, row_id, len(changes))
    else:
        row_id = _insert(adapter, schema, record, values, resolved)
        logger.debug("Inserted %s %d", schema.table, row_id)

    # 4. Recurse into declared children
    _save_children(adapter, schema_name, schema, record, row_id, resolved, values)

    return row_id


def _resolve_parent_ref(
    adapter: DatabaseClient,
    schema_name: str,
    ref: ScopedRef,
    record: dict[str, Any],
    resolved: dict[str, int],
) -> int:
    if ref.scope_column not in resolved:
        raise InvalidRecordError(
            schema_name, f"'{ref.field}' can only be resolved once {ref.scope_column} is known"
        )

    name = str(record[ref.field])
    row_id = resolve_scoped(adapter, ref, name, resolved[ref.scope_column])

    if ref.blocked_by:
        row = adapter.select_one(ref.table, ref.blocked_by, {"id": row_id})
        if row and row[ref.blocked_by]:
            raise InvalidRecordError(
                schema_name, f"cannot be attached to '{name}', which is {ref.blocked_by}"
            )
    return row_id


def _insert(
    adapter: DatabaseClient,
    schema: SchemaDefinition,
    record: dict[str, Any],
    values: dict[str, Any],
    resolved: dict[str, int],
) -> int:
    row: dict[str, Any] = {}
    for field, default in schema.defaults.items():
        column = schema.columns.get(field)
        if column and column not in values:
            row[column] = coerce_value(schema, field, default)

    seq = schema.sequence
    if seq is not None and seq.field not in record and seq.scope_column in resolved:
        row[schema.columns[seq.field]] = _next_ordinal(
            adapter, schema.table, schema.columns[seq.field], seq.scope_column, resolved[seq.scope_column]
        )

    row.update(values)
    row.update(resolved)
    return adapter.insert(schema.table, row)["id"]


def _next_ordinal(
    adapter: DatabaseClient, table: str, column: str, scope_column: str, scope_id: int
) -> int:
    rows = adapter.query(
        f"SELECT COALESCE(MAX({column}), 0) AS m FROM {table} WHERE {scope_column} = :scope",
        {"scope": scope_id},
    )
    return rows[0]["m"] + 1


def _save_children(
    adapter: DatabaseClient,
    schema_name: str,
    schema: SchemaDefinition,
    record: dict[str, Any],
    row_id: int,
    resolved: dict[str, int],
    values: dict[str, Any],
) -> None:
    for child_def in schema.children:
        items = record.get(child_def.key)
        if not isinstance(items, list) or not items:
            continue

        if child_def.blocked_by and _flag_is_set(adapter, schema, row_id, values, child_def.blocked_by):
            raise InvalidRecordError(
                schema_name,
                f"'{child_def.key}' cannot be nested under a {child_def.blocked_by} row",
            )

        child_schema = get_schema(child_def.schema_name, allow_internal=True)
        inherited = {c: resolved[c] for c in child_def.inherit_columns if c in resolved}
        link = ParentLink(id=row_id, column=child_def.parent_fk_column)

        for item in items:
            child_record = expand_shorthand(child_def, item)
            _save(adapter, child_def.schema_name, child_schema, child_record, link, inherited)


def _flag_is_set(
    adapter: DatabaseClient,
    schema: SchemaDefinition,
    row_id: int,
    values: dict[str, Any],
    field: str,
) -> bool:
    column = schema.columns[field]
    if column in values:
        return bool(values[column])
    row = adapter.select_one(schema.table, column, {"id": row_id})
    return bool(row and row[column])


def _require_parent(schema_name: str, parent: ParentLink | None) -> ParentLink:
    if parent is None:
        raise InvalidRecordError(schema_name, "can only be saved as a nested child")
    return parent


def _save_key_value(
    adapter: DatabaseClient,
    schema_name: str,
    schema: SchemaDefinition,
    record: dict[str, Any],
) -> int:
    """Replace-by-key for schemas without a surrogate id."""
    values = project_columns(schema, record)
    missing = [f for f, c in schema.columns.items() if values.get(c) is None]
    if missing:
        raise InvalidRecordError(schema_name, f"requires {' and '.join(missing)}")

    key_columns = [schema.columns[nk] for nk in schema.natural_key]
    other_columns = [c for c in values if c not in key_columns]
    updates = ", ".join(f"{c} = excluded.{c}" for c in other_columns)

    adapter.execute(
        f"INSERT INTO {schema.table} ({', '.join(values)}) "
        f"VALUES ({', '.join(':' + c for c in values)}) "
        f"ON CONFLICT ({', '.join(key_columns)}) DO UPDATE SET {updates}",
        values,
    )
    logger.debug("Replaced %s %s", schema.table, {c: values[c] for c in key_columns})
    return 0
