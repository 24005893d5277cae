"""Read a saved record back by natural key.

The inverse of ``save()``: physical columns are mapped back to logical
field names, FK ids are turned back into the names they were resolved
from, and declared child collections are attached in insertion order.

Usage:
    from model_db.persist.fetch import fetch

    room = fetch(adapter, "entity", {"name": "Room"})
    [f["name"] for f in room["fields"]]
    # ['id', 'name', 'capacity']
"""

import json
from typing import Any

from model_db.adapters.base import DatabaseClient
from model_db.persist.resolve import SEPARATOR, resolve_fks
from model_db.persist.save import natural_key_filters, project_columns
from model_db.schema.models import CompoundFk, FkRule, SchemaDefinition
from model_db.schema.registry import get_schema


def fetch(adapter: DatabaseClient, schema_name: str, key: dict[str, Any]) -> dict | None:
    """Load one record by natural key.

    Args:
        adapter: Database adapter.
        schema_name: Public schema name.
        key: Natural-key fields, e.g. ``{"entity": "Room", "name": "id"}``.

    Returns:
        The record with its ``id``, logical fields and children, or
        ``None`` if no row matches.

    Raises:
        UnknownSchemaError, NotFoundError, MalformedReferenceError,
        MissingNaturalKeyError: As for ``delete()``.
    """
    schema = get_schema(schema_name)
    resolved = resolve_fks(adapter, schema, key)
    values = project_columns(schema, key)
    where = natural_key_filters(schema_name, schema, resolved, values, use_defaults=False)

    row = adapter.select_one(schema.table, "*", where)
    if row is None:
        return None
    if schema.kind != "row":
        return row
    return _to_record(adapter, schema_name, schema, row)


def _to_record(
    adapter: DatabaseClient,
    schema_name: str,
    schema: SchemaDefinition,
    row: dict[str, Any],
) -> dict[str, Any]:
    record: dict[str, Any] = {"id": row["id"]}

    for field, column in schema.columns.items():
        record[field] = _decode(schema, field, row[column])

    for fk in schema.fks:
        record[fk.column] = row[fk.column]
        if row[fk.column] is not None:
            record[fk.field] = _describe_fk(adapter, fk, row[fk.column])

    if schema.parent_ref is not None:
        record[schema.parent_ref.column] = row[schema.parent_ref.column]

    for child_def in schema.children:
        child_schema = get_schema(child_def.schema_name, allow_internal=True)
        filters: dict[str, Any] = {child_def.parent_fk_column: row["id"]}

        # Top-level collection of a self-nesting schema: only direct children
        for nested in child_schema.children:
            if nested.schema_name == child_def.schema_name and child_def.schema_name != schema_name:
                filters[nested.parent_fk_column] = None

        rows = adapter.select(child_schema.table, "*", filters, order_by="id")
        if child_schema.kind == "row":
            record[child_def.key] = [
                _to_record(adapter, child_def.schema_name, child_schema, r) for r in rows
            ]
        else:
            record[child_def.key] = rows

    return record


def _decode(schema: SchemaDefinition, field: str, value: Any) -> Any:
    if field in schema.json_fields and isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def _describe_fk(adapter: DatabaseClient, fk: FkRule, row_id: int) -> str | None:
    """Rebuild the natural-key text an FK id was resolved from."""
    resolve = fk.resolve
    columns = resolve.lookup_column
    if isinstance(resolve, CompoundFk):
        columns = f"{resolve.lookup_column}, {resolve.parent_id_column}"

    target = adapter.select_one(resolve.table, columns, {"id": row_id})
    if target is None:
        return None
    if not isinstance(resolve, CompoundFk):
        return target[resolve.lookup_column]

    parent = adapter.select_one(
        resolve.parent_table,
        resolve.parent_lookup_column,
        {"id": target[resolve.parent_id_column]},
    )
    if parent is None:
        return None
    return f"{parent[resolve.parent_lookup_column]}{SEPARATOR}{target[resolve.lookup_column]}"
