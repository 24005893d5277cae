"""Schema comparison using set operations.

Compares the columns the registry writes against the columns a live
database actually has.  Pure logic -- no I/O, no database connections.

Usage:
    from model_db.schema.comparator import validate_registry
    from model_db.schema.introspector import SchemaIntrospector

    with SchemaIntrospector(adapter.engine) as introspector:
        actual_columns = introspector.get_column_names()

    result = validate_registry(actual_columns)
    if not result.valid:
        print(result.format_report())
"""

from collections.abc import Mapping

from model_db.schema.models import ColumnDiff, SchemaDefinition, SchemaValidationResult
from model_db.schema.registry import SCHEMAS


def registry_columns(
    schemas: Mapping[str, SchemaDefinition] = SCHEMAS,
) -> dict[str, set[str]]:
    """Collect ``{table: {columns}}`` for every column the registry reads or writes.

    Includes mapped scalar columns, FK columns, scoped-reference columns,
    the parent columns of declared children and ``id`` for id-bearing
    schemas.

    Example:
        >>> sorted(registry_columns()["fields"])
        ['entity_id', 'id', 'name', 'type']
    """
    expected: dict[str, set[str]] = {}

    for schema in schemas.values():
        columns = expected.setdefault(schema.table, set())
        columns.update(schema.columns.values())
        columns.update(fk.column for fk in schema.fks)
        if schema.parent_ref is not None:
            columns.add(schema.parent_ref.column)
        if schema.kind != "key_value":
            columns.add("id")

        for child_def in schema.children:
            child = schemas[child_def.schema_name]
            expected.setdefault(child.table, set()).add(child_def.parent_fk_column)

    return expected


def validate_schema(
    actual_columns: dict[str, set[str]],
    expected_columns: dict[str, set[str]],
) -> SchemaValidationResult:
    """Validate actual database schema against expected columns.

    Performs pure set operations to find:
    - Missing tables: Tables in *expected_columns* but not in *actual_columns*
    - Missing columns: Columns in *expected_columns* but not in the actual table
    - Extra tables: Tables in *actual_columns* but not in *expected_columns*
      (warning only -- does not affect ``valid`` status)

    Examples:
        >>> validate_schema({"entities": {"id", "name"}}, {"entities": {"id", "name"}}).valid
        True
        >>> result = validate_schema({"entities": {"id"}}, {"entities": {"id", "name"}})
        >>> result.missing_columns[0].column
        'name'
    """
    actual_tables: set[str] = set(actual_columns.keys())
    expected_tables: set[str] = set(expected_columns.keys())

    missing_tables: list[str] = sorted(expected_tables - actual_tables)
    extra_tables: list[str] = sorted(actual_tables - expected_tables)

    missing_columns: list[ColumnDiff] = []
    for table_name in sorted(expected_tables & actual_tables):
        missing_cols = expected_columns[table_name] - actual_columns[table_name]
        for col_name in sorted(missing_cols):
            missing_columns.append(
                ColumnDiff(
                    table=table_name,
                    column=col_name,
                    message=f"Column '{col_name}' missing from table '{table_name}'",
                )
            )

    return SchemaValidationResult(
        valid=not missing_tables and not missing_columns,
        missing_tables=missing_tables,
        missing_columns=missing_columns,
        extra_tables=extra_tables,
    )


def validate_registry(
    actual_columns: dict[str, set[str]],
    schemas: Mapping[str, SchemaDefinition] = SCHEMAS,
) -> SchemaValidationResult:
    """Check that a live database has every table and column the registry uses."""
    return validate_schema(actual_columns, registry_columns(schemas))
