"""Delete by natural key.

Typed children are removed by the database's own ``ON DELETE`` rules.
Story links reference their targets polymorphically, so deleting any
``LinkKind`` row first removes the links that point at it.

Usage:
    from model_db.persist.delete import delete

    delete(adapter, "method", {"entity": "Room", "name": "rename"})
"""

import logging
from typing import Any

from model_db.adapters.base import DatabaseClient
from model_db.persist.links import cleanup_references
from model_db.persist.resolve import resolve_fks
from model_db.persist.save import natural_key_filters, project_columns
from model_db.schema.registry import LinkKind, get_schema

logger = logging.getLogger(__name__)

_LINK_KINDS = {kind.value for kind in LinkKind}


def delete(adapter: DatabaseClient, schema_name: str, record: dict[str, Any]) -> int:
    """Delete the row identified by ``record``'s natural key.

    Every natural-key field must be supplied; schema defaults are not
    applied.  Deleting a row that does not exist is not an error.

    Returns:
        Number of rows removed (0 or 1).

    Raises:
        UnknownSchemaError: Before any transaction is opened.
        NotFoundError, MalformedReferenceError, MissingNaturalKeyError:
            The transaction is rolled back.
    """
    schema = get_schema(schema_name)

    with adapter.transaction():
        resolved = resolve_fks(adapter, schema, record)
        values = project_columns(schema, record)
        where = natural_key_filters(
            schema_name, schema, resolved, values, use_defaults=False
        )

        if schema_name in _LINK_KINDS:
            row = adapter.select_one(schema.table, "id", where)
            if row:
                cleanup_references(adapter, schema_name, row["id"])

        removed = adapter.delete(schema.table, where)

    logger.debug("Deleted %d row(s) from %s", removed, schema.table)
    return removed
