"""Schema registry, DDL, and live-database validation.

Usage:
    from model_db.schema import SCHEMAS, get_schema, create_schema
    from model_db.schema import validate_registry, SchemaIntrospector
"""

from model_db.schema.comparator import registry_columns, validate_registry, validate_schema
from model_db.schema.ddl import SCHEMA_SQL, create_schema, expected_columns
from model_db.schema.introspector import SchemaIntrospector
from model_db.schema.models import (
    PARENT_KEY,
    ChildDef,
    ColumnDiff,
    CompoundFk,
    FkRule,
    SchemaDefinition,
    SchemaValidationResult,
    ScopedRef,
    SequenceDef,
    SimpleFk,
)
from model_db.schema.registry import (
    SCHEMAS,
    LinkKind,
    get_schema,
    public_schemas,
)

__all__ = [
    # Registry
    "SCHEMAS",
    "LinkKind",
    "get_schema",
    "public_schemas",
    "PARENT_KEY",
    "SchemaDefinition",
    "FkRule",
    "SimpleFk",
    "CompoundFk",
    "ChildDef",
    "SequenceDef",
    "ScopedRef",
    # DDL
    "SCHEMA_SQL",
    "create_schema",
    "expected_columns",
    # Validation
    "validate_schema",
    "validate_registry",
    "registry_columns",
    "SchemaIntrospector",
    "SchemaValidationResult",
    "ColumnDiff",
]
