"""The schema registry.

``SCHEMAS`` maps each schema name to its ``SchemaDefinition``.  It is
built once at import time and never mutated.  Names starting with ``_``
are internal child schemas that callers cannot save or delete directly.

Usage:
    from model_db.schema.registry import get_schema, public_schemas

    schema = get_schema("field")
    schema.table           # 'fields'
    schema.natural_key     # ['entity', 'name']
"""

from enum import Enum
from types import MappingProxyType

from model_db.errors import UnknownSchemaError
from model_db.schema.models import (
    PARENT_KEY,
    ChildDef,
    CompoundFk,
    FkRule,
    SchemaDefinition,
    ScopedRef,
    SequenceDef,
    SimpleFk,
)


class LinkKind(str, Enum):
    """Schemas that story links may point at through ``(target_type, target_id)``."""

    ENTITY = "entity"
    DOCUMENT = "document"
    METHOD = "method"
    NOTIFICATION = "notification"


# Tables holding polymorphic references: (table, kind column, id column).
POLYMORPHIC_REFERENCES: tuple[tuple[str, str, str], ...] = (
    ("story_links", "target_type", "target_id"),
)


def _entity_fk(field: str = "entity", column: str = "entity_id") -> FkRule:
    return FkRule(
        field=field,
        column=column,
        resolve=SimpleFk(table="entities", lookup_column="name"),
    )


def _method_fk() -> FkRule:
    return FkRule(
        field="method",
        column="method_id",
        resolve=CompoundFk(
            parent_table="entities",
            parent_lookup_column="name",
            parent_id_column="entity_id",
            table="methods",
            lookup_column="name",
        ),
    )


_SCHEMAS: dict[str, SchemaDefinition] = {
    "entity": SchemaDefinition(
        table="entities",
        natural_key=["name"],
        columns={"name": "name"},
        children=[
            ChildDef(key="fields", schema_name="field", parent_fk_column="entity_id"),
            ChildDef(key="methods", schema_name="method", parent_fk_column="entity_id"),
        ],
    ),
    "field": SchemaDefinition(
        table="fields",
        natural_key=["entity", "name"],
        columns={"name": "name", "type": "type"},
        fks=[_entity_fk()],
        defaults={"type": "string"},
    ),
    "relation": SchemaDefinition(
        table="relations",
        natural_key=["from", "to", "label"],
        columns={"label": "label", "cardinality": "cardinality"},
        fks=[_entity_fk("from", "from_entity_id"), _entity_fk("to", "to_entity_id")],
        defaults={"label": "", "cardinality": "*"},
    ),
    "story": SchemaDefinition(
        table="stories",
        natural_key=["actor", "action"],
        columns={"actor": "actor", "action": "action", "description": "description"},
        defaults={"description": ""},
        children=[
            ChildDef(key="links", schema_name="_story_link", parent_fk_column="story_id"),
        ],
    ),
    "document": SchemaDefinition(
        table="documents",
        natural_key=["name"],
        columns={
            "name": "name",
            "collection": "collection",
            "public": "public",
            "fetch": "fetch",
            "description": "description",
        },
        fks=[_entity_fk()],
        defaults={"collection": False, "public": False, "fetch": "select", "description": ""},
        booleans=["collection", "public"],
        children=[
            ChildDef(key="expansions", schema_name="expansion", parent_fk_column="document_id"),
        ],
    ),
    "expansion": SchemaDefinition(
        table="expansions",
        natural_key=["document", "name"],
        columns={
            "name": "name",
            "foreign_key": "foreign_key",
            "belongs_to": "belongs_to",
            "shallow": "shallow",
        },
        fks=[
            FkRule(
                field="document",
                column="document_id",
                resolve=SimpleFk(table="documents", lookup_column="name"),
            ),
            _entity_fk(),
        ],
        defaults={"belongs_to": False, "shallow": False},
        booleans=["belongs_to", "shallow"],
        parent_ref=ScopedRef(
            field="parent",
            column="parent_expansion_id",
            table="expansions",
            lookup_column="name",
            scope_column="document_id",
            blocked_by="shallow",
        ),
        children=[
            ChildDef(
                key="expansions",
                schema_name="expansion",
                parent_fk_column="parent_expansion_id",
                inherit_columns=["document_id"],
                blocked_by="shallow",
            ),
        ],
    ),
    "method": SchemaDefinition(
        table="methods",
        natural_key=["entity", "name"],
        columns={
            "name": "name",
            "args": "args",
            "return_type": "return_type",
            "auth_required": "auth_required",
        },
        fks=[_entity_fk()],
        defaults={"args": "[]", "return_type": "boolean", "auth_required": True},
        booleans=["auth_required"],
        json_fields=["args"],
        children=[
            ChildDef(
                key="publishes",
                schema_name="publish",
                parent_fk_column="method_id",
                shorthand_field="property",
            ),
            ChildDef(
                key="permissions",
                schema_name="permission",
                parent_fk_column="method_id",
                shorthand_field="path",
            ),
            ChildDef(key="notifications", schema_name="notification", parent_fk_column="method_id"),
        ],
    ),
    "publish": SchemaDefinition(
        table="publishes",
        natural_key=["method", "property"],
        columns={"property": "property"},
        fks=[_method_fk()],
    ),
    "notification": SchemaDefinition(
        table="notifications",
        natural_key=["method", "channel"],
        columns={"channel": "channel", "payload": "payload", "recipients": "recipients"},
        fks=[_method_fk()],
        defaults={"payload": "{}"},
        json_fields=["payload"],
    ),
    "permission": SchemaDefinition(
        table="method_permissions",
        natural_key=["method", "path"],
        columns={"path": "path", "description": "description"},
        fks=[_method_fk()],
        defaults={"description": ""},
    ),
    "checklist": SchemaDefinition(
        table="checklists",
        natural_key=["name"],
        columns={"name": "name", "description": "description"},
        defaults={"description": ""},
        children=[
            ChildDef(key="checks", schema_name="check", parent_fk_column="checklist_id"),
        ],
    ),
    "check": SchemaDefinition(
        table="checks",
        natural_key=["checklist", "actor", "method"],
        columns={
            "actor": "actor",
            "action": "action",
            "description": "description",
            "confirmed": "confirmed",
            "seq": "seq",
        },
        fks=[
            FkRule(
                field="checklist",
                column="checklist_id",
                resolve=SimpleFk(table="checklists", lookup_column="name"),
            ),
            _method_fk(),
        ],
        defaults={"action": "can", "description": "", "confirmed": 0, "seq": 0},
        sequence=SequenceDef(field="seq", scope_column="checklist_id"),
        flag_overrides={"denied": {"action": "denied"}},
        children=[
            ChildDef(
                key="depends_on",
                schema_name="_check_dep",
                parent_fk_column="check_id",
                shorthand_field="depends_on_id",
            ),
        ],
    ),
    "metadata": SchemaDefinition(
        table="metadata",
        natural_key=["key"],
        columns={"key": "key", "value": "value"},
        kind="key_value",
    ),
    # --- Internal child schemas (not directly invokable) ---
    "_story_link": SchemaDefinition(
        table="story_links",
        natural_key=[PARENT_KEY, "type", "name"],
        columns={"type": "target_type"},
        kind="story_link",
    ),
    "_check_dep": SchemaDefinition(
        table="check_deps",
        natural_key=[PARENT_KEY, "depends_on_id"],
        kind="check_dep",
    ),
}

SCHEMAS: MappingProxyType[str, SchemaDefinition] = MappingProxyType(_SCHEMAS)

# "Entity.method" references outside of a schema FK (story links, check deps).
METHOD_FK: FkRule = _method_fk()
CHECKLIST_FK: FkRule = SCHEMAS["check"].fk_for("checklist")


def public_schemas() -> list[str]:
    """Schema names callers may save or delete directly."""
    return [name for name in SCHEMAS if not name.startswith("_")]


def get_schema(name: str, allow_internal: bool = False) -> SchemaDefinition:
    """Look up a schema definition by name.

    Args:
        name: Schema name, e.g. ``"entity"``.
        allow_internal: Also accept ``_``-prefixed internal schemas.

    Raises:
        UnknownSchemaError: If the name is not a registered schema.
    """
    schema = SCHEMAS.get(name)
    if schema is None or (name.startswith("_") and not allow_internal):
        raise UnknownSchemaError(name, public_schemas())
    return schema
