"""Pydantic models for the schema registry and schema validation."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Natural-key sentinel: "the parent row this child is being saved under".
PARENT_KEY = "_parent_id"


# ============================================================================
# Foreign-Key Rules
# ============================================================================


class SimpleFk(BaseModel):
    """Resolve a value with ``SELECT id FROM table WHERE lookup_column = value``."""

    model_config = ConfigDict(frozen=True)

    type: Literal["simple"] = "simple"
    table: str
    lookup_column: str = "name"


class CompoundFk(BaseModel):
    """Resolve ``"Parent.child"``: the parent by name, then the child within it."""

    model_config = ConfigDict(frozen=True)

    type: Literal["compound"] = "compound"
    parent_table: str
    parent_lookup_column: str = "name"
    parent_id_column: str  # FK column in ``table`` pointing at the parent
    table: str
    lookup_column: str = "name"


FkResolve = Annotated[SimpleFk | CompoundFk, Field(discriminator="type")]


class FkRule(BaseModel):
    """Maps a logical record field to a resolved FK column."""

    model_config = ConfigDict(frozen=True)

    field: str  # logical JSON key, e.g. "entity"
    column: str  # physical FK column, e.g. "entity_id"
    resolve: FkResolve


# ============================================================================
# Schema Definition
# ============================================================================


class ChildDef(BaseModel):
    """A nested collection saved recursively under its parent row."""

    model_config = ConfigDict(frozen=True)

    key: str  # array field in the parent record
    schema_name: str
    parent_fk_column: str
    shorthand_field: str | None = None  # bare scalars expand to {field: value}
    inherit_columns: list[str] = Field(default_factory=list)
    blocked_by: str | None = None  # parent boolean field that forbids this collection


class SequenceDef(BaseModel):
    """Ordinal field defaulted to ``max(field) + 1`` within ``scope_column``."""

    model_config = ConfigDict(frozen=True)

    field: str
    scope_column: str


class ScopedRef(BaseModel):
    """A name reference resolved within the scope of an already-resolved column.

    Used for expansion ``parent``: the name is looked up among expansions of
    the same document.
    """

    model_config = ConfigDict(frozen=True)

    field: str
    column: str
    table: str
    lookup_column: str
    scope_column: str
    blocked_by: str | None = None  # boolean column on the referenced row that forbids attaching


SchemaKind = Literal["row", "key_value", "story_link", "check_dep"]


class SchemaDefinition(BaseModel):
    """Declarative description of one entity kind.

    ``row`` schemas go through the generic coalescing upsert.  The other
    kinds have dedicated save paths: ``key_value`` replaces by key with no
    surrogate id, ``story_link`` and ``check_dep`` are internal child rows.
    """

    model_config = ConfigDict(frozen=True)

    table: str
    natural_key: list[str]
    columns: dict[str, str] = Field(default_factory=dict)
    fks: list[FkRule] = Field(default_factory=list)
    children: list[ChildDef] = Field(default_factory=list)
    defaults: dict[str, Any] = Field(default_factory=dict)
    booleans: list[str] = Field(default_factory=list)
    json_fields: list[str] = Field(default_factory=list)
    kind: SchemaKind = "row"
    sequence: SequenceDef | None = None
    flag_overrides: dict[str, dict[str, Any]] = Field(default_factory=dict)
    parent_ref: ScopedRef | None = None

    @model_validator(mode="after")
    def _check_natural_key(self) -> "SchemaDefinition":
        if self.kind != "row":
            return self
        fk_fields = {fk.field for fk in self.fks}
        for nk in self.natural_key:
            if nk != PARENT_KEY and nk not in self.columns and nk not in fk_fields:
                raise ValueError(
                    f"natural key field '{nk}' of table '{self.table}' "
                    f"is neither a column nor an FK field"
                )
        return self

    def fk_for(self, field: str) -> FkRule | None:
        """Return the FK rule whose logical field is ``field``."""
        for fk in self.fks:
            if fk.field == field:
                return fk
        return None


# ============================================================================
# Validation Result Models
# ============================================================================


class ColumnDiff(BaseModel):
    """A registry column missing from the live database."""

    table: str
    column: str
    message: str = ""


class SchemaValidationResult(BaseModel):
    """Result of comparing the registry with a live database."""

    valid: bool
    missing_tables: list[str] = Field(default_factory=list)
    missing_columns: list[ColumnDiff] = Field(default_factory=list)
    extra_tables: list[str] = Field(default_factory=list)  # Warning only

    @property
    def error_count(self) -> int:
        """Count of critical errors (missing tables + missing columns)."""
        return len(self.missing_tables) + len(self.missing_columns)

    def format_report(self) -> str:
        """Format validation result as human-readable report."""
        if self.valid:
            return "Schema valid"

        lines = ["Schema validation failed:"]

        if self.missing_tables:
            lines.append(f"\n  Missing tables ({len(self.missing_tables)}):")
            for table in self.missing_tables:
                lines.append(f"    - {table}")

        if self.missing_columns:
            lines.append(f"\n  Missing columns ({len(self.missing_columns)}):")
            for diff in self.missing_columns:
                lines.append(f"    - {diff.table}.{diff.column}")

        if self.extra_tables:
            lines.append(f"\n  Extra tables (warning): {', '.join(self.extra_tables)}")

        return "\n".join(lines)
