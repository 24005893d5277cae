"""Table definitions for the model store.

``SCHEMA_SQL`` is applied idempotently by ``create_schema()``.  Typed
cascades (``ON DELETE CASCADE`` / ``ON DELETE SET NULL``) live here and are
enforced by the database.  ``story_links`` is polymorphic
(``target_type``, ``target_id``) and has no FK on its target, so its
cleanup is done by the delete engine instead.

Usage:
    from model_db.schema.ddl import create_schema, expected_columns

    create_schema(adapter)
    expected_columns()["fields"]
    # {'id', 'entity_id', 'name', 'type'}
"""

import logging
import re

from model_db.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
-- Entities: database tables
CREATE TABLE IF NOT EXISTS entities (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS fields (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    entity_id INTEGER NOT NULL REFERENCES entities(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT 'string',
    UNIQUE(entity_id, name)
);

CREATE TABLE IF NOT EXISTS relations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    from_entity_id INTEGER NOT NULL REFERENCES entities(id) ON DELETE CASCADE,
    to_entity_id INTEGER NOT NULL REFERENCES entities(id) ON DELETE CASCADE,
    label TEXT NOT NULL DEFAULT '',
    cardinality TEXT NOT NULL DEFAULT '*',
    UNIQUE(from_entity_id, to_entity_id, label)
);

-- User stories
CREATE TABLE IF NOT EXISTS stories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    actor TEXT NOT NULL,
    action TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT ''
);

-- Documents: entry points rooted at an entity
CREATE TABLE IF NOT EXISTS documents (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    entity_id INTEGER NOT NULL REFERENCES entities(id) ON DELETE CASCADE,
    collection INTEGER NOT NULL DEFAULT 0,
    public INTEGER NOT NULL DEFAULT 0,
    fetch TEXT NOT NULL DEFAULT 'select',
    description TEXT NOT NULL DEFAULT ''
);

-- Expansions: child entities loaded with a document, nested via parent_expansion_id
CREATE TABLE IF NOT EXISTS expansions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id INTEGER NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    parent_expansion_id INTEGER REFERENCES expansions(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    entity_id INTEGER NOT NULL REFERENCES entities(id) ON DELETE CASCADE,
    foreign_key TEXT NOT NULL,
    belongs_to INTEGER NOT NULL DEFAULT 0,
    shallow INTEGER NOT NULL DEFAULT 0
);

-- Methods: handlers on entities
CREATE TABLE IF NOT EXISTS methods (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    entity_id INTEGER NOT NULL REFERENCES entities(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    args TEXT NOT NULL DEFAULT '[]',
    return_type TEXT NOT NULL DEFAULT 'boolean',
    auth_required INTEGER NOT NULL DEFAULT 1,
    UNIQUE(entity_id, name)
);

CREATE TABLE IF NOT EXISTS publishes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    method_id INTEGER NOT NULL REFERENCES methods(id) ON DELETE CASCADE,
    property TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS notifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    method_id INTEGER NOT NULL REFERENCES methods(id) ON DELETE CASCADE,
    channel TEXT NOT NULL,
    payload TEXT NOT NULL DEFAULT '{}',
    recipients TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS method_permissions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    method_id INTEGER NOT NULL REFERENCES methods(id) ON DELETE CASCADE,
    path TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT ''
);

-- Story links: polymorphic (target_type, target_id), no FK on the target
CREATE TABLE IF NOT EXISTS story_links (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    story_id INTEGER NOT NULL REFERENCES stories(id) ON DELETE CASCADE,
    target_type TEXT NOT NULL,
    target_id INTEGER NOT NULL,
    UNIQUE(story_id, target_type, target_id)
);

CREATE TABLE IF NOT EXISTS checklists (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    description TEXT NOT NULL DEFAULT ''
);

-- Checks: confirmed is a bitmask (1 = api, 2 = ux, 3 = both)
CREATE TABLE IF NOT EXISTS checks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    checklist_id INTEGER NOT NULL REFERENCES checklists(id) ON DELETE CASCADE,
    actor TEXT NOT NULL,
    method_id INTEGER REFERENCES methods(id) ON DELETE SET NULL,
    action TEXT NOT NULL DEFAULT 'can',
    description TEXT NOT NULL DEFAULT '',
    confirmed INTEGER NOT NULL DEFAULT 0,
    seq INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS check_deps (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    check_id INTEGER NOT NULL REFERENCES checks(id) ON DELETE CASCADE,
    depends_on_id INTEGER NOT NULL REFERENCES checks(id) ON DELETE CASCADE,
    UNIQUE(check_id, depends_on_id)
);

-- Metadata: project-level key-value settings
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

_TABLE_PATTERN = re.compile(
    r"CREATE TABLE(?:\s+IF NOT EXISTS)?\s+(\w+)\s*\(([^;]+)\);",
    re.IGNORECASE | re.DOTALL,
)

_CONSTRAINT_WORDS = ("PRIMARY", "FOREIGN", "UNIQUE", "CHECK", "CONSTRAINT")


def create_schema(adapter: DatabaseClient) -> None:
    """Create every table that does not exist yet."""
    with adapter.transaction():
        for match in _TABLE_PATTERN.finditer(SCHEMA_SQL):
            adapter.execute(match.group(0))
    logger.debug("Schema ensured for %d tables", len(expected_columns()))


def expected_columns(sql: str = SCHEMA_SQL) -> dict[str, set[str]]:
    """Parse CREATE TABLE statements into ``{table: {columns}}``.

    Constraint lines (``UNIQUE(...)``, ``PRIMARY KEY(...)``, ...) are
    skipped; the first word of every other line is a column name.

    Example:
        >>> expected_columns()["metadata"] == {"key", "value"}
        True
    """
    result: dict[str, set[str]] = {}

    for match in _TABLE_PATTERN.finditer(sql):
        table_name = match.group(1)
        columns: set[str] = set()
        for line in match.group(2).split("\n"):
            line = line.strip().rstrip(",")
            if not line or line.startswith("--"):
                continue
            first_word = line.split()[0]
            if first_word.upper().split("(")[0] in _CONSTRAINT_WORDS:
                continue
            columns.add(first_word)
        result[table_name] = columns

    return result
