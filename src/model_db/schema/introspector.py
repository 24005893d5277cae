"""Live schema introspection via SQLAlchemy's ``inspect()``.

Works against any backend SQLAlchemy supports.  Only table and column
names are extracted; that is all ``validate_registry()`` compares.
"""

from sqlalchemy import Engine, create_engine, inspect

from model_db.adapters.sql import normalize_url


class SchemaIntrospector:
    """Introspects table and column names of a live database.

    Accepts either a URL (an engine is created and disposed of on exit)
    or an existing ``Engine`` (left open on exit).

    Usage:
        with SchemaIntrospector("model.db") as introspector:
            columns = introspector.get_column_names()
    """

    # Tables to exclude from introspection (backend bookkeeping)
    EXCLUDED_TABLES = {
        "sqlite_sequence",
        "sqlite_stat1",
        "schema_migrations",
    }

    def __init__(self, database: str | Engine):
        if isinstance(database, Engine):
            self._engine: Engine | None = database
            self._owns_engine = False
        else:
            self._engine = None
            self._owns_engine = True
            self._database_url = normalize_url(database)

    def __enter__(self) -> "SchemaIntrospector":
        """Context manager entry - creates the engine if needed."""
        if self._engine is None:
            self._engine = create_engine(self._database_url)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - disposes of an engine this object created."""
        if self._owns_engine and self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def get_column_names(self) -> dict[str, set[str]]:
        """Get ``{table: {column names}}`` for every user table.

        Raises:
            RuntimeError: If called outside the ``with`` block.
        """
        if self._engine is None:
            raise RuntimeError("SchemaIntrospector must be used as a context manager")

        inspector = inspect(self._engine)
        result: dict[str, set[str]] = {}
        for table in inspector.get_table_names():
            if table in self.EXCLUDED_TABLES:
                continue
            result[table] = {col["name"] for col in inspector.get_columns(table)}
        return result
