"""SQLAlchemy database adapter.

Provides ``SqlAlchemyAdapter``, a synchronous implementation of the
``DatabaseClient`` protocol on top of SQLAlchemy Core's ``Engine`` and
``text()`` statements.  SQLite is the default backend; any SQLAlchemy URL
with ``RETURNING`` support works.

Usage:
    from model_db.adapters.sql import SqlAlchemyAdapter

    adapter = SqlAlchemyAdapter("sqlite:///model.db")

    with adapter.transaction():
        row = adapter.insert("entities", {"name": "Room"})

    rows = adapter.select("entities", "id, name")
    adapter.close()
"""

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Connection, Engine, create_engine, event, text

from model_db.adapters.base import iter_filters

logger = logging.getLogger(__name__)


def normalize_url(database_url: str) -> str:
    """Turn a bare filesystem path into a ``sqlite:///`` URL.

    Anything that already looks like a URL (contains ``://``) is returned
    unchanged.

    Example:
        >>> normalize_url("model.db")
        'sqlite:///model.db'
        >>> normalize_url("postgresql://u:p@localhost/db")
        'postgresql://u:p@localhost/db'
    """
    if "://" in database_url:
        return database_url
    return f"sqlite:///{database_url}"


def create_engine_pooled(database_url: str, **kwargs: Any) -> Engine:
    """Create a SQLAlchemy engine with backend-appropriate settings.

    SQLite engines get ``PRAGMA foreign_keys = ON`` on every new
    connection so that typed ``ON DELETE`` rules are enforced.  Other
    backends get the pooled defaults:

    - ``pool_size=5``
    - ``max_overflow=10``
    - ``pool_pre_ping=True``
    - ``pool_recycle=300``

    Args:
        database_url: SQLAlchemy URL.
        **kwargs: Additional keyword arguments forwarded to
            ``create_engine``.  Caller kwargs override defaults.

    Returns:
        Configured ``Engine``.
    """
    is_sqlite = database_url.startswith("sqlite")

    defaults: dict[str, Any] = {"echo": False}
    if not is_sqlite:
        defaults.update(
            {
                "pool_size": 5,
                "max_overflow": 10,
                "pool_pre_ping": True,
                "pool_recycle": 300,
            }
        )
    merged = {**defaults, **kwargs}

    engine = create_engine(database_url, **merged)

    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_conn, connection_record) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.close()

    return engine


class SqlAlchemyAdapter:
    """SQLAlchemy implementation of the ``DatabaseClient`` protocol.

    While a ``transaction()`` block is open, every method runs on the
    block's connection, so a recursive save and all of its children
    commit or roll back together.  Outside a transaction each call opens
    its own ``engine.begin()`` block.

    Args:
        database_url: SQLAlchemy URL or a bare SQLite file path.
        json_columns: Optional column names whose ``dict``/``list`` values
            are serialized with ``json.dumps`` before binding.
        **engine_kwargs: Forwarded to ``create_engine_pooled``.

    Example:
        adapter = SqlAlchemyAdapter("model.db", json_columns=["payload"])
        with adapter.transaction():
            adapter.insert("metadata", {"key": "theme", "value": "dark"})
        adapter.close()
    """

    def __init__(
        self,
        database_url: str,
        json_columns: list[str] | None = None,
        **engine_kwargs: Any,
    ) -> None:
        self.url = normalize_url(database_url)
        self._json_columns: frozenset[str] = frozenset(json_columns or [])
        self._engine: Engine = create_engine_pooled(self.url, **engine_kwargs)
        self._conn: Connection | None = None

    @property
    def engine(self) -> Engine:
        """The underlying SQLAlchemy engine."""
        return self._engine

    @property
    def in_transaction(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Open an atomic transaction, or join the one already open."""
        if self._conn is not None:
            yield
            return

        with self._engine.begin() as conn:
            self._conn = conn
            try:
                yield
            finally:
                self._conn = None

    @contextmanager
    def _connection(self) -> Iterator[Connection]:
        if self._conn is not None:
            yield self._conn
        else:
            with self._engine.begin() as conn:
                yield conn

    # ------------------------------------------------------------------
    # CRUD Methods
    # ------------------------------------------------------------------

    def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows from table using raw SQL."""
        params: dict[str, Any] = {}
        where_clause = ""
        if filters:
            conditions: list[str] = []
            for clause, param_name, value in iter_filters(filters, "p"):
                conditions.append(clause)
                if value is not None:
                    params[param_name] = value
            where_clause = " WHERE " + " AND ".join(conditions)

        order_clause = f" ORDER BY {order_by}" if order_by else ""

        return self.query(
            f"SELECT {columns} FROM {table}{where_clause}{order_clause}", params
        )

    def select_one(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
    ) -> dict | None:
        """Select the first matching row, or ``None``."""
        rows = self.select(table, columns, filters)
        return rows[0] if rows else None

    def insert(self, table: str, data: dict) -> dict:
        """Insert row and return the created row with all fields."""
        columns = list(data.keys())
        if columns:
            placeholders = ", ".join(f":{col}" for col in columns)
            sql = (
                f"INSERT INTO {table} ({', '.join(columns)}) "
                f"VALUES ({placeholders}) RETURNING *"
            )
        else:
            sql = f"INSERT INTO {table} DEFAULT VALUES RETURNING *"

        params = {col: self._bind_value(col, val) for col, val in data.items()}

        with self._connection() as conn:
            result = conn.execute(text(sql), params)
            row = result.mappings().fetchone()
            return dict(row)

    def update(self, table: str, data: dict, filters: dict[str, Any]) -> int:
        """Update rows and return the number of rows affected."""
        if not data:
            return 0

        set_parts: list[str] = []
        params: dict[str, Any] = {}
        for i, (k, v) in enumerate(data.items()):
            param_name = f"set_{i}"
            set_parts.append(f"{k} = :{param_name}")
            params[param_name] = self._bind_value(k, v)

        where_parts: list[str] = []
        for clause, param_name, value in iter_filters(filters, "where"):
            where_parts.append(clause)
            if value is not None:
                params[param_name] = value

        sql = (
            f"UPDATE {table} SET {', '.join(set_parts)} "
            f"WHERE {' AND '.join(where_parts)}"
        )

        with self._connection() as conn:
            result = conn.execute(text(sql), params)
            return result.rowcount

    def delete(self, table: str, filters: dict[str, Any]) -> int:
        """Delete rows from table and return the number of rows affected."""
        if not filters:
            raise ValueError(f"Refusing to delete from {table} without filters")

        params: dict[str, Any] = {}
        where_parts: list[str] = []
        for clause, param_name, value in iter_filters(filters, "p"):
            where_parts.append(clause)
            if value is not None:
                params[param_name] = value

        sql = f"DELETE FROM {table} WHERE {' AND '.join(where_parts)}"

        with self._connection() as conn:
            result = conn.execute(text(sql), params)
            return result.rowcount

    def query(self, sql: str, params: dict | None = None) -> list[dict]:
        """Run a raw SELECT and return rows as dicts."""
        with self._connection() as conn:
            result = conn.execute(text(sql), params or {})
            return [dict(row) for row in result.mappings().fetchall()]

    def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a raw SQL statement (DDL or other non-query operations)."""
        with self._connection() as conn:
            conn.execute(text(sql), params or {})

    def close(self) -> None:
        """Dispose of the engine and its connection pool."""
        if self._engine:
            self._engine.dispose()

    # ------------------------------------------------------------------
    # Connection Test
    # ------------------------------------------------------------------

    def test_connection(self) -> bool:
        """Run ``SELECT 1`` to verify the database is reachable."""
        with self._engine.connect() as conn:
            result = conn.execute(text("SELECT 1"))
            return result.scalar() == 1

    # ------------------------------------------------------------------
    # Serialization Helpers
    # ------------------------------------------------------------------

    def _bind_value(self, column: str, value: Any) -> Any:
        if isinstance(value, dict):
            return json.dumps(value)
        if isinstance(value, list) and column in self._json_columns:
            return json.dumps(value)
        return value
