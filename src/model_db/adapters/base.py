"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol that the persistence engine talks
to.  All methods are synchronous -- a save or delete runs start to finish
inside one ``transaction()`` block without yielding.

Usage:
    from model_db.adapters.base import DatabaseClient

    def do_work(client: DatabaseClient) -> None:
        with client.transaction():
            row = client.insert("entities", {"name": "Room"})
            client.update("entities", {"name": "Hall"}, {"id": row["id"]})
        rows = client.select("entities", "id, name")
        client.close()
"""

from collections.abc import Iterator
from contextlib import AbstractContextManager
from typing import Any, Protocol


class DatabaseClient(Protocol):
    """Database client interface that all adapters must implement.

    Every statement issued while a ``transaction()`` block is open joins
    that transaction.  Statements issued outside one commit on their own.
    """

    def transaction(self) -> AbstractContextManager[None]:
        """Open an atomic transaction.

        Commits when the block exits normally and rolls back when it
        raises.  A nested call joins the already-open transaction.

        Example:
            with client.transaction():
                client.insert("entities", {"name": "Room"})
                client.insert("fields", {"entity_id": 1, "name": "id"})
        """
        ...

    def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows from table.

        Args:
            table: Table name.
            columns: Comma-separated column names (e.g., ``"id, name"``).
            filters: Optional dict of column=value filters (all must match
                via AND).  A ``None`` value matches ``IS NULL``.
            order_by: Optional column name to sort by.

        Returns:
            List of dicts, one per row.  Empty list if no matches.
        """
        ...

    def select_one(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
    ) -> dict | None:
        """Select the first matching row, or ``None``."""
        ...

    def insert(self, table: str, data: dict) -> dict:
        """Insert a row and return it with all columns (including ``id``).

        Raises:
            sqlalchemy.exc.IntegrityError: On constraint violation.
        """
        ...

    def update(self, table: str, data: dict, filters: dict[str, Any]) -> int:
        """Update matching rows and return the number of rows affected."""
        ...

    def delete(self, table: str, filters: dict[str, Any]) -> int:
        """Delete matching rows and return the number of rows affected."""
        ...

    def query(self, sql: str, params: dict | None = None) -> list[dict]:
        """Run a raw SELECT with named parameters and return dict rows."""
        ...

    def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a raw SQL statement (DDL or other non-query operations)."""
        ...

    def close(self) -> None:
        """Close database connections and clean up resources."""
        ...


def iter_filters(filters: dict[str, Any], prefix: str) -> Iterator[tuple[str, str, Any]]:
    """Yield ``(clause, param_name, value)`` for a filter dict.

    ``None`` values render as ``IS NULL`` with no bound parameter.
    """
    for i, (k, v) in enumerate(filters.items()):
        param_name = f"{prefix}_{i}"
        if v is None:
            yield f"{k} IS NULL", param_name, None
        else:
            yield f"{k} = :{param_name}", param_name, v
