"""Database adapters package.

Provides the ``DatabaseClient`` Protocol and ``SqlAlchemyAdapter``, its
SQLAlchemy Core implementation.

Usage:
    from model_db.adapters import DatabaseClient, SqlAlchemyAdapter
"""

from model_db.adapters.base import DatabaseClient
from model_db.adapters.sql import SqlAlchemyAdapter

__all__ = [
    "DatabaseClient",
    "SqlAlchemyAdapter",
]
