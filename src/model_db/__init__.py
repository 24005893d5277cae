"""model-db: schema-driven model store with natural-key upserts.

Records are saved and deleted by human-readable natural keys; foreign keys
are resolved by name (``"Room"``) or compound name (``"Room.rename"``),
partial updates never clobber unspecified fields, and nested child
collections are saved recursively in one transaction.

Usage:
    from model_db import get_adapter, save, delete, fetch
    from model_db import entity_change_targets, compute_change_targets
    from model_db import SCHEMAS, get_schema
"""

__version__ = "0.1.0"

# Adapters
from model_db.adapters.base import DatabaseClient
from model_db.adapters.sql import SqlAlchemyAdapter

# Change targets
from model_db.changes import (
    ChangeTarget,
    compute_change_targets,
    document_changed_by,
    entity_change_targets,
)

# Config
from model_db.config.loader import load_db_config
from model_db.config.models import DatabaseConfig, DatabaseProfile, StoreSettings

# Doctor
from model_db.doctor import DoctorReport, diagnose, repair

# Errors
from model_db.errors import (
    CyclicOrUnresolvedParentError,
    InvalidRecordError,
    MalformedReferenceError,
    MissingNaturalKeyError,
    ModelDbError,
    NotFoundError,
    UnknownSchemaError,
    UnknownTargetTypeError,
)

# Factory
from model_db.factory import (
    ProfileNotFoundError,
    connect_and_validate,
    get_adapter,
    resolve_url,
)

# Persistence
from model_db.persist import BatchResult, delete, fetch, resolve_fk, run_batch, save

# Schema
from model_db.schema import SCHEMAS, create_schema, get_schema, validate_registry

__all__ = [
    # Adapters
    "DatabaseClient",
    "SqlAlchemyAdapter",
    # Persistence
    "save",
    "delete",
    "fetch",
    "resolve_fk",
    "run_batch",
    "BatchResult",
    # Change targets
    "ChangeTarget",
    "compute_change_targets",
    "entity_change_targets",
    "document_changed_by",
    # Doctor
    "diagnose",
    "repair",
    "DoctorReport",
    # Schema
    "SCHEMAS",
    "get_schema",
    "create_schema",
    "validate_registry",
    # Config
    "load_db_config",
    "DatabaseProfile",
    "DatabaseConfig",
    "StoreSettings",
    # Factory
    "get_adapter",
    "connect_and_validate",
    "ProfileNotFoundError",
    "resolve_url",
    # Errors
    "ModelDbError",
    "UnknownSchemaError",
    "NotFoundError",
    "MalformedReferenceError",
    "MissingNaturalKeyError",
    "CyclicOrUnresolvedParentError",
    "UnknownTargetTypeError",
    "InvalidRecordError",
]
