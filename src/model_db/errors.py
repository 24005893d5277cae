"""Exception hierarchy for the persistence engine.

Every error raised while saving or deleting propagates out of the
surrounding transaction, which rolls back in full.  Callers catch
``ModelDbError`` to report any engine failure.

Usage:
    from model_db.errors import ModelDbError, NotFoundError

    try:
        save(adapter, "field", {"entity": "Ghost", "name": "id"})
    except NotFoundError as e:
        print(e.table, e.value)
"""


class ModelDbError(Exception):
    """Base class for all engine errors."""

    pass


class UnknownSchemaError(ModelDbError):
    """Raised when a schema name is absent from the registry."""

    def __init__(self, schema: str, known: list[str] | None = None) -> None:
        self.schema = schema
        message = f"Unknown schema '{schema}'"
        if known:
            message += f". Known: {', '.join(known)}"
        super().__init__(message)


class NotFoundError(ModelDbError):
    """Raised when a referenced row does not exist."""

    def __init__(self, table: str, value: object, scoped_to: object | None = None) -> None:
        self.table = table
        self.value = value
        self.scoped_to = scoped_to
        if scoped_to is None:
            message = f"{table} '{value}' not found"
        else:
            message = f"{table} '{value}' not found under id {scoped_to}"
        super().__init__(message)


class MalformedReferenceError(ModelDbError):
    """Raised when a compound reference is not of the form ``Parent.child``."""

    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(f"Expected 'Parent.child' format, got '{value}'")


class MissingNaturalKeyError(ModelDbError):
    """Raised when a natural-key field cannot be determined."""

    def __init__(self, schema: str, field: str) -> None:
        self.schema = schema
        self.field = field
        super().__init__(f"{schema}: natural key field '{field}' is missing")


class CyclicOrUnresolvedParentError(ModelDbError):
    """Raised when an expansion's parent chain loops or dangles."""

    def __init__(self, row_id: int, reason: str) -> None:
        self.row_id = row_id
        self.reason = reason
        super().__init__(f"Expansion {row_id}: {reason}")


class UnknownTargetTypeError(ModelDbError):
    """Raised when a story link names a target kind with no resolver."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"Unknown target type '{kind}'")


class InvalidRecordError(ModelDbError):
    """Raised when a record has a shape the schema cannot accept."""

    def __init__(self, schema: str, message: str) -> None:
        self.schema = schema
        super().__init__(f"{schema}: {message}")
