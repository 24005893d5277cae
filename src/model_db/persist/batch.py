"""Run a sequence of save/delete commands, one transaction each.

A failing command is recorded and skipped; it never rolls back the
commands before it or stops the ones after it.

Usage:
    from model_db.persist.batch import run_batch

    result = run_batch(adapter, [
        ["save", "entity", {"name": "Room"}],
        ["delete", "field", {"entity": "Room", "name": "legacy"}],
    ])
    print(result.ok, result.failed)
"""

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from model_db.adapters.base import DatabaseClient
from model_db.errors import ModelDbError
from model_db.persist.delete import delete
from model_db.persist.save import save

logger = logging.getLogger(__name__)

OPERATIONS = ("save", "delete")


class BatchFailure(BaseModel):
    """One command that did not apply."""

    index: int
    message: str


class BatchResult(BaseModel):
    """Outcome of ``run_batch()``."""

    ok: int = 0
    failures: list[BatchFailure] = Field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def success(self) -> bool:
        return not self.failures


def _apply(adapter: DatabaseClient, command: Any) -> None:
    if not isinstance(command, Sequence) or isinstance(command, str) or len(command) != 3:
        raise ModelDbError(f"Expected [op, schema, record], got {command!r}")

    op, schema_name, record = command
    if not isinstance(record, dict):
        raise ModelDbError(f"Record for '{schema_name}' must be an object")
    if op == "save":
        save(adapter, schema_name, record)
    elif op == "delete":
        delete(adapter, schema_name, record)
    else:
        raise ModelDbError(f"Unknown operation '{op}'. Expected one of: {', '.join(OPERATIONS)}")


def run_batch(adapter: DatabaseClient, commands: Iterable[Any]) -> BatchResult:
    """Apply each ``[op, schema, record]`` command in its own transaction.

    Args:
        adapter: Database adapter.
        commands: Iterable of three-element commands; ``op`` is
            ``"save"`` or ``"delete"``.

    Returns:
        ``BatchResult`` with the success count and per-command failures.
    """
    result = BatchResult()

    for index, command in enumerate(commands):
        try:
            _apply(adapter, command)
            result.ok += 1
        except (ModelDbError, SQLAlchemyError) as e:
            logger.warning("Batch command %d failed: %s", index, e)
            result.failures.append(BatchFailure(index=index, message=str(e)))

    logger.info("Batch complete: %d ok, %d failed", result.ok, result.failed)
    return result
