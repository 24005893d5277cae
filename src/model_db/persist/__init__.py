"""Persistence engine: natural-key resolution, save, delete and fetch."""

from model_db.persist.batch import BatchFailure, BatchResult, run_batch
from model_db.persist.delete import delete
from model_db.persist.fetch import fetch
from model_db.persist.links import cleanup_references, resolve_link_target
from model_db.persist.resolve import resolve_fk, resolve_fks, split_compound
from model_db.persist.save import save

__all__ = [
    # Save / delete
    "save",
    "delete",
    "fetch",
    # Resolution
    "resolve_fk",
    "resolve_fks",
    "split_compound",
    # Story links
    "resolve_link_target",
    "cleanup_references",
    # Batch
    "run_batch",
    "BatchResult",
    "BatchFailure",
]
