"""Find and remove references that point at rows which no longer exist.

Normal deletes keep the store consistent.  Rows written before the FK
pragma was enabled, or by another tool, can still leave:

- story links whose polymorphic target is gone
- checks whose ``method_id`` dangles
- check dependencies on either side of a missing check

Usage:
    from model_db.doctor import diagnose, repair

    report = diagnose(adapter)
    if report.total:
        repair(adapter, report)
"""

import logging

from pydantic import BaseModel, Field

from model_db.adapters.base import DatabaseClient
from model_db.schema.registry import LinkKind, get_schema

logger = logging.getLogger(__name__)


class DoctorReport(BaseModel):
    """Ids of orphaned rows, grouped by what they lost."""

    orphaned_links: dict[str, list[int]] = Field(default_factory=dict)
    orphaned_checks: list[int] = Field(default_factory=list)
    orphaned_deps: list[int] = Field(default_factory=list)

    @property
    def link_count(self) -> int:
        return sum(len(ids) for ids in self.orphaned_links.values())

    @property
    def total(self) -> int:
        return self.link_count + len(self.orphaned_checks) + len(self.orphaned_deps)


def _ids(adapter: DatabaseClient, sql: str, params: dict | None = None) -> list[int]:
    return [row["id"] for row in adapter.query(sql, params)]


def diagnose(adapter: DatabaseClient) -> DoctorReport:
    """Scan the store for orphaned references without changing anything."""
    report = DoctorReport()

    for kind in LinkKind:
        table = get_schema(kind.value).table
        ids = _ids(
            adapter,
            f"SELECT id FROM story_links WHERE target_type = :kind "
            f"AND target_id NOT IN (SELECT id FROM {table}) ORDER BY id",
            {"kind": kind.value},
        )
        if ids:
            report.orphaned_links[kind.value] = ids

    report.orphaned_checks = _ids(
        adapter,
        "SELECT id FROM checks WHERE method_id IS NOT NULL "
        "AND method_id NOT IN (SELECT id FROM methods) ORDER BY id",
    )
    report.orphaned_deps = _ids(
        adapter,
        "SELECT id FROM check_deps WHERE check_id NOT IN (SELECT id FROM checks) "
        "OR depends_on_id NOT IN (SELECT id FROM checks) ORDER BY id",
    )

    logger.debug("Doctor found %d orphaned rows", report.total)
    return report


def repair(adapter: DatabaseClient, report: DoctorReport) -> int:
    """Delete every row listed in ``report`` in one transaction.

    Returns:
        Number of rows removed.
    """
    removed = 0
    with adapter.transaction():
        for ids in report.orphaned_links.values():
            for row_id in ids:
                removed += adapter.delete("story_links", {"id": row_id})
        for row_id in report.orphaned_checks:
            removed += adapter.delete("checks", {"id": row_id})
        for row_id in report.orphaned_deps:
            removed += adapter.delete("check_deps", {"id": row_id})

    logger.info("Removed %d orphaned rows", removed)
    return removed
