"""Change targets: which document containers a mutation must notify.

A document is rooted at one entity and loads nested expansions.  When a
row of some entity changes, every document that contains that entity
needs to know where: the dotted path of expansion names from the
document root, plus the foreign keys that locate the affected instance
at each level.

For a document ``project`` with expansion ``tasks`` (foreign key
``project_id``) and, nested under it, ``comments`` (``task_id``)::

    compute_change_targets(adapter, comments_id)
    # ChangeTarget(document='project', path='tasks.comments',
    #              document_key='project_id', intermediate_keys=['task_id'])

Back-reference (``belongs_to``) expansions never produce a change target
of their own, but may sit on another expansion's parent chain.

Usage:
    from model_db.changes import entity_change_targets, document_changed_by

    for target in entity_change_targets(adapter, "Comment"):
        print(target.document, target.path, target.foreign_keys)
"""

import logging
from typing import Any

from pydantic import BaseModel, Field

from model_db.adapters.base import DatabaseClient
from model_db.errors import CyclicOrUnresolvedParentError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 64

_EXPANSION_COLUMNS = "id, document_id, parent_expansion_id, name, entity_id, foreign_key, belongs_to"


# ============================================================================
# Models
# ============================================================================


class ChainLink(BaseModel):
    """One hop of an expansion chain."""

    name: str
    foreign_key: str


class ChangeTarget(BaseModel):
    """Where in a document a change lands.

    Attributes:
        document: Document name.
        path: Dotted expansion path, root-first; ``None`` for the root entity.
        document_key: Column that locates the owning document instance.
        intermediate_keys: Columns that locate each nested level below the root.
        collection: Whether the document is multi-instance (root targets only).
    """

    document: str
    path: str | None = None
    document_key: str = "id"
    intermediate_keys: list[str] = Field(default_factory=list)
    collection: bool = False

    @property
    def foreign_keys(self) -> list[str]:
        return [self.document_key, *self.intermediate_keys]


class DocumentChange(BaseModel):
    """An entity whose changes reach a document, and where."""

    entity: str
    target: ChangeTarget


# ============================================================================
# Chain walking
# ============================================================================


def build_chain(
    row: dict[str, Any],
    rows_by_id: dict[int, dict[str, Any]],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[ChainLink]:
    """Walk ``parent_expansion_id`` links up to the document root.

    Args:
        row: The leaf expansion row.
        rows_by_id: Expansion rows reachable from ``row``, keyed by id.
        max_depth: Maximum chain length.

    Returns:
        Chain links ordered root-first, ending with ``row`` itself.

    Raises:
        CyclicOrUnresolvedParentError: If the walk revisits a row, hits a
            parent id that is not in ``rows_by_id``, or exceeds ``max_depth``.
    """
    chain = [ChainLink(name=row["name"], foreign_key=row["foreign_key"])]
    seen = {row["id"]}
    current = row

    while current.get("parent_expansion_id") is not None:
        parent_id = current["parent_expansion_id"]
        if parent_id in seen:
            raise CyclicOrUnresolvedParentError(row["id"], f"cycle through expansion {parent_id}")
        parent = rows_by_id.get(parent_id)
        if parent is None:
            raise CyclicOrUnresolvedParentError(row["id"], f"parent expansion {parent_id} not found")
        if len(chain) >= max_depth:
            raise CyclicOrUnresolvedParentError(row["id"], f"chain deeper than {max_depth}")

        seen.add(parent_id)
        chain.insert(0, ChainLink(name=parent["name"], foreign_key=parent["foreign_key"]))
        current = parent

    return chain


def root_change_target(document: str, collection: bool = False) -> ChangeTarget:
    """Change target for a document's own root entity (zero hops)."""
    return ChangeTarget(document=document, path=None, document_key="id", collection=collection)


def _chain_target(
    document: str,
    row: dict[str, Any],
    rows_by_id: dict[int, dict[str, Any]],
    max_depth: int,
) -> ChangeTarget:
    chain = build_chain(row, rows_by_id, max_depth)
    return ChangeTarget(
        document=document,
        path=".".join(link.name for link in chain),
        document_key=chain[0].foreign_key,
        intermediate_keys=[link.foreign_key for link in chain[1:]],
    )


def _document_expansions(adapter: DatabaseClient, document_id: int) -> dict[int, dict[str, Any]]:
    rows = adapter.select(
        "expansions", _EXPANSION_COLUMNS, {"document_id": document_id}, order_by="id"
    )
    return {r["id"]: r for r in rows}


def _document(adapter: DatabaseClient, filters: dict[str, Any], value: object) -> dict[str, Any]:
    doc = adapter.select_one("documents", "id, name, entity_id, collection", filters)
    if doc is None:
        raise NotFoundError("documents", value)
    return doc


# ============================================================================
# Queries
# ============================================================================


def compute_change_targets(
    adapter: DatabaseClient,
    expansion_id: int,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> ChangeTarget | None:
    """Change target for one expansion row.

    Returns:
        The target, or ``None`` for a back-reference (``belongs_to``) row.

    Raises:
        NotFoundError: If no expansion has this id.
        CyclicOrUnresolvedParentError: If the parent chain is broken.
    """
    row = adapter.select_one("expansions", _EXPANSION_COLUMNS, {"id": expansion_id})
    if row is None:
        raise NotFoundError("expansions", expansion_id)
    if row["belongs_to"]:
        return None

    doc = _document(adapter, {"id": row["document_id"]}, row["document_id"])
    rows_by_id = _document_expansions(adapter, doc["id"])
    return _chain_target(doc["name"], row, rows_by_id, max_depth)


def entity_change_targets(
    adapter: DatabaseClient,
    entity: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[ChangeTarget]:
    """Every container a change to ``entity`` must notify.

    Documents rooted at the entity come first, then each aggregating
    expansion that loads it, in expansion id order.

    Raises:
        NotFoundError: If the entity does not exist.
    """
    entity_row = adapter.select_one("entities", "id", {"name": entity})
    if entity_row is None:
        raise NotFoundError("entities", entity)

    targets = [
        root_change_target(d["name"], bool(d["collection"]))
        for d in adapter.select(
            "documents", "name, collection", {"entity_id": entity_row["id"]}, order_by="id"
        )
    ]

    expansions = adapter.select(
        "expansions",
        "id",
        {"entity_id": entity_row["id"], "belongs_to": 0},
        order_by="id",
    )
    for exp in expansions:
        target = compute_change_targets(adapter, exp["id"], max_depth)
        if target is not None:
            targets.append(target)

    logger.debug("Entity %s has %d change targets", entity, len(targets))
    return targets


def document_changed_by(
    adapter: DatabaseClient,
    document: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[DocumentChange]:
    """Every entity whose changes reach ``document``.

    The root entity comes first, then the entity of each aggregating
    expansion in id order.

    Raises:
        NotFoundError: If the document does not exist.
    """
    doc = _document(adapter, {"name": document}, document)
    entity_names = {
        e["id"]: e["name"] for e in adapter.select("entities", "id, name")
    }

    changes = [
        DocumentChange(
            entity=entity_names[doc["entity_id"]],
            target=root_change_target(doc["name"], bool(doc["collection"])),
        )
    ]

    rows_by_id = _document_expansions(adapter, doc["id"])
    for row in rows_by_id.values():
        if row["belongs_to"]:
            continue
        changes.append(
            DocumentChange(
                entity=entity_names[row["entity_id"]],
                target=_chain_target(doc["name"], row, rows_by_id, max_depth),
            )
        )

    return changes
