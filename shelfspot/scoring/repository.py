"""Project/link store: the reads and the single write the scoring path needs.

Follows the asyncpg repository pattern: raw SQL through ``Database``,
rows converted by module-level helpers.
"""

import logging
from collections import defaultdict
from typing import Any

from shelfspot.scoring.schemas import Item, ItemWithLinks, Project, ProjectItemLink
from shelfspot.storage.database import Database, affected_rows

logger = logging.getLogger(__name__)

_ACTIVE_LINKS_SELECT = """
    SELECT pi.item_id, pi.quantity, pi.is_active,
           p.id AS project_id, p.name AS project_name,
           p.status AS project_status, p.priority AS project_priority
    FROM project_items pi
    JOIN projects p ON p.id = pi.project_id
    WHERE pi.is_active
"""


class ScoringRepository:
    """Repository for importance score inputs and persisted scores."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def get_item_with_active_links(self, item_id: int) -> ItemWithLinks | None:
        """Load an item and its active links with their projects.

        Returns:
            None if the item does not exist.
        """
        row = await self._db.fetchrow(
            "SELECT id, name, quantity, importance_score FROM items WHERE id = $1",
            item_id,
        )
        if row is None:
            return None

        link_rows = await self._db.fetch(
            _ACTIVE_LINKS_SELECT + " AND pi.item_id = $1 ORDER BY pi.project_id",
            item_id,
        )
        return ItemWithLinks(
            item=_row_to_item(row),
            links=[row_to_link(r) for r in link_rows],
        )

    async def get_all_items_with_active_links(self) -> list[ItemWithLinks]:
        """Load every item with its active links (two queries, grouped here)."""
        item_rows = await self._db.fetch(
            "SELECT id, name, quantity, importance_score FROM items ORDER BY id"
        )
        link_rows = await self._db.fetch(
            _ACTIVE_LINKS_SELECT + " ORDER BY pi.item_id, pi.project_id"
        )

        links_by_item: dict[int, list[ProjectItemLink]] = defaultdict(list)
        for r in link_rows:
            links_by_item[r["item_id"]].append(row_to_link(r))

        return [
            ItemWithLinks(item=_row_to_item(row), links=links_by_item.get(row["id"], []))
            for row in item_rows
        ]

    async def persist_importance_score(self, item_id: int, score: float) -> bool:
        """Write an item's score.

        Returns:
            False if the item no longer exists.
        """
        status = await self._db.execute(
            "UPDATE items SET importance_score = $2, updated_at = NOW() WHERE id = $1",
            item_id,
            score,
        )
        return affected_rows(status) > 0

    async def get_project_name(self, project_id: int) -> str | None:
        return await self._db.fetchval(
            "SELECT name FROM projects WHERE id = $1", project_id,
        )

    async def list_active_item_ids_for_project(self, project_id: int) -> list[int]:
        rows = await self._db.fetch(
            """
            SELECT item_id FROM project_items
            WHERE project_id = $1 AND is_active
            ORDER BY item_id
            """,
            project_id,
        )
        return [row["item_id"] for row in rows]

    async def list_top_items(self, limit: int) -> list[Item]:
        rows = await self._db.fetch(
            """
            SELECT id, name, quantity, importance_score FROM items
            ORDER BY importance_score DESC
            LIMIT $1
            """,
            limit,
        )
        return [_row_to_item(row) for row in rows]

    async def list_critical_candidates(self, max_quantity: int) -> list[Item]:
        """Items at or below ``max_quantity`` with a positive score."""
        rows = await self._db.fetch(
            """
            SELECT id, name, quantity, importance_score FROM items
            WHERE quantity <= $1 AND importance_score > 0
            ORDER BY importance_score DESC
            """,
            max_quantity,
        )
        return [_row_to_item(row) for row in rows]

    async def list_importance_scores(self) -> list[float]:
        rows = await self._db.fetch("SELECT importance_score FROM items")
        return [float(row["importance_score"]) for row in rows]


def _row_to_item(row: Any) -> Item:
    return Item(
        id=row["id"],
        name=row["name"],
        quantity=row["quantity"],
        importance_score=float(row["importance_score"]),
    )


def row_to_link(row: Any) -> ProjectItemLink:
    """Convert a link Record carrying project_* columns to a ProjectItemLink."""
    return ProjectItemLink(
        project=Project(
            id=row["project_id"],
            name=row["project_name"],
            status=row["project_status"],
            priority=row["project_priority"],
        ),
        item_id=row["item_id"],
        quantity=row["quantity"],
        is_active=row["is_active"],
    )
