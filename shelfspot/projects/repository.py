"""Project and project/item link persistence.

Follows the asyncpg repository pattern: raw SQL through ``Database``,
rows converted by module-level helpers. Missing rows on update/delete
raise ``StoreError(NOT_FOUND)``; constraint violations arrive as
``StoreError(CONFLICT | INVALID_REFERENCE)`` from ``Database``.
"""

import logging
from typing import Any

from shelfspot.projects.schemas import LinkedItemUsage
from shelfspot.scoring.repository import row_to_link
from shelfspot.scoring.schemas import Project, ProjectItemLink
from shelfspot.storage.database import Database, build_assignments
from shelfspot.storage.errors import StoreError, StoreErrorKind

logger = logging.getLogger(__name__)

_PROJECT_FIELDS = ("name", "description", "status", "priority")
_LINK_FIELDS = ("quantity", "is_active")

# Re-reads a link written by the CTE named "link" together with its project
_LINK_WITH_PROJECT = """
    SELECT link.item_id, link.quantity, link.is_active,
           p.id AS project_id, p.name AS project_name,
           p.status AS project_status, p.priority AS project_priority
    FROM link
    JOIN projects p ON p.id = link.project_id
"""


class ProjectRepository:
    """Repository for projects and their item links."""

    def __init__(self, database: Database) -> None:
        self._db = database

    # ── Projects ─────────────────────────────────────────

    async def create(self, project: Project) -> Project:
        """Insert a project.

        Raises:
            StoreError: CONFLICT if the name is taken.
        """
        sql = """
            INSERT INTO projects (name, description, status, priority)
            VALUES ($1, $2, $3, $4)
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql, project.name, project.description, project.status, project.priority,
        )
        return _row_to_project(row)

    async def get_by_id(self, project_id: int) -> Project | None:
        row = await self._db.fetchrow("SELECT * FROM projects WHERE id = $1", project_id)
        if row is None:
            return None
        return _row_to_project(row)

    async def list_all(self) -> list[Project]:
        rows = await self._db.fetch("SELECT * FROM projects ORDER BY created_at DESC")
        return [_row_to_project(row) for row in rows]

    async def update(self, project_id: int, changes: dict[str, Any]) -> Project:
        """Apply direct edits to a project.

        Raises:
            StoreError: NOT_FOUND if the project does not exist, CONFLICT
                on a duplicate name.
        """
        assignments, params = build_assignments(changes, _PROJECT_FIELDS)
        if not assignments:
            project = await self.get_by_id(project_id)
            if project is None:
                raise StoreError(StoreErrorKind.NOT_FOUND, f"project {project_id}")
            return project

        params.append(project_id)
        sql = f"""
            UPDATE projects SET {", ".join(assignments)}, updated_at = NOW()
            WHERE id = ${len(params)}
            RETURNING *
        """
        row = await self._db.fetchrow(sql, *params)
        if row is None:
            raise StoreError(StoreErrorKind.NOT_FOUND, f"project {project_id}")
        return _row_to_project(row)

    async def delete(self, project_id: int) -> list[int]:
        """Delete a project and its links.

        Returns:
            Ids of the items that were linked to the project, read in the
            same transaction as the delete.

        Raises:
            StoreError: NOT_FOUND if the project does not exist.
        """
        async with self._db.transaction() as conn:
            rows = await conn.fetch(
                "SELECT item_id FROM project_items WHERE project_id = $1 ORDER BY item_id",
                project_id,
            )
            deleted = await conn.fetchval(
                "DELETE FROM projects WHERE id = $1 RETURNING id", project_id,
            )
            if deleted is None:
                raise StoreError(StoreErrorKind.NOT_FOUND, f"project {project_id}")

        return [row["item_id"] for row in rows]

    # ── Links ────────────────────────────────────────────

    async def add_item(
        self,
        project_id: int,
        item_id: int,
        quantity: int = 1,
        is_active: bool = True,
    ) -> ProjectItemLink:
        """Link an item to a project.

        Raises:
            StoreError: CONFLICT if already linked, INVALID_REFERENCE if the
                project or item does not exist.
        """
        sql = """
            WITH link AS (
                INSERT INTO project_items (project_id, item_id, quantity, is_active)
                VALUES ($1, $2, $3, $4)
                RETURNING *
            )
        """ + _LINK_WITH_PROJECT
        row = await self._db.fetchrow(sql, project_id, item_id, quantity, is_active)
        return row_to_link(row)

    async def update_item(
        self,
        project_id: int,
        item_id: int,
        changes: dict[str, Any],
    ) -> ProjectItemLink:
        """Edit a link's quantity or active flag.

        Raises:
            StoreError: NOT_FOUND if the link does not exist.
        """
        assignments, params = build_assignments(changes, _LINK_FIELDS)
        if not assignments:
            assignments = ["quantity = quantity"]

        params.extend([project_id, item_id])
        sql = f"""
            WITH link AS (
                UPDATE project_items
                SET {", ".join(assignments)}, updated_at = NOW()
                WHERE project_id = ${len(params) - 1} AND item_id = ${len(params)}
                RETURNING *
            )
        """ + _LINK_WITH_PROJECT
        row = await self._db.fetchrow(sql, *params)
        if row is None:
            raise StoreError(
                StoreErrorKind.NOT_FOUND, f"item {item_id} in project {project_id}",
            )
        return row_to_link(row)

    async def remove_item(self, project_id: int, item_id: int) -> None:
        """Unlink an item from a project.

        Raises:
            StoreError: NOT_FOUND if the link does not exist.
        """
        removed = await self._db.fetchval(
            """
            DELETE FROM project_items
            WHERE project_id = $1 AND item_id = $2
            RETURNING item_id
            """,
            project_id,
            item_id,
        )
        if removed is None:
            raise StoreError(
                StoreErrorKind.NOT_FOUND, f"item {item_id} in project {project_id}",
            )

    async def list_item_ids(self, project_id: int) -> list[int]:
        """Ids of every item linked to the project, active or not."""
        rows = await self._db.fetch(
            "SELECT item_id FROM project_items WHERE project_id = $1 ORDER BY item_id",
            project_id,
        )
        return [row["item_id"] for row in rows]

    async def list_item_usage(self, project_id: int) -> list[LinkedItemUsage]:
        rows = await self._db.fetch(
            """
            SELECT pi.item_id, pi.quantity, pi.is_active,
                   i.name, i.quantity AS stock, i.importance_score
            FROM project_items pi
            JOIN items i ON i.id = pi.item_id
            WHERE pi.project_id = $1
            ORDER BY pi.item_id
            """,
            project_id,
        )
        return [_row_to_usage(row) for row in rows]

    async def item_exists(self, item_id: int) -> bool:
        found = await self._db.fetchval("SELECT 1 FROM items WHERE id = $1", item_id)
        return found is not None


def _row_to_project(row: Any) -> Project:
    return Project(
        id=row["id"],
        name=row["name"],
        description=row.get("description"),
        status=row["status"],
        priority=row["priority"],
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def _row_to_usage(row: Any) -> LinkedItemUsage:
    return LinkedItemUsage(
        item_id=row["item_id"],
        item_name=row["name"],
        current_stock=row["stock"],
        quantity_used=row["quantity"],
        importance_score=float(row["importance_score"]),
        is_active=row["is_active"],
    )
