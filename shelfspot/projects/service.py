"""Project and link mutations that invalidate item importance scores.

Every mutation that can change an item's score publishes an invalidation
for each affected item once the write has succeeded. Publishing never
blocks and never fails the mutation; the recompute happens later on the
recompute worker.

Affected items per mutation:
    add / update / remove link      -> the linked item
    project status or priority edit -> every item linked to the project
    project delete                  -> every item linked before the delete
"""

import logging
from typing import Any, NoReturn, Protocol

from shelfspot.errors import ConflictError, NotFoundError
from shelfspot.projects.repository import ProjectRepository
from shelfspot.projects.schemas import ProjectStatistics
from shelfspot.scoring.schemas import (
    Project,
    ProjectItemLink,
    ProjectPriority,
    ProjectStatus,
)
from shelfspot.storage.errors import StoreError, StoreErrorKind

logger = logging.getLogger(__name__)

# Fields of a project that feed the score of its items
_SCORE_FIELDS = frozenset({"status", "priority"})

# Stock at or below which a linked item counts as critical
CRITICAL_STOCK = 5


class ScoreInvalidator(Protocol):
    """Anything accepting score invalidations (``RecomputeQueue``)."""

    def invalidate(self, item_id: int) -> bool: ...

    def invalidate_many(self, item_ids: list[int]) -> int: ...


class ProjectService:
    """Project and link management publishing score invalidations.

    Args:
        repository: Project/link store.
        invalidator: Receives ``invalidate(item_id)`` for every affected item.
    """

    def __init__(
        self,
        repository: ProjectRepository,
        invalidator: ScoreInvalidator,
    ) -> None:
        self._repo = repository
        self._invalidator = invalidator

    # ── Projects ─────────────────────────────────────────

    async def create_project(
        self,
        name: str,
        description: str | None = None,
        status: str = "ACTIVE",
        priority: str = "MEDIUM",
    ) -> Project:
        """Create a project. It has no links yet, so no score changes.

        Raises:
            ConflictError: A project with this name exists.
        """
        project = Project(name=name, description=description, status=status, priority=priority)
        try:
            created = await self._repo.create(project)
        except StoreError as e:
            _raise_domain_error(e, "Project", name)

        logger.info("Project %s created: %r", created.id, created.name)
        return created

    async def get_project(self, project_id: int) -> Project:
        project = await self._repo.get_by_id(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    async def list_projects(self) -> list[Project]:
        return await self._repo.list_all()

    async def update_project(self, project_id: int, **changes: Any) -> Project:
        """Edit a project; a status or priority change invalidates all its items.

        Raises:
            NotFoundError: The project does not exist.
            ConflictError: The new name is taken.
        """
        _validate_project_changes(changes)

        try:
            project = await self._repo.update(project_id, changes)
        except StoreError as e:
            _raise_domain_error(e, "Project", project_id)

        if changes.keys() & _SCORE_FIELDS:
            item_ids = await self._repo.list_item_ids(project_id)
            queued = self._invalidator.invalidate_many(item_ids)
            logger.info(
                "Project %d %s changed, invalidated %d/%d item score(s)",
                project_id, "/".join(sorted(changes.keys() & _SCORE_FIELDS)),
                queued, len(item_ids),
            )
        return project

    async def delete_project(self, project_id: int) -> None:
        """Delete a project and invalidate every formerly linked item.

        Raises:
            NotFoundError: The project does not exist.
        """
        try:
            item_ids = await self._repo.delete(project_id)
        except StoreError as e:
            _raise_domain_error(e, "Project", project_id)

        self._invalidator.invalidate_many(item_ids)
        logger.info(
            "Project %d deleted, invalidated %d item score(s)", project_id, len(item_ids),
        )

    # ── Links ────────────────────────────────────────────

    async def add_item_to_project(
        self,
        project_id: int,
        item_id: int,
        quantity: int = 1,
        is_active: bool = True,
    ) -> ProjectItemLink:
        """Link an item to a project.

        Raises:
            NotFoundError: The project or the item does not exist.
            ConflictError: The item is already in the project.
        """
        if quantity < 1:
            raise ValueError(f"Invalid link quantity {quantity!r}. Must be >= 1")
        if await self._repo.get_by_id(project_id) is None:
            raise NotFoundError("Project", project_id)
        if not await self._repo.item_exists(item_id):
            raise NotFoundError("Item", item_id)

        try:
            link = await self._repo.add_item(project_id, item_id, quantity, is_active)
        except StoreError as e:
            if e.kind is StoreErrorKind.CONFLICT:
                raise ConflictError(
                    f"Item {item_id} is already in project {project_id}"
                ) from e
            _raise_domain_error(e, "Item", item_id)

        self._invalidator.invalidate(item_id)
        return link

    async def update_project_item(
        self,
        project_id: int,
        item_id: int,
        **changes: Any,
    ) -> ProjectItemLink:
        """Edit a link's quantity or active flag.

        Raises:
            NotFoundError: The item is not in the project.
        """
        quantity = changes.get("quantity")
        if quantity is not None and quantity < 1:
            raise ValueError(f"Invalid link quantity {quantity!r}. Must be >= 1")

        try:
            link = await self._repo.update_item(project_id, item_id, changes)
        except StoreError as e:
            _raise_domain_error(e, "Project item", f"{project_id}/{item_id}")

        self._invalidator.invalidate(item_id)
        return link

    async def remove_item_from_project(self, project_id: int, item_id: int) -> None:
        """Unlink an item from a project.

        Raises:
            NotFoundError: The item is not in the project.
        """
        try:
            await self._repo.remove_item(project_id, item_id)
        except StoreError as e:
            _raise_domain_error(e, "Project item", f"{project_id}/{item_id}")

        self._invalidator.invalidate(item_id)

    # ── Statistics ───────────────────────────────────────

    async def get_project_statistics(self, project_id: int) -> ProjectStatistics:
        """Item count, quantities, mean score and critical items of a project.

        Raises:
            NotFoundError: The project does not exist.
        """
        project = await self.get_project(project_id)
        usage = await self._repo.list_item_usage(project_id)

        total_items = len(usage)
        average = (
            sum(u.importance_score for u in usage) / total_items if total_items else 0.0
        )
        return ProjectStatistics(
            project_id=project_id,
            project_name=project.name,
            project_status=project.status,
            project_priority=project.priority,
            total_items=total_items,
            total_quantity=sum(u.quantity_used for u in usage),
            average_importance_score=round(average, 2),
            critical_items=[
                u for u in usage if u.is_active and u.current_stock <= CRITICAL_STOCK
            ],
        )


def _validate_project_changes(changes: dict[str, Any]) -> None:
    status = changes.get("status")
    if status is not None and status not in {s.value for s in ProjectStatus}:
        raise ValueError(f"Invalid status {status!r}")
    priority = changes.get("priority")
    if priority is not None and priority not in {p.value for p in ProjectPriority}:
        raise ValueError(f"Invalid priority {priority!r}")


def _raise_domain_error(error: StoreError, entity: str, entity_id: object) -> NoReturn:
    """Map a store error onto the domain taxonomy and raise it."""
    if error.kind in (StoreErrorKind.NOT_FOUND, StoreErrorKind.INVALID_REFERENCE):
        raise NotFoundError(entity, entity_id) from error
    if error.kind is StoreErrorKind.CONFLICT:
        raise ConflictError("A project with this name already exists") from error
    raise error
