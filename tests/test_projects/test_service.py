"""Tests for ProjectService mutations and the invalidations they publish."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from shelfspot.errors import ConflictError, NotFoundError
from shelfspot.projects.repository import ProjectRepository
from shelfspot.projects.schemas import LinkedItemUsage
from shelfspot.projects.service import ProjectService
from shelfspot.recompute.config import RecomputeConfig
from shelfspot.recompute.queue import RecomputeQueue
from shelfspot.scoring.schemas import Project
from shelfspot.storage.errors import StoreError, StoreErrorKind

from tests.factories import make_link


# ── Fixtures ──────────────────────────────────────────────


@pytest.fixture
def mock_repo():
    repo = AsyncMock(spec=ProjectRepository)
    repo.get_by_id.return_value = Project(id=1, name="Robot arm")
    repo.item_exists.return_value = True
    repo.list_item_ids.return_value = [10, 11, 12]
    repo.add_item.return_value = make_link()
    repo.update_item.return_value = make_link()
    return repo


@pytest.fixture
def invalidator():
    inv = MagicMock()
    inv.invalidate.return_value = True
    inv.invalidate_many.side_effect = lambda ids: len(list(ids))
    return inv


@pytest.fixture
def service(mock_repo, invalidator):
    return ProjectService(mock_repo, invalidator)


def _usage(item_id, stock, score, quantity=1, is_active=True):
    return LinkedItemUsage(
        item_id=item_id,
        item_name=f"Item {item_id}",
        current_stock=stock,
        quantity_used=quantity,
        importance_score=score,
        is_active=is_active,
    )


# ── Project mutations ─────────────────────────────────────


class TestCreateProject:
    @pytest.mark.asyncio
    async def test_create_invalidates_nothing(self, service, mock_repo, invalidator):
        mock_repo.create.return_value = Project(id=2, name="Drone")

        project = await service.create_project("Drone", priority="HIGH")

        assert project.id == 2
        assert mock_repo.create.await_args.args[0].priority == "HIGH"
        invalidator.invalidate.assert_not_called()
        invalidator.invalidate_many.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_name(self, service, mock_repo):
        mock_repo.create.side_effect = StoreError(StoreErrorKind.CONFLICT, "dup")
        with pytest.raises(ConflictError, match="already exists"):
            await service.create_project("Drone")

    @pytest.mark.asyncio
    async def test_invalid_priority(self, service, mock_repo):
        with pytest.raises(ValueError):
            await service.create_project("Drone", priority="URGENT")
        mock_repo.create.assert_not_called()


class TestUpdateProject:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("changes", [{"status": "PAUSED"}, {"priority": "CRITICAL"}])
    async def test_score_fields_invalidate_all_items(self, service, mock_repo, invalidator, changes):
        mock_repo.update.return_value = Project(id=1, name="Robot arm", **changes)

        await service.update_project(1, **changes)

        mock_repo.list_item_ids.assert_awaited_once_with(1)
        invalidator.invalidate_many.assert_called_once_with([10, 11, 12])

    @pytest.mark.asyncio
    async def test_rename_invalidates_nothing(self, service, mock_repo, invalidator):
        mock_repo.update.return_value = Project(id=1, name="Robot arm v2")

        await service.update_project(1, name="Robot arm v2", description="new")

        invalidator.invalidate_many.assert_not_called()
        mock_repo.list_item_ids.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_project(self, service, mock_repo, invalidator):
        mock_repo.update.side_effect = StoreError(StoreErrorKind.NOT_FOUND, "project 9")

        with pytest.raises(NotFoundError, match="Project with ID 9 not found"):
            await service.update_project(9, status="PAUSED")
        invalidator.invalidate_many.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_status(self, service, mock_repo):
        with pytest.raises(ValueError, match="Invalid status"):
            await service.update_project(1, status="ARCHIVED")
        mock_repo.update.assert_not_called()


class TestDeleteProject:
    @pytest.mark.asyncio
    async def test_invalidates_formerly_linked_items(self, service, mock_repo, invalidator):
        mock_repo.delete.return_value = [10, 12]

        await service.delete_project(1)

        invalidator.invalidate_many.assert_called_once_with([10, 12])

    @pytest.mark.asyncio
    async def test_missing_project(self, service, mock_repo, invalidator):
        mock_repo.delete.side_effect = StoreError(StoreErrorKind.NOT_FOUND, "project 1")

        with pytest.raises(NotFoundError):
            await service.delete_project(1)
        invalidator.invalidate_many.assert_not_called()


# ── Link mutations ────────────────────────────────────────


class TestAddItem:
    @pytest.mark.asyncio
    async def test_add_invalidates_item(self, service, mock_repo, invalidator):
        link = await service.add_item_to_project(1, 10, quantity=2)

        assert link.item_id == 10
        mock_repo.add_item.assert_awaited_once_with(1, 10, 2, True)
        invalidator.invalidate.assert_called_once_with(10)

    @pytest.mark.asyncio
    async def test_missing_project(self, service, mock_repo, invalidator):
        mock_repo.get_by_id.return_value = None
        with pytest.raises(NotFoundError, match="Project"):
            await service.add_item_to_project(1, 10)
        invalidator.invalidate.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_item(self, service, mock_repo, invalidator):
        mock_repo.item_exists.return_value = False
        with pytest.raises(NotFoundError, match="Item with ID 10"):
            await service.add_item_to_project(1, 10)
        invalidator.invalidate.assert_not_called()

    @pytest.mark.asyncio
    async def test_already_linked(self, service, mock_repo, invalidator):
        mock_repo.add_item.side_effect = StoreError(StoreErrorKind.CONFLICT, "dup")
        with pytest.raises(ConflictError, match="Item 10 is already in project 1"):
            await service.add_item_to_project(1, 10)
        invalidator.invalidate.assert_not_called()

    @pytest.mark.asyncio
    async def test_zero_quantity(self, service, mock_repo):
        with pytest.raises(ValueError):
            await service.add_item_to_project(1, 10, quantity=0)
        mock_repo.add_item.assert_not_called()


class TestUpdateItem:
    @pytest.mark.asyncio
    async def test_update_invalidates_item(self, service, mock_repo, invalidator):
        await service.update_project_item(1, 10, is_active=False)

        mock_repo.update_item.assert_awaited_once_with(1, 10, {"is_active": False})
        invalidator.invalidate.assert_called_once_with(10)

    @pytest.mark.asyncio
    async def test_missing_link(self, service, mock_repo, invalidator):
        mock_repo.update_item.side_effect = StoreError(StoreErrorKind.NOT_FOUND, "link")
        with pytest.raises(NotFoundError, match="Project item with ID 1/10"):
            await service.update_project_item(1, 10, quantity=3)
        invalidator.invalidate.assert_not_called()


class TestRemoveItem:
    @pytest.mark.asyncio
    async def test_remove_invalidates_item(self, service, invalidator):
        await service.remove_item_from_project(1, 10)
        invalidator.invalidate.assert_called_once_with(10)

    @pytest.mark.asyncio
    async def test_missing_link(self, service, mock_repo, invalidator):
        mock_repo.remove_item.side_effect = StoreError(StoreErrorKind.NOT_FOUND, "link")
        with pytest.raises(NotFoundError):
            await service.remove_item_from_project(1, 10)
        invalidator.invalidate.assert_not_called()


class TestWithRecomputeQueue:
    @pytest.mark.asyncio
    async def test_mutations_coalesce_in_queue(self, mock_repo):
        queue = RecomputeQueue(RecomputeConfig(max_pending=10))
        service = ProjectService(mock_repo, queue)
        mock_repo.update.return_value = Project(id=1, name="Robot arm", status="PAUSED")

        await service.add_item_to_project(1, 10)
        await service.update_project_item(1, 10, quantity=4)
        await service.update_project(1, status="PAUSED")

        assert len(queue) == 3
        assert all(queue.is_pending(i) for i in (10, 11, 12))

    @pytest.mark.asyncio
    async def test_full_queue_does_not_fail_mutation(self, mock_repo):
        queue = RecomputeQueue(RecomputeConfig(max_pending=1))
        queue.invalidate(99)
        service = ProjectService(mock_repo, queue)

        link = await service.add_item_to_project(1, 10)

        assert link.item_id == 10
        assert not queue.is_pending(10)


# ── Statistics ────────────────────────────────────────────


class TestStatistics:
    @pytest.mark.asyncio
    async def test_statistics(self, service, mock_repo):
        mock_repo.list_item_usage.return_value = [
            _usage(10, stock=2, score=4.0, quantity=2),
            _usage(11, stock=50, score=1.0),
            _usage(12, stock=0, score=0.0, is_active=False),
        ]

        stats = await service.get_project_statistics(1)

        assert stats.total_items == 3
        assert stats.total_quantity == 4
        assert stats.average_importance_score == 1.67
        assert [u.item_id for u in stats.critical_items] == [10]
        assert stats.to_dict()["statistics"]["critical_items_count"] == 1

    @pytest.mark.asyncio
    async def test_empty_project(self, service, mock_repo):
        mock_repo.list_item_usage.return_value = []
        stats = await service.get_project_statistics(1)
        assert stats.average_importance_score == 0.0

    @pytest.mark.asyncio
    async def test_missing_project(self, service, mock_repo):
        mock_repo.get_by_id.return_value = None
        with pytest.raises(NotFoundError):
            await service.get_project_statistics(1)
