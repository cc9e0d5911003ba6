"""Tests for ProjectRepository with mocked Database."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from shelfspot.projects.repository import ProjectRepository
from shelfspot.scoring.schemas import Project
from shelfspot.storage.errors import StoreError, StoreErrorKind


@pytest.fixture
def repo(mock_db):
    return ProjectRepository(mock_db)


@pytest.fixture
def mock_conn(mock_db):
    """Connection handed out by ``mock_db.transaction()``."""
    conn = AsyncMock()

    @asynccontextmanager
    async def transaction():
        yield conn

    mock_db.transaction = MagicMock(side_effect=transaction)
    return conn


def _project_row(**overrides):
    row = {
        "id": 1,
        "name": "Robot arm",
        "description": None,
        "status": "ACTIVE",
        "priority": "HIGH",
        "created_at": None,
        "updated_at": None,
    }
    row.update(overrides)
    return row


def _link_row(**overrides):
    row = {
        "item_id": 10,
        "quantity": 2,
        "is_active": True,
        "project_id": 1,
        "project_name": "Robot arm",
        "project_status": "ACTIVE",
        "project_priority": "HIGH",
    }
    row.update(overrides)
    return row


class TestProjects:
    @pytest.mark.asyncio
    async def test_create(self, repo, mock_db):
        mock_db.fetchrow.return_value = _project_row()

        project = await repo.create(Project(name="Robot arm", priority="HIGH"))

        assert project.id == 1
        assert mock_db.fetchrow.call_args.args[1:] == ("Robot arm", None, "ACTIVE", "HIGH")

    @pytest.mark.asyncio
    async def test_update(self, repo, mock_db):
        mock_db.fetchrow.return_value = _project_row(status="PAUSED")

        project = await repo.update(1, {"status": "PAUSED"})

        sql, *params = mock_db.fetchrow.call_args.args
        assert "status = $1" in sql
        assert "WHERE id = $2" in sql
        assert params == ["PAUSED", 1]
        assert project.status == "PAUSED"

    @pytest.mark.asyncio
    async def test_update_missing(self, repo, mock_db):
        mock_db.fetchrow.return_value = None
        with pytest.raises(StoreError) as exc_info:
            await repo.update(1, {"status": "PAUSED"})
        assert exc_info.value.kind is StoreErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_update_unknown_field(self, repo, mock_db):
        with pytest.raises(ValueError, match="Cannot update fields"):
            await repo.update(1, {"id": 3})
        mock_db.fetchrow.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_returns_linked_items(self, repo, mock_conn):
        mock_conn.fetch.return_value = [{"item_id": 10}, {"item_id": 11}]
        mock_conn.fetchval.return_value = 1

        assert await repo.delete(1) == [10, 11]

    @pytest.mark.asyncio
    async def test_delete_missing(self, repo, mock_conn):
        mock_conn.fetch.return_value = []
        mock_conn.fetchval.return_value = None

        with pytest.raises(StoreError) as exc_info:
            await repo.delete(1)
        assert exc_info.value.kind is StoreErrorKind.NOT_FOUND


class TestLinks:
    @pytest.mark.asyncio
    async def test_add_item(self, repo, mock_db):
        mock_db.fetchrow.return_value = _link_row()

        link = await repo.add_item(1, 10, 2)

        sql, *params = mock_db.fetchrow.call_args.args
        assert "INSERT INTO project_items" in sql
        assert params == [1, 10, 2, True]
        assert link.project.priority == "HIGH"

    @pytest.mark.asyncio
    async def test_add_item_conflict(self, repo, mock_db):
        mock_db.fetchrow.side_effect = StoreError(StoreErrorKind.CONFLICT, "dup")
        with pytest.raises(StoreError):
            await repo.add_item(1, 10)

    @pytest.mark.asyncio
    async def test_update_item(self, repo, mock_db):
        mock_db.fetchrow.return_value = _link_row(quantity=5)

        link = await repo.update_item(1, 10, {"quantity": 5})

        sql, *params = mock_db.fetchrow.call_args.args
        assert "quantity = $1" in sql
        assert "project_id = $2 AND item_id = $3" in sql
        assert params == [5, 1, 10]
        assert link.quantity == 5

    @pytest.mark.asyncio
    async def test_update_item_missing(self, repo, mock_db):
        mock_db.fetchrow.return_value = None
        with pytest.raises(StoreError) as exc_info:
            await repo.update_item(1, 10, {"is_active": False})
        assert exc_info.value.kind is StoreErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_remove_item_missing(self, repo, mock_db):
        mock_db.fetchval.return_value = None
        with pytest.raises(StoreError):
            await repo.remove_item(1, 10)

    @pytest.mark.asyncio
    async def test_list_item_usage(self, repo, mock_db):
        mock_db.fetch.return_value = [
            {
                "item_id": 10,
                "quantity": 2,
                "is_active": True,
                "name": "Servo",
                "stock": 3,
                "importance_score": 4,
            },
        ]

        usage = await repo.list_item_usage(1)

        assert usage[0].current_stock == 3
        assert usage[0].importance_score == 4.0
