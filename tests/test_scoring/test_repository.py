"""Tests for ScoringRepository with mocked Database."""

import pytest

from shelfspot.scoring.repository import ScoringRepository, row_to_link


@pytest.fixture
def repo(mock_db):
    return ScoringRepository(mock_db)


def _item_row(**overrides):
    row = {"id": 10, "name": "Servo", "quantity": 4, "importance_score": 0}
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


class TestRowToLink:
    def test_conversion(self):
        link = row_to_link(_link_row())
        assert link.project_id == 1
        assert link.project.priority == "HIGH"
        assert link.quantity == 2


class TestLoad:
    @pytest.mark.asyncio
    async def test_item_with_links(self, repo, mock_db):
        mock_db.fetchrow.return_value = _item_row()
        mock_db.fetch.return_value = [_link_row(), _link_row(project_id=2)]

        loaded = await repo.get_item_with_active_links(10)

        assert loaded.item.name == "Servo"
        assert isinstance(loaded.item.importance_score, float)
        assert [link.project_id for link in loaded.links] == [1, 2]
        assert "pi.is_active" in mock_db.fetch.call_args.args[0]

    @pytest.mark.asyncio
    async def test_missing_item(self, repo, mock_db):
        mock_db.fetchrow.return_value = None
        assert await repo.get_item_with_active_links(10) is None
        mock_db.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_all_items_grouped(self, repo, mock_db):
        mock_db.fetch.side_effect = [
            [_item_row(id=10), _item_row(id=11)],
            [_link_row(item_id=10), _link_row(item_id=10, project_id=2)],
        ]

        loaded = await repo.get_all_items_with_active_links()

        assert len(loaded[0].links) == 2
        assert loaded[1].links == []


class TestPersist:
    @pytest.mark.asyncio
    async def test_persist(self, repo, mock_db):
        mock_db.execute.return_value = "UPDATE 1"
        assert await repo.persist_importance_score(10, 8.0) is True
        assert mock_db.execute.call_args.args[1:] == (10, 8.0)

    @pytest.mark.asyncio
    async def test_persist_missing_item(self, repo, mock_db):
        mock_db.execute.return_value = "UPDATE 0"
        assert await repo.persist_importance_score(10, 8.0) is False


class TestQueries:
    @pytest.mark.asyncio
    async def test_scores(self, repo, mock_db):
        mock_db.fetch.return_value = [{"importance_score": 1}, {"importance_score": 2.5}]
        assert await repo.list_importance_scores() == [1.0, 2.5]

    @pytest.mark.asyncio
    async def test_active_item_ids(self, repo, mock_db):
        mock_db.fetch.return_value = [{"item_id": 3}, {"item_id": 9}]
        assert await repo.list_active_item_ids_for_project(1) == [3, 9]
