"""Tests for AlertRepository and DestinationRegistry with mocked Database."""

from datetime import datetime, timedelta, timezone

import pytest

from shelfspot.alerts.repository import (
    AlertRepository,
    DestinationRegistry,
    _row_to_rule,
    _row_to_snapshot,
)
from shelfspot.alerts.evaluator import classify
from shelfspot.alerts.schemas import AlertRule, RuleState
from shelfspot.storage.errors import StoreError, StoreErrorKind


@pytest.fixture
def repo(mock_db):
    return AlertRepository(mock_db)


def _make_db_row(**overrides):
    """Create a mock asyncpg Record as a dict."""
    row = {
        "id": 1,
        "item_id": 10,
        "threshold": 5.0,
        "name": "Restock fuses",
        "is_active": True,
        "last_sent": None,
        "created_at": datetime(2026, 3, 1, 8, 0, 0, tzinfo=timezone.utc),
        "updated_at": datetime(2026, 3, 1, 8, 0, 0, tzinfo=timezone.utc),
    }
    row.update(overrides)
    return row


class TestRowConversion:
    def test_row_to_rule(self):
        rule = _row_to_rule(_make_db_row(threshold=3))
        assert rule.id == 1
        assert rule.threshold == 3.0
        assert isinstance(rule.threshold, float)
        assert rule.name == "Restock fuses"

    def test_row_to_snapshot(self):
        row = _make_db_row(item_name="Fuses", item_quantity=2)
        snapshot = _row_to_snapshot(row)
        assert snapshot.item_name == "Fuses"
        assert snapshot.quantity == 2
        assert snapshot.rule_id == 1

    def test_naive_last_sent_read_as_utc(self):
        row = _make_db_row(
            item_name="Fuses", item_quantity=2, last_sent=datetime(2026, 3, 1, 9, 0, 0),
        )
        snapshot = _row_to_snapshot(row)

        assert snapshot.last_sent == datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)
        now = datetime(2026, 3, 1, 10, 0, 0, tzinfo=timezone.utc)
        assert classify(snapshot, now, timedelta(hours=24)) == RuleState.SUPPRESSED

    def test_aware_last_sent_unchanged(self):
        sent = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)
        assert _row_to_rule(_make_db_row(last_sent=sent)).last_sent == sent


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_returns_rule(self, repo, mock_db):
        mock_db.fetchrow.return_value = _make_db_row()

        rule = await repo.create(AlertRule(item_id=10, threshold=5, name="Restock fuses"))

        assert rule.id == 1
        args = mock_db.fetchrow.call_args.args
        assert "INSERT INTO alerts" in args[0]
        assert args[1:] == (10, 5, "Restock fuses", True)

    @pytest.mark.asyncio
    async def test_conflict_propagates(self, repo, mock_db):
        mock_db.fetchrow.side_effect = StoreError(StoreErrorKind.CONFLICT, "dup")
        with pytest.raises(StoreError):
            await repo.create(AlertRule(item_id=10, threshold=5))


class TestUpdate:
    @pytest.mark.asyncio
    async def test_builds_only_given_columns(self, repo, mock_db):
        mock_db.fetchrow.return_value = _make_db_row(threshold=8.0)

        rule = await repo.update(1, {"threshold": 8})

        sql, *params = mock_db.fetchrow.call_args.args
        assert "threshold = $1" in sql
        assert "name =" not in sql
        assert "WHERE id = $2" in sql
        assert params == [8, 1]
        assert rule.threshold == 8.0

    @pytest.mark.asyncio
    async def test_numbers_columns_in_field_order(self, repo, mock_db):
        mock_db.fetchrow.return_value = _make_db_row(is_active=False, threshold=2.0)

        await repo.update(1, {"is_active": False, "threshold": 2})

        sql, *params = mock_db.fetchrow.call_args.args
        assert "threshold = $1, is_active = $2" in sql
        assert "WHERE id = $3" in sql
        assert params == [2, False, 1]

    @pytest.mark.asyncio
    async def test_missing_rule(self, repo, mock_db):
        mock_db.fetchrow.return_value = None
        with pytest.raises(StoreError) as exc_info:
            await repo.update(99, {"is_active": False})
        assert exc_info.value.kind is StoreErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, repo, mock_db):
        with pytest.raises(ValueError, match="Cannot update fields"):
            await repo.update(1, {"last_sent": None})
        mock_db.fetchrow.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_changes_returns_current(self, repo, mock_db):
        mock_db.fetchrow.return_value = _make_db_row()
        rule = await repo.update(1, {})
        assert rule.id == 1
        assert "SELECT" in mock_db.fetchrow.call_args.args[0]


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete(self, repo, mock_db):
        mock_db.fetchval.return_value = 1
        await repo.delete(1)
        assert "DELETE FROM alerts" in mock_db.fetchval.call_args.args[0]

    @pytest.mark.asyncio
    async def test_delete_missing(self, repo, mock_db):
        mock_db.fetchval.return_value = None
        with pytest.raises(StoreError) as exc_info:
            await repo.delete(1)
        assert exc_info.value.kind is StoreErrorKind.NOT_FOUND


class TestEvaluationQueries:
    @pytest.mark.asyncio
    async def test_list_active_with_quantity(self, repo, mock_db):
        mock_db.fetch.return_value = [
            _make_db_row(item_name="Fuses", item_quantity=1),
            _make_db_row(id=2, threshold=10.0, item_name="Fuses", item_quantity=1),
        ]

        snapshots = await repo.list_active_with_quantity()

        assert [s.rule_id for s in snapshots] == [1, 2]
        assert "a.is_active" in mock_db.fetch.call_args.args[0]

    @pytest.mark.asyncio
    async def test_list_active_for_item(self, repo, mock_db):
        mock_db.fetch.return_value = []
        await repo.list_active_for_item(10)
        assert mock_db.fetch.call_args.args[1] == 10

    @pytest.mark.asyncio
    async def test_set_last_sent(self, repo, mock_db):
        mock_db.execute.return_value = "UPDATE 2"
        ts = datetime(2026, 3, 2, tzinfo=timezone.utc)

        count = await repo.set_last_sent([1, 2], ts)

        assert count == 2
        assert mock_db.execute.call_args.args[1:] == ([1, 2], ts)

    @pytest.mark.asyncio
    async def test_set_last_sent_clears(self, repo, mock_db):
        mock_db.execute.return_value = "UPDATE 1"
        await repo.set_last_sent([1], None)
        assert mock_db.execute.call_args.args[2] is None

    @pytest.mark.asyncio
    async def test_set_last_sent_empty_skips_query(self, repo, mock_db):
        assert await repo.set_last_sent([], None) == 0
        mock_db.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_item_exists(self, repo, mock_db):
        mock_db.fetchval.return_value = None
        assert await repo.item_exists(10) is False


class TestDestinationRegistry:
    @pytest.mark.asyncio
    async def test_lists_tokens(self, mock_db):
        mock_db.fetch.return_value = [
            {"notification_token": "ExponentPushToken[a]"},
            {"notification_token": "ExponentPushToken[b]"},
        ]
        registry = DestinationRegistry(mock_db)

        tokens = await registry.list_push_destinations()

        assert tokens == ["ExponentPushToken[a]", "ExponentPushToken[b]"]
        assert "DISTINCT" in mock_db.fetch.call_args.args[0]
