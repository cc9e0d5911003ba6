"""Alert store and push destination registry.

Follows the asyncpg repository pattern: raw SQL through ``Database``,
rows converted by module-level helpers. Missing rows on update/delete
raise ``StoreError(NOT_FOUND)``; constraint violations arrive as
``StoreError(CONFLICT | INVALID_REFERENCE)`` from ``Database``.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from shelfspot.alerts.schemas import AlertRule, RuleSnapshot
from shelfspot.storage.database import Database, affected_rows, build_assignments
from shelfspot.storage.errors import StoreError, StoreErrorKind

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ("threshold", "name", "is_active")

_SNAPSHOT_SELECT = """
    SELECT a.*, i.name AS item_name, i.quantity AS item_quantity
    FROM alerts a
    JOIN items i ON i.id = a.item_id
"""


class AlertRepository:
    """Repository for alert rule persistence and evaluation queries."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create(self, rule: AlertRule) -> AlertRule:
        """Insert a new alert rule.

        Raises:
            StoreError: CONFLICT if the item already has a rule with this
                threshold, INVALID_REFERENCE if the item does not exist.
        """
        sql = """
            INSERT INTO alerts (item_id, threshold, name, is_active)
            VALUES ($1, $2, $3, $4)
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql, rule.item_id, rule.threshold, rule.name, rule.is_active,
        )
        return _row_to_rule(row)

    async def get_by_id(self, rule_id: int) -> AlertRule | None:
        row = await self._db.fetchrow("SELECT * FROM alerts WHERE id = $1", rule_id)
        if row is None:
            return None
        return _row_to_rule(row)

    async def list_all(self) -> list[AlertRule]:
        rows = await self._db.fetch("SELECT * FROM alerts ORDER BY created_at DESC")
        return [_row_to_rule(row) for row in rows]

    async def list_by_item(self, item_id: int) -> list[AlertRule]:
        rows = await self._db.fetch(
            "SELECT * FROM alerts WHERE item_id = $1 ORDER BY threshold ASC",
            item_id,
        )
        return [_row_to_rule(row) for row in rows]

    async def update(self, rule_id: int, changes: dict[str, Any]) -> AlertRule:
        """Apply direct edits to a rule.

        Unknown keys are rejected.

        Args:
            rule_id: Rule to update.
            changes: Subset of threshold, name, is_active.

        Returns:
            The updated rule.

        Raises:
            StoreError: NOT_FOUND if the rule does not exist, CONFLICT on a
                duplicate (item, threshold).
        """
        assignments, params = build_assignments(changes, _UPDATABLE_FIELDS)
        if not assignments:
            rule = await self.get_by_id(rule_id)
            if rule is None:
                raise StoreError(StoreErrorKind.NOT_FOUND, f"alert {rule_id}")
            return rule

        params.append(rule_id)
        sql = f"""
            UPDATE alerts SET {", ".join(assignments)}, updated_at = NOW()
            WHERE id = ${len(params)}
            RETURNING *
        """

        row = await self._db.fetchrow(sql, *params)
        if row is None:
            raise StoreError(StoreErrorKind.NOT_FOUND, f"alert {rule_id}")
        return _row_to_rule(row)

    async def delete(self, rule_id: int) -> None:
        """Delete a rule.

        Raises:
            StoreError: NOT_FOUND if the rule does not exist.
        """
        deleted = await self._db.fetchval(
            "DELETE FROM alerts WHERE id = $1 RETURNING id", rule_id,
        )
        if deleted is None:
            raise StoreError(StoreErrorKind.NOT_FOUND, f"alert {rule_id}")

    async def list_active_with_quantity(self) -> list[RuleSnapshot]:
        """All active rules joined to their item's current quantity."""
        rows = await self._db.fetch(
            _SNAPSHOT_SELECT + " WHERE a.is_active ORDER BY a.item_id, a.threshold"
        )
        return [_row_to_snapshot(row) for row in rows]

    async def list_active_for_item(self, item_id: int) -> list[RuleSnapshot]:
        """Active rules of one item joined to its current quantity."""
        rows = await self._db.fetch(
            _SNAPSHOT_SELECT + " WHERE a.is_active AND a.item_id = $1 ORDER BY a.threshold",
            item_id,
        )
        return [_row_to_snapshot(row) for row in rows]

    async def set_last_sent(
        self,
        rule_ids: list[int],
        timestamp: datetime | None,
    ) -> int:
        """Set (or clear, with None) ``last_sent`` on many rules at once.

        Returns:
            Number of rules updated.
        """
        if not rule_ids:
            return 0

        status = await self._db.execute(
            """
            UPDATE alerts SET last_sent = $2, updated_at = NOW()
            WHERE id = ANY($1::int[])
            """,
            rule_ids,
            timestamp,
        )
        return affected_rows(status)

    async def item_exists(self, item_id: int) -> bool:
        found = await self._db.fetchval("SELECT 1 FROM items WHERE id = $1", item_id)
        return found is not None


class DestinationRegistry:
    """Read access to the registered push destinations of all users."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def list_push_destinations(self) -> list[str]:
        """Every non-null notification token, deduplicated."""
        rows = await self._db.fetch(
            """
            SELECT DISTINCT notification_token FROM users
            WHERE notification_token IS NOT NULL
            """
        )
        return [row["notification_token"] for row in rows]


def _as_utc(value: datetime | None) -> datetime | None:
    # Naive timestamps are stored UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _row_to_rule(row: Any) -> AlertRule:
    """Convert an asyncpg Record to an AlertRule."""
    return AlertRule(
        id=row["id"],
        item_id=row["item_id"],
        threshold=float(row["threshold"]),
        name=row.get("name"),
        is_active=row.get("is_active", True),
        last_sent=_as_utc(row.get("last_sent")),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def _row_to_snapshot(row: Any) -> RuleSnapshot:
    """Convert a joined alert/item Record to a RuleSnapshot."""
    return RuleSnapshot(
        rule=_row_to_rule(row),
        item_name=row["item_name"],
        quantity=row["item_quantity"],
    )
