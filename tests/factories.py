"""Builders for test data shared across test packages."""

from datetime import datetime, timedelta, timezone

from shelfspot.alerts.schemas import AlertRule, RuleSnapshot
from shelfspot.scoring.schemas import Item, Project, ProjectItemLink

NOW = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)
COOLDOWN = timedelta(hours=24)


def make_snapshot(
    rule_id: int = 1,
    item_id: int = 10,
    threshold: float = 5,
    quantity: int = 3,
    last_sent: datetime | None = None,
    item_name: str = "M3 screws",
    name: str | None = None,
    is_active: bool = True,
) -> RuleSnapshot:
    """Build a rule joined to its item's quantity."""
    return RuleSnapshot(
        rule=AlertRule(
            id=rule_id,
            item_id=item_id,
            threshold=threshold,
            name=name,
            is_active=is_active,
            last_sent=last_sent,
        ),
        item_name=item_name,
        quantity=quantity,
    )


def make_link(
    project_id: int = 1,
    status: str = "ACTIVE",
    priority: str = "MEDIUM",
    quantity: int = 1,
    item_id: int = 10,
    is_active: bool = True,
) -> ProjectItemLink:
    """Build an item link with its project."""
    return ProjectItemLink(
        project=Project(
            id=project_id,
            name=f"Project {project_id}",
            status=status,
            priority=priority,
        ),
        item_id=item_id,
        quantity=quantity,
        is_active=is_active,
    )


def make_item(
    item_id: int = 10,
    name: str = "Arduino Nano",
    quantity: int = 3,
    importance_score: float = 0.0,
) -> Item:
    return Item(id=item_id, name=name, quantity=quantity, importance_score=importance_score)
