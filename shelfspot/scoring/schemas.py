"""Schema definitions for projects, item links and importance scores.

``Project`` and ``ProjectItemLink`` map to the ``projects`` and
``project_items`` tables. ``ItemWithLinks`` is what the scoring engine
consumes: an item together with its active links, each carrying the
linked project's current status and priority. The remaining types are
derived results and never persisted as such.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ProjectStatus(str, Enum):
    """Lifecycle status of a project."""

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ProjectPriority(str, Enum):
    """Priority of a project; drives the score multiplier."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass
class Project:
    """A persisted project from the projects table."""

    name: str
    id: int | None = None
    description: str | None = None
    status: str = ProjectStatus.ACTIVE.value
    priority: str = ProjectPriority.MEDIUM.value
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        valid_statuses = {s.value for s in ProjectStatus}
        if self.status not in valid_statuses:
            raise ValueError(
                f"Invalid status {self.status!r}. Must be one of: {sorted(valid_statuses)}"
            )
        valid_priorities = {p.value for p in ProjectPriority}
        if self.priority not in valid_priorities:
            raise ValueError(
                f"Invalid priority {self.priority!r}. Must be one of: {sorted(valid_priorities)}"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class ProjectItemLink:
    """An item's use in a project, with the project it belongs to.

    Attributes:
        project: The linked project (current status and priority).
        item_id: Linked item.
        quantity: Units of the item the project uses (>= 1).
        is_active: Inactive links are ignored by scoring.
    """

    project: Project
    item_id: int
    quantity: int = 1
    is_active: bool = True

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError(f"Invalid link quantity {self.quantity!r}. Must be >= 1")

    @property
    def project_id(self) -> int | None:
        return self.project.id

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "project_name": self.project.name,
            "item_id": self.item_id,
            "quantity": self.quantity,
            "is_active": self.is_active,
        }


@dataclass
class Item:
    """The slice of an inventory item the engine reads and writes."""

    id: int
    name: str
    quantity: int = 0
    importance_score: float = 0.0


@dataclass
class ItemWithLinks:
    """An item with its active project links."""

    item: Item
    links: list[ProjectItemLink] = field(default_factory=list)


@dataclass
class ProjectUsage:
    """One project's contribution to an item's score."""

    project_id: int | None
    project_name: str
    status: str
    priority: str
    quantity_used: int
    contribution: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "project_name": self.project_name,
            "status": self.status,
            "priority": self.priority,
            "quantity_used": self.quantity_used,
            "contribution": self.contribution,
        }


@dataclass
class ScoreBreakdown:
    """Derived importance score of one item with its components."""

    item_id: int
    item_name: str
    total_score: float
    active_projects_score: float = 0.0
    paused_projects_score: float = 0.0
    project_count_bonus: float = 0.0
    priority_multiplier: float = 0.0
    projects_usage: list[ProjectUsage] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "total_score": self.total_score,
            "breakdown": {
                "active_projects_score": self.active_projects_score,
                "paused_projects_score": self.paused_projects_score,
                "project_count_bonus": self.project_count_bonus,
                "priority_multiplier": self.priority_multiplier,
            },
            "projects_usage": [u.to_dict() for u in self.projects_usage],
        }


@dataclass
class ScoreDistribution:
    """Fixed-bucket histogram of importance scores."""

    zero: int = 0
    low: int = 0
    medium: int = 0
    high: int = 0
    critical: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
            "zero": self.zero,
        }


@dataclass
class ScoreStatistics:
    """Aggregate statistics over persisted importance scores."""

    total_items: int = 0
    items_with_score: int = 0
    average_score: float = 0.0
    max_score: float = 0.0
    distribution: ScoreDistribution = field(default_factory=ScoreDistribution)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_items": self.total_items,
            "items_with_score": self.items_with_score,
            "average_score": self.average_score,
            "max_score": self.max_score,
            "distribution": self.distribution.to_dict(),
        }


@dataclass
class CriticalItem:
    """A low-stock item ranked by score relative to remaining quantity."""

    id: int
    name: str
    quantity: int
    importance_score: float
    criticality_ratio: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "importance_score": self.importance_score,
            "criticality_ratio": self.criticality_ratio,
        }


@dataclass
class RecalculationResult:
    """Outcome of a bulk recomputation."""

    updated: int = 0
    errors: int = 0
    top_items: list[ScoreBreakdown] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "updated": self.updated,
            "errors": self.errors,
            "top_items": [b.to_dict() for b in self.top_items],
        }
