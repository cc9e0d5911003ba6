"""Schema definitions for project statistics."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class LinkedItemUsage:
    """An item linked to a project, with its current stock."""

    item_id: int
    item_name: str
    current_stock: int
    quantity_used: int
    importance_score: float
    is_active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "current_stock": self.current_stock,
            "quantity_used": self.quantity_used,
            "importance_score": self.importance_score,
        }


@dataclass
class ProjectStatistics:
    """Usage statistics of one project.

    Attributes:
        total_items: Linked items, active or not.
        total_quantity: Sum of link quantities.
        average_importance_score: Mean persisted score of linked items.
        critical_items: Actively linked items with low stock.
    """

    project_id: int
    project_name: str
    project_status: str
    project_priority: str
    total_items: int = 0
    total_quantity: int = 0
    average_importance_score: float = 0.0
    critical_items: list[LinkedItemUsage] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "project_name": self.project_name,
            "project_status": self.project_status,
            "project_priority": self.project_priority,
            "statistics": {
                "total_items": self.total_items,
                "total_quantity": self.total_quantity,
                "average_importance_score": self.average_importance_score,
                "critical_items_count": len(self.critical_items),
            },
            "critical_items": [c.to_dict() for c in self.critical_items],
        }
