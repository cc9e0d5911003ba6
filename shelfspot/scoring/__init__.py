"""Item importance scoring from project usage.

Components:
- Project / ProjectItemLink / Item: Scoring inputs
- ScoreBreakdown / ScoreStatistics / CriticalItem: Derived results
- compute_score: Pure weighted aggregation over active links
- ScoringConfig: Pydantic settings for query limits
- ScoringRepository: Project/link store reads and score persistence
- ScoringService: Recompute, persist and query scores
"""

from shelfspot.scoring.config import ScoringConfig
from shelfspot.scoring.engine import (
    compute_score,
    compute_statistics,
    priority_multiplier,
    rank_critical_items,
)
from shelfspot.scoring.repository import ScoringRepository
from shelfspot.scoring.schemas import (
    CriticalItem,
    Item,
    ItemWithLinks,
    Project,
    ProjectItemLink,
    ProjectPriority,
    ProjectStatus,
    ProjectUsage,
    RecalculationResult,
    ScoreBreakdown,
    ScoreStatistics,
)
from shelfspot.scoring.service import ScoringService

__all__ = [
    "CriticalItem",
    "Item",
    "ItemWithLinks",
    "Project",
    "ProjectItemLink",
    "ProjectPriority",
    "ProjectStatus",
    "ProjectUsage",
    "RecalculationResult",
    "ScoreBreakdown",
    "ScoreStatistics",
    "ScoringConfig",
    "ScoringRepository",
    "ScoringService",
    "compute_score",
    "compute_statistics",
    "priority_multiplier",
    "rank_critical_items",
]
