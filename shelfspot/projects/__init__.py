"""Projects and their item links; the mutation sites of score invalidation."""

from shelfspot.projects.repository import ProjectRepository
from shelfspot.projects.schemas import LinkedItemUsage, ProjectStatistics
from shelfspot.projects.service import ProjectService

__all__ = [
    "LinkedItemUsage",
    "ProjectRepository",
    "ProjectService",
    "ProjectStatistics",
]
