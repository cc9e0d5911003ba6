"""Importance scoring service.

Loads an item's active links, runs the pure ``compute_score`` and persists
the total on the item. Query operations read persisted scores only and
never recompute.
"""

import logging
from typing import Any

from shelfspot.errors import NotFoundError
from shelfspot.observability.metrics import get_metrics
from shelfspot.scoring.config import ScoringConfig
from shelfspot.scoring.engine import compute_score, compute_statistics, rank_critical_items
from shelfspot.scoring.repository import ScoringRepository
from shelfspot.scoring.schemas import (
    CriticalItem,
    Item,
    RecalculationResult,
    ScoreBreakdown,
    ScoreStatistics,
)

logger = logging.getLogger(__name__)


class ScoringService:
    """Compute, persist and query item importance scores.

    Usage:
        service = ScoringService(repository=ScoringRepository(db))
        breakdown = await service.recalculate_item_score(42)
        top = await service.get_top_items(10)
    """

    def __init__(
        self,
        repository: ScoringRepository,
        config: ScoringConfig | None = None,
    ) -> None:
        self._repo = repository
        self._config = config or ScoringConfig()

    async def recalculate_item_score(
        self,
        item_id: int,
        trigger: str = "manual",
    ) -> ScoreBreakdown | None:
        """Recompute one item's score from its current links and persist it.

        Args:
            item_id: Item to recompute.
            trigger: Metric label for what caused the recompute.

        Returns:
            The breakdown, or None if the item does not exist.

        Raises:
            StoreError: If loading or persisting fails.
        """
        loaded = await self._repo.get_item_with_active_links(item_id)
        if loaded is None:
            logger.debug("Item %d not found, nothing to score", item_id)
            return None

        breakdown = compute_score(loaded.item, loaded.links)
        await self._repo.persist_importance_score(item_id, breakdown.total_score)
        get_metrics().record_recompute(trigger)

        logger.debug(
            "Item %d score %.2f (%d active link(s))",
            item_id, breakdown.total_score, len(loaded.links),
        )
        return breakdown

    async def recalculate_all_scores(self) -> RecalculationResult:
        """Recompute and persist every item's score.

        A failure on one item is logged and counted, and the pass goes on.

        Returns:
            Counts plus the highest-scoring breakdowns.
        """
        logger.info("Starting recalculation of importance scores for all items")

        items = await self._repo.get_all_items_with_active_links()
        metrics = get_metrics()

        result = RecalculationResult()
        breakdowns: list[ScoreBreakdown] = []

        for loaded in items:
            item_id = loaded.item.id
            try:
                breakdown = compute_score(loaded.item, loaded.links)
                await self._repo.persist_importance_score(item_id, breakdown.total_score)
            except Exception as e:
                logger.error("Error calculating score for item %d: %s", item_id, e)
                metrics.record_recompute("bulk", success=False)
                result.errors += 1
                continue

            metrics.record_recompute("bulk")
            breakdowns.append(breakdown)
            result.updated += 1

        breakdowns.sort(key=lambda b: b.total_score, reverse=True)
        result.top_items = breakdowns[:self._config.top_items_limit]

        logger.info(
            "Importance scores updated: %d items, %d errors",
            result.updated, result.errors,
        )
        return result

    async def recalculate_project_items_scores(self, project_id: int) -> dict[str, Any]:
        """Recompute every item actively linked to a project.

        Raises:
            NotFoundError: The project does not exist.
        """
        project_name = await self._repo.get_project_name(project_id)
        if project_name is None:
            raise NotFoundError("Project", project_id)

        updated = 0
        for item_id in await self._repo.list_active_item_ids_for_project(project_id):
            if await self.recalculate_item_score(item_id) is not None:
                updated += 1

        logger.info(
            "Recalculated scores for %d items in project %r", updated, project_name,
        )
        return {"updated": updated, "project_name": project_name}

    async def get_top_items(self, limit: int | None = None) -> list[Item]:
        """Items by persisted score, highest first.

        Raises:
            ValueError: Negative limit.
        """
        if limit is None:
            limit = self._config.default_top_limit
        if limit < 0:
            raise ValueError(f"Invalid limit {limit!r}. Must be >= 0")
        return await self._repo.list_top_items(limit)

    async def get_critical_items(self, max_quantity: int | None = None) -> list[CriticalItem]:
        """Low-stock scored items ranked by score per remaining unit."""
        if max_quantity is None:
            max_quantity = self._config.critical_max_quantity
        candidates = await self._repo.list_critical_candidates(max_quantity)
        return rank_critical_items(candidates, max_quantity, self._config.critical_limit)

    async def get_score_statistics(self) -> ScoreStatistics:
        scores = await self._repo.list_importance_scores()
        return compute_statistics(scores)
