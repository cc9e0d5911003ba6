"""Importance scoring: pure functions over an item's active project links.

Scores are never updated incrementally. Whenever a link or project changes,
the item's score is recomputed from scratch with ``compute_score``, so the
persisted value cannot drift from the links it summarizes.

Formula per active link:
    multiplier   = CRITICAL 4.0 / HIGH 2.0 / MEDIUM 1.0 / LOW 0.5 (else 1.0)
    contribution = quantity * multiplier          if project ACTIVE
                 = quantity * multiplier * 0.3    if project PAUSED
                 = 0                              if COMPLETED / CANCELLED
    bonus        = active_projects * 0.5          if active_projects > 1
    total        = round(active + paused + bonus, 2)
"""

from collections.abc import Iterable

from shelfspot.scoring.schemas import (
    CriticalItem,
    Item,
    ProjectItemLink,
    ProjectPriority,
    ProjectStatus,
    ProjectUsage,
    ScoreBreakdown,
    ScoreDistribution,
    ScoreStatistics,
)

PRIORITY_MULTIPLIERS: dict[str, float] = {
    ProjectPriority.CRITICAL.value: 4.0,
    ProjectPriority.HIGH.value: 2.0,
    ProjectPriority.MEDIUM.value: 1.0,
    ProjectPriority.LOW.value: 0.5,
}
DEFAULT_MULTIPLIER = 1.0

PAUSED_DISCOUNT = 0.3
DIVERSIFICATION_BONUS = 0.5

# Floor for the criticality ratio denominator (quantity may be 0)
MIN_RATIO_QUANTITY = 0.1


def priority_multiplier(priority: str) -> float:
    """Look up the score multiplier for a project priority."""
    return PRIORITY_MULTIPLIERS.get(priority, DEFAULT_MULTIPLIER)


def compute_score(item: Item, links: Iterable[ProjectItemLink]) -> ScoreBreakdown:
    """Compute an item's importance score from its project links.

    Inactive links are ignored. The usage list keeps link order.

    Args:
        item: The scored item.
        links: The item's links, each with its project.

    Returns:
        ScoreBreakdown with every component rounded to 2 decimals.
    """
    active_links = [link for link in links if link.is_active]

    active_score = 0.0
    paused_score = 0.0
    multiplier_sum = 0.0
    active_projects: set[int | None] = set()
    usage: list[ProjectUsage] = []

    for link in active_links:
        project = link.project
        multiplier = priority_multiplier(project.priority)
        multiplier_sum += multiplier

        contribution = 0.0
        if project.status == ProjectStatus.ACTIVE.value:
            contribution = link.quantity * multiplier
            active_score += contribution
            active_projects.add(project.id)
        elif project.status == ProjectStatus.PAUSED.value:
            contribution = link.quantity * multiplier * PAUSED_DISCOUNT
            paused_score += contribution

        usage.append(ProjectUsage(
            project_id=project.id,
            project_name=project.name,
            status=project.status,
            priority=project.priority,
            quantity_used=link.quantity,
            contribution=contribution,
        ))

    active_count = len(active_projects)
    bonus = active_count * DIVERSIFICATION_BONUS if active_count > 1 else 0.0

    return ScoreBreakdown(
        item_id=item.id,
        item_name=item.name,
        total_score=round(active_score + paused_score + bonus, 2),
        active_projects_score=round(active_score, 2),
        paused_projects_score=round(paused_score, 2),
        project_count_bonus=round(bonus, 2),
        priority_multiplier=round(multiplier_sum / max(len(active_links), 1), 2),
        projects_usage=usage,
    )


def criticality_ratio(importance_score: float, quantity: int) -> float:
    return importance_score / max(quantity, MIN_RATIO_QUANTITY)


def rank_critical_items(
    items: Iterable[Item],
    max_quantity: int,
    limit: int,
) -> list[CriticalItem]:
    """Rank low-stock, scored items by score per remaining unit.

    Args:
        items: Candidate items.
        max_quantity: Only items with ``quantity <= max_quantity`` qualify.
        limit: Maximum number of results.

    Returns:
        Qualifying items, highest criticality ratio first.
    """
    ranked = [
        CriticalItem(
            id=item.id,
            name=item.name,
            quantity=item.quantity,
            importance_score=item.importance_score,
            criticality_ratio=criticality_ratio(item.importance_score, item.quantity),
        )
        for item in items
        if item.quantity <= max_quantity and item.importance_score > 0
    ]
    ranked.sort(key=lambda c: c.criticality_ratio, reverse=True)
    return ranked[:limit]


def compute_statistics(scores: Iterable[float]) -> ScoreStatistics:
    """Aggregate persisted scores into counts, mean, max and a histogram.

    An empty input yields all zeros.
    """
    scores = list(scores)
    if not scores:
        return ScoreStatistics()

    distribution = ScoreDistribution()
    for score in scores:
        if score > 10:
            distribution.critical += 1
        elif score > 5:
            distribution.high += 1
        elif score > 1:
            distribution.medium += 1
        elif score > 0:
            distribution.low += 1
        elif score == 0:
            distribution.zero += 1

    return ScoreStatistics(
        total_items=len(scores),
        items_with_score=sum(1 for s in scores if s > 0),
        average_score=round(sum(scores) / len(scores), 2),
        max_score=round(max(scores), 2),
        distribution=distribution,
    )
