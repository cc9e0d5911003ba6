"""Stateless threshold evaluation for alert rules.

Classifies each rule snapshot into one of four states. No I/O, no
clock: ``now`` and the cooldown are inputs, so the same functions serve
the full-inventory sweep and the single-item check, and tests can drive
them with fixed timestamps. All side effects (dispatch, ``last_sent``
updates) live in ``AlertService``.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta

from shelfspot.alerts.schemas import Evaluation, RuleSnapshot, RuleState


def is_triggered(quantity: float, threshold: float) -> bool:
    """Stock at or below threshold. The boundary itself triggers."""
    return quantity <= threshold


def classify(
    snapshot: RuleSnapshot,
    now: datetime,
    cooldown: timedelta,
) -> RuleState:
    """Classify one rule against its item's quantity.

    Args:
        snapshot: Rule joined to current quantity.
        now: Evaluation time.
        cooldown: Minimum time between two notifications of the same rule.

    Returns:
        QUIET or RECOVERED when stock is above threshold (RECOVERED if the
        rule had been notified and must be re-armed), DUE or SUPPRESSED
        when stock is at or below threshold.
    """
    last_sent = snapshot.last_sent

    if not is_triggered(snapshot.quantity, snapshot.threshold):
        return RuleState.QUIET if last_sent is None else RuleState.RECOVERED

    if last_sent is None or now - last_sent >= cooldown:
        return RuleState.DUE
    return RuleState.SUPPRESSED


def evaluate_rules(
    snapshots: Iterable[RuleSnapshot],
    now: datetime,
    cooldown: timedelta,
) -> Evaluation:
    """Partition active rules into quiet, recovered, due and suppressed.

    Inactive rules are ignored and do not count as checked. Cooldown is
    tracked per rule, so two rules on the same item re-notify
    independently.
    """
    evaluation = Evaluation()
    for snapshot in snapshots:
        if not snapshot.rule.is_active:
            continue
        evaluation.add(classify(snapshot, now, cooldown), snapshot)
    return evaluation


def evaluate_item(
    snapshots: Iterable[RuleSnapshot],
    item_id: int,
    quantity: int,
    now: datetime,
    cooldown: timedelta,
) -> Evaluation:
    """Evaluate one item's rules against a quantity it has just changed to.

    Same logic as ``evaluate_rules`` restricted to ``item_id``, with the
    stored quantity replaced by ``quantity``.
    """
    return evaluate_rules(
        (s.with_quantity(quantity) for s in snapshots if s.item_id == item_id),
        now,
        cooldown,
    )
