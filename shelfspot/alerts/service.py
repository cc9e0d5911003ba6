"""Alert service orchestrating threshold evaluation, dispatch and re-arming.

The sole alert component with side effects. Evaluation is delegated to the
pure functions in ``evaluator.py``; delivery to ``NotificationDispatcher``.
The store is updated only after the dispatch has returned, once per batch,
whatever the channel outcome, so a failing channel never causes a
re-notification inside the cooldown window.
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, NoReturn

from shelfspot.alerts.config import AlertConfig
from shelfspot.alerts.dispatcher import NotificationDispatcher
from shelfspot.alerts.evaluator import evaluate_item, evaluate_rules
from shelfspot.alerts.repository import AlertRepository
from shelfspot.alerts.schemas import (
    AlertRule,
    AlertSummary,
    DeliveryStatus,
    Evaluation,
    ItemCheckResult,
    RuleSnapshot,
    SweepResult,
)
from shelfspot.alerts.summary import build_item_summary, build_summary
from shelfspot.errors import ConflictError, NotFoundError
from shelfspot.observability.metrics import get_metrics
from shelfspot.storage.errors import StoreError, StoreErrorKind

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AlertService:
    """Orchestrator for low-stock alert passes and rule management.

    Args:
        config: Cooldown and e-mail recipient.
        alert_repo: Alert store.
        dispatcher: Notification dispatcher for due batches.
        clock: Source of "now"; injectable for tests.
    """

    def __init__(
        self,
        config: AlertConfig,
        alert_repo: AlertRepository,
        dispatcher: NotificationDispatcher,
        clock: Clock | None = None,
    ) -> None:
        self._config = config
        self._alert_repo = alert_repo
        self._dispatcher = dispatcher
        self._clock = clock or utc_now

    # ── Alert passes ─────────────────────────────────────

    async def run_full_sweep(self) -> SweepResult:
        """Evaluate every active rule and notify the due ones in one batch.

        Safe to call repeatedly: rules notified within the cooldown window
        are suppressed, so a second sweep without a quantity change sends
        nothing.
        """
        start = time.perf_counter()
        now = self._clock()

        snapshots = await self._alert_repo.list_active_with_quantity()
        evaluation = evaluate_rules(snapshots, now, self._config.cooldown)

        sent = 0
        if evaluation.due:
            sent = await self._notify(evaluation.due, build_summary(evaluation.due), now)
        reset = await self._rearm(evaluation.recovered)

        result = SweepResult(
            checked=evaluation.checked,
            triggered=evaluation.triggered,
            sent=sent,
            reset=reset,
            message=_outcome_message(evaluation),
        )
        self._record("full", evaluation, result.sent, result.reset, start)
        logger.info(
            "Alert sweep: %d checked, %d triggered, %d sent, %d re-armed",
            result.checked, result.triggered, result.sent, result.reset,
        )
        return result

    async def check_item_alerts(self, item_id: int, new_quantity: int) -> ItemCheckResult:
        """Evaluate one item's rules against the quantity it just changed to.

        Args:
            item_id: Item whose quantity changed.
            new_quantity: The item's new quantity.
        """
        start = time.perf_counter()
        now = self._clock()

        snapshots = await self._alert_repo.list_active_for_item(item_id)
        if not snapshots:
            return ItemCheckResult(
                item_id=item_id,
                triggered=0,
                sent=0,
                message="No alerts configured for this item",
            )

        evaluation = evaluate_item(
            snapshots, item_id, new_quantity, now, self._config.cooldown,
        )

        sent = 0
        if evaluation.due:
            summary = build_item_summary(evaluation.due, new_quantity)
            sent = await self._notify(evaluation.due, summary, now)
        reset = await self._rearm(evaluation.recovered)

        result = ItemCheckResult(
            item_id=item_id,
            triggered=evaluation.triggered,
            sent=sent,
            reset=reset,
            message=_outcome_message(evaluation, scope="for this item"),
            alerts=[s.to_dict() for s in evaluation.due + evaluation.suppressed],
        )
        self._record("item", evaluation, result.sent, result.reset, start)
        logger.debug(
            "Item %d check at quantity %d: %d triggered, %d sent, %d re-armed",
            item_id, new_quantity, result.triggered, result.sent, result.reset,
        )
        return result

    async def _notify(
        self,
        due: list[RuleSnapshot],
        summary: AlertSummary,
        now: datetime,
    ) -> int:
        """Dispatch one batch, then stamp ``last_sent`` on all of it.

        Returns:
            Number of rules counted as sent: the batch size if any channel
            delivered, else 0.
        """
        report = await self._dispatcher.dispatch(summary)

        rule_ids = [s.rule_id for s in due if s.rule_id is not None]
        await self._alert_repo.set_last_sent(rule_ids, now)

        if not report.delivered:
            logger.warning(
                "No channel delivered %d due alert(s); cooldown started anyway",
                len(due),
            )
            return 0
        return len(due)

    async def _rearm(self, recovered: list[RuleSnapshot]) -> int:
        """Clear ``last_sent`` on rules whose stock is back above threshold."""
        rule_ids = [s.rule_id for s in recovered if s.rule_id is not None]
        if not rule_ids:
            return 0
        await self._alert_repo.set_last_sent(rule_ids, None)
        logger.info("Re-armed %d recovered alert(s)", len(rule_ids))
        return len(rule_ids)

    def _record(
        self,
        scope: str,
        evaluation: Evaluation,
        sent: int,
        reset: int,
        start: float,
    ) -> None:
        get_metrics().record_sweep(
            scope,
            checked=evaluation.checked,
            triggered=evaluation.triggered,
            sent=sent,
            reset=reset,
            latency=time.perf_counter() - start,
        )

    # ── Rule management ──────────────────────────────────

    async def create_rule(
        self,
        item_id: int,
        threshold: float,
        name: str | None = None,
        is_active: bool = True,
    ) -> AlertRule:
        """Create an alert rule.

        Raises:
            NotFoundError: The item does not exist.
            ConflictError: The item already has a rule with this threshold.
            ValueError: Negative threshold.
        """
        rule = AlertRule(item_id=item_id, threshold=threshold, name=name, is_active=is_active)

        if not await self._alert_repo.item_exists(item_id):
            raise NotFoundError("Item", item_id)

        try:
            created = await self._alert_repo.create(rule)
        except StoreError as e:
            _raise_domain_error(e, "Item", item_id)

        logger.info(
            "Alert %s created for item %d at threshold %g",
            created.id, item_id, threshold,
        )
        return created

    async def get_rule(self, rule_id: int) -> AlertRule:
        rule = await self._alert_repo.get_by_id(rule_id)
        if rule is None:
            raise NotFoundError("Alert", rule_id)
        return rule

    async def list_rules(self, item_id: int | None = None) -> list[AlertRule]:
        if item_id is None:
            return await self._alert_repo.list_all()
        return await self._alert_repo.list_by_item(item_id)

    async def update_rule(self, rule_id: int, **changes: Any) -> AlertRule:
        """Edit threshold, name or active flag of a rule.

        Raises:
            NotFoundError: The rule does not exist.
            ConflictError: The new threshold duplicates another rule of the item.
        """
        threshold = changes.get("threshold")
        if threshold is not None and threshold < 0:
            raise ValueError(f"Invalid threshold {threshold!r}. Must be >= 0")

        try:
            return await self._alert_repo.update(rule_id, changes)
        except StoreError as e:
            _raise_domain_error(e, "Alert", rule_id)

    async def delete_rule(self, rule_id: int) -> None:
        try:
            await self._alert_repo.delete(rule_id)
        except StoreError as e:
            _raise_domain_error(e, "Alert", rule_id)
        logger.info("Alert %d deleted", rule_id)

    # ── Test sends ───────────────────────────────────────

    async def send_test_email(self, recipient: str | None = None) -> dict[str, Any]:
        """Send a sample summary to ``recipient`` or the configured recipient."""
        recipient = recipient or self._config.email_recipient
        if not recipient:
            return {"success": False, "message": "No e-mail recipient configured"}

        summary = AlertSummary(
            title="ShelfSpot test e-mail",
            body="This is a test message from the ShelfSpot alerting engine.",
            short="Test e-mail",
        )
        status = await self._dispatcher.send_to("email", [recipient], summary)
        return self._test_result(status, recipient)

    async def send_test_push(self, token: str) -> dict[str, Any]:
        """Send a sample push notification to one device token."""
        summary = AlertSummary(
            title="ShelfSpot test notification",
            body="This is a test notification from the ShelfSpot alerting engine.",
            short="Test notification",
            alerts=[],
        )
        status = await self._dispatcher.send_to("push", [token], summary)
        return self._test_result(status, token)

    @staticmethod
    def _test_result(status: DeliveryStatus, destination: str) -> dict[str, Any]:
        messages = {
            DeliveryStatus.SENT: f"Test notification sent to {destination}",
            DeliveryStatus.FAILED: f"Failed to send test notification to {destination}",
            DeliveryStatus.SKIPPED: f"Destination {destination} is not deliverable",
        }
        return {
            "success": status is DeliveryStatus.SENT,
            "status": status.value,
            "message": messages[status],
        }


def _outcome_message(evaluation: Evaluation, scope: str = "") -> str:
    suffix = f" {scope}" if scope else ""
    if evaluation.triggered == 0:
        return f"No alerts triggered{suffix}"
    if not evaluation.due:
        return "Alerts triggered but notifications already sent recently"
    return "Alerts processed successfully"


def _raise_domain_error(error: StoreError, entity: str, entity_id: int) -> NoReturn:
    """Map a store error onto the domain taxonomy and raise it."""
    if error.kind in (StoreErrorKind.NOT_FOUND, StoreErrorKind.INVALID_REFERENCE):
        raise NotFoundError(entity, entity_id) from error
    if error.kind is StoreErrorKind.CONFLICT:
        raise ConflictError(
            "An alert with this threshold already exists for this item"
        ) from error
    raise error
