"""Schema definitions for alert rules and alert pass results.

``AlertRule`` maps 1:1 to the ``alerts`` table. A ``RuleSnapshot`` joins a
rule with its item's current quantity; it is the unit the threshold
evaluator works on. The result types at the bottom are what the public
alert operations return.
"""

import dataclasses
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class AlertRule:
    """A persisted alert rule from the alerts table.

    Attributes:
        item_id: Item whose stock is watched.
        threshold: Quantity at or below which the rule triggers.
        id: Database identifier (None until persisted).
        name: Optional human-readable label.
        is_active: Inactive rules are never evaluated.
        last_sent: When the rule was last included in a dispatch; None
            when the rule is armed.
    """

    item_id: int
    threshold: float
    id: int | None = None
    name: str | None = None
    is_active: bool = True
    last_sent: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.threshold < 0:
            raise ValueError(
                f"Invalid threshold {self.threshold!r}. Must be >= 0"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "item_id": self.item_id,
            "threshold": self.threshold,
            "name": self.name,
            "is_active": self.is_active,
            "last_sent": self.last_sent.isoformat() if self.last_sent else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class RuleSnapshot:
    """An alert rule joined to its item's name and current quantity."""

    rule: AlertRule
    item_name: str
    quantity: int

    @property
    def rule_id(self) -> int | None:
        return self.rule.id

    @property
    def item_id(self) -> int:
        return self.rule.item_id

    @property
    def threshold(self) -> float:
        return self.rule.threshold

    @property
    def last_sent(self) -> datetime | None:
        return self.rule.last_sent

    def with_quantity(self, quantity: int) -> "RuleSnapshot":
        """Copy of this snapshot seeing a different item quantity."""
        return dataclasses.replace(self, quantity=quantity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.rule_id,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "threshold": self.threshold,
            "name": self.rule.name,
        }


class RuleState(enum.Enum):
    """Classification of one rule in one evaluation pass."""

    QUIET = "quiet"
    RECOVERED = "recovered"
    DUE = "due"
    SUPPRESSED = "suppressed"


@dataclass
class Evaluation:
    """Disjoint partition of the evaluated rules."""

    quiet: list[RuleSnapshot] = field(default_factory=list)
    recovered: list[RuleSnapshot] = field(default_factory=list)
    due: list[RuleSnapshot] = field(default_factory=list)
    suppressed: list[RuleSnapshot] = field(default_factory=list)

    @property
    def checked(self) -> int:
        return (
            len(self.quiet) + len(self.recovered)
            + len(self.due) + len(self.suppressed)
        )

    @property
    def triggered(self) -> int:
        """Rules at or below threshold, whether due or in cooldown."""
        return len(self.due) + len(self.suppressed)

    def add(self, state: RuleState, snapshot: RuleSnapshot) -> None:
        getattr(self, state.value).append(snapshot)


@dataclass(frozen=True)
class AlertSummary:
    """The single message produced for one dispatch batch.

    Attributes:
        title: Subject line (e-mail) and notification title (push).
        body: Plain-text body, one line per alert.
        short: One-line body suitable for a push notification.
        alerts: Structured alert data attached to the push payload.
    """

    title: str
    body: str
    short: str
    alerts: list[dict[str, Any]] = field(default_factory=list)


class DeliveryStatus(enum.Enum):
    """Outcome of one channel attempt."""

    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DispatchReport:
    """Per-channel outcomes of one dispatch."""

    outcomes: list[tuple[str, DeliveryStatus]] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        """True when at least one channel delivered the summary."""
        return any(status is DeliveryStatus.SENT for _, status in self.outcomes)

    def status_of(self, channel: str) -> DeliveryStatus | None:
        for name, status in self.outcomes:
            if name == channel:
                return status
        return None


@dataclass
class SweepResult:
    """Result of ``AlertService.run_full_sweep``."""

    checked: int
    triggered: int
    sent: int
    reset: int = 0
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "checked": self.checked,
            "triggered": self.triggered,
            "sent": self.sent,
            "reset": self.reset,
        }


@dataclass
class ItemCheckResult:
    """Result of ``AlertService.check_item_alerts``."""

    item_id: int
    triggered: int
    sent: int
    reset: int = 0
    message: str = ""
    alerts: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "item_id": self.item_id,
            "triggered": self.triggered,
            "sent": self.sent,
            "reset": self.reset,
            "alerts": self.alerts,
        }
