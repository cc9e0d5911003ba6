"""Low-stock alerting: threshold evaluation and notification dispatch.

Components:
- AlertRule / RuleSnapshot: Rule rows and rules joined to item quantity
- AlertConfig: Pydantic settings for cooldown and e-mail recipient
- AlertRepository / DestinationRegistry: Alert store and push destinations
- evaluate_rules / evaluate_item: Pure four-way rule classification
- EmailChannel / PushChannel: Resend and Expo delivery channels
- CircuitBreaker: Resilience wrapper for channels
- NotificationConfig / NotificationDispatcher: Concurrent two-channel dispatch
- AlertService: Orchestrator for sweeps, item checks and rule management
"""

from shelfspot.alerts.channels import (
    CircuitBreaker,
    EmailChannel,
    NotificationChannel,
    PushChannel,
)
from shelfspot.alerts.config import AlertConfig
from shelfspot.alerts.dispatcher import (
    NotificationConfig,
    NotificationDispatcher,
    create_dispatcher,
)
from shelfspot.alerts.evaluator import evaluate_item, evaluate_rules
from shelfspot.alerts.repository import AlertRepository, DestinationRegistry
from shelfspot.alerts.schemas import (
    AlertRule,
    AlertSummary,
    DeliveryStatus,
    DispatchReport,
    Evaluation,
    ItemCheckResult,
    RuleSnapshot,
    RuleState,
    SweepResult,
)
from shelfspot.alerts.service import AlertService

__all__ = [
    "AlertConfig",
    "AlertRepository",
    "AlertRule",
    "AlertService",
    "AlertSummary",
    "CircuitBreaker",
    "DeliveryStatus",
    "DestinationRegistry",
    "DispatchReport",
    "EmailChannel",
    "Evaluation",
    "ItemCheckResult",
    "NotificationChannel",
    "NotificationConfig",
    "NotificationDispatcher",
    "PushChannel",
    "RuleSnapshot",
    "RuleState",
    "SweepResult",
    "create_dispatcher",
    "evaluate_item",
    "evaluate_rules",
]
