"""Build the one message sent per dispatch batch.

Plain text only: rich HTML bodies are the mail template's concern, not
the engine's.
"""

from shelfspot.alerts.schemas import AlertSummary, RuleSnapshot

_MAX_NAMES_IN_SHORT = 3


def _format_threshold(threshold: float) -> str:
    return f"{threshold:g}"


def build_summary(
    snapshots: list[RuleSnapshot],
    title: str | None = None,
) -> AlertSummary:
    """Summarize a batch of due rules.

    Args:
        snapshots: Rules being notified in this dispatch.
        title: Overrides the default subject line.

    Returns:
        AlertSummary shared by every channel.
    """
    count = len(snapshots)
    default_title = f"Low stock alert - {count} item(s) affected"

    lines = []
    for s in snapshots:
        label = f" ({s.rule.name})" if s.rule.name else ""
        lines.append(
            f"- {s.item_name}: quantity {s.quantity}, "
            f"threshold {_format_threshold(s.threshold)}{label}"
        )
    body = "The following items are at or below their alert threshold:\n" + "\n".join(lines)

    names = [s.item_name for s in snapshots[:_MAX_NAMES_IN_SHORT]]
    short = ", ".join(names)
    if count > _MAX_NAMES_IN_SHORT:
        short += f" and {count - _MAX_NAMES_IN_SHORT} more"
    short = f"Low stock: {short}"

    return AlertSummary(
        title=title or default_title,
        body=body,
        short=short,
        alerts=[s.to_dict() for s in snapshots],
    )


def build_item_summary(snapshots: list[RuleSnapshot], quantity: int) -> AlertSummary:
    """Summary for a single-item check, titled with the item and its new quantity."""
    item_name = snapshots[0].item_name if snapshots else "item"
    return build_summary(
        snapshots,
        title=f"Low stock alert - {item_name} (quantity: {quantity})",
    )
