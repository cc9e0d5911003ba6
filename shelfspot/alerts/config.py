"""Alert service configuration.

Controls the re-notification cooldown and the e-mail recipient of alert
summaries. All settings can be overridden via ``ALERTS_*`` environment
variables.
"""

from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AlertConfig(BaseSettings):
    """Configuration for low-stock alert evaluation."""

    model_config = SettingsConfigDict(
        env_prefix="ALERTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Cooldown: a triggered rule is re-notified at most once per window
    cooldown_hours: float = Field(
        default=24.0,
        gt=0.0,
        le=24.0 * 30,
        description="Hours before a still-triggered rule is notified again",
    )

    email_recipient: str | None = Field(
        default=None,
        description="Single recipient of alert summary e-mails",
    )

    @property
    def cooldown(self) -> timedelta:
        return timedelta(hours=self.cooldown_hours)
