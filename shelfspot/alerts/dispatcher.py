"""Notification dispatcher fanning one alert summary out to both channels.

The e-mail and push attempts run concurrently. Each attempt is isolated:
a channel that is unconfigured, has no valid destination, returns False
or raises is recorded in the ``DispatchReport`` and logged, and never
stops the other channel. ``dispatch`` itself does not raise.

Pattern: Orchestrator, delegates to stateless channels wrapped in
CircuitBreakers.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from shelfspot.alerts.channels import (
    CircuitBreaker,
    EmailChannel,
    NotificationChannel,
    PushChannel,
)
from shelfspot.alerts.repository import DestinationRegistry
from shelfspot.alerts.schemas import AlertSummary, DeliveryStatus, DispatchReport
from shelfspot.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

DestinationLoader = Callable[[], Awaitable[list[str]]]


class NotificationConfig(BaseSettings):
    """Configuration for notification channels and dispatch."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # E-mail (Resend)
    resend_api_key: SecretStr | None = Field(
        default=None,
        description="Resend API key; e-mail channel fails every send without it",
    )
    resend_from_email: str = Field(
        default="noreply@resend.dev",
        description="Sender address or bare domain",
    )
    resend_api_url: str = Field(default="https://api.resend.com")

    # Push (Expo)
    expo_access_token: SecretStr | None = Field(
        default=None,
        description="Optional Expo access token for enhanced push security",
    )
    expo_push_url: str = Field(default="https://exp.host/--/api/v2/push/send")
    push_chunk_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Messages per Expo push request",
    )

    channel_timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=120.0,
        description="HTTP timeout applied by each channel adapter",
    )

    retry_max_attempts: int = Field(
        default=1,
        ge=1,
        le=10,
        description="Send attempts per channel per dispatch",
    )
    retry_delays: list[float] = Field(
        default=[1.0, 5.0],
        description="Per-attempt delay in seconds before each retry",
    )
    circuit_breaker_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive failures before circuit opens",
    )
    circuit_breaker_recovery_seconds: float = Field(
        default=60.0,
        ge=5.0,
        description="Seconds before circuit breaker probes recovery",
    )


class NotificationDispatcher:
    """Delivers one summary per dispatch over the e-mail and push channels.

    Args:
        email_channel: E-mail adapter, or None to disable e-mail.
        push_channel: Push adapter, or None to disable push.
        destinations: Registry providing every registered push token.
        email_recipient: The single e-mail recipient; None skips e-mail.
        config: Retry and circuit breaker tuning.
    """

    def __init__(
        self,
        email_channel: NotificationChannel | None,
        push_channel: NotificationChannel | None,
        destinations: DestinationRegistry | None = None,
        email_recipient: str | None = None,
        config: NotificationConfig | None = None,
    ) -> None:
        self._config = config or NotificationConfig()
        self._destinations = destinations
        self._email_recipient = email_recipient
        self._email = self._wrap(email_channel)
        self._push = self._wrap(push_channel)

    def _wrap(self, channel: NotificationChannel | None) -> CircuitBreaker | None:
        if channel is None or isinstance(channel, CircuitBreaker):
            return channel
        return CircuitBreaker(
            channel=channel,
            failure_threshold=self._config.circuit_breaker_threshold,
            recovery_timeout=self._config.circuit_breaker_recovery_seconds,
        )

    @property
    def channels(self) -> list[CircuitBreaker]:
        """Access wrapped channels (for inspection/testing)."""
        return [ch for ch in (self._email, self._push) if ch is not None]

    async def dispatch(self, summary: AlertSummary) -> DispatchReport:
        """Attempt both channels concurrently.

        Args:
            summary: The batch summary.

        Returns:
            DispatchReport with one outcome per channel, e-mail first.
        """
        email_status, push_status = await asyncio.gather(
            self._attempt("email", self._email, self._email_destinations, summary),
            self._attempt("push", self._push, self._push_destinations, summary),
        )
        report = DispatchReport(
            outcomes=[("email", email_status), ("push", push_status)],
        )
        self._record_delivery(summary, report)
        return report

    async def send_to(
        self,
        channel_name: str,
        destinations: list[str],
        summary: AlertSummary,
    ) -> DeliveryStatus:
        """Send over one channel to explicit destinations (test sends).

        Raises:
            ValueError: If ``channel_name`` is neither 'email' nor 'push'.
        """
        channels = {"email": self._email, "push": self._push}
        if channel_name not in channels:
            raise ValueError(f"Unknown channel: {channel_name}")

        async def load() -> list[str]:
            return destinations

        status = await self._attempt(channel_name, channels[channel_name], load, summary)
        get_metrics().record_delivery(channel_name, status.value)
        return status

    async def _email_destinations(self) -> list[str]:
        return [self._email_recipient] if self._email_recipient else []

    async def _push_destinations(self) -> list[str]:
        if self._destinations is None:
            return []
        return await self._destinations.list_push_destinations()

    async def _attempt(
        self,
        name: str,
        channel: NotificationChannel | None,
        load_destinations: DestinationLoader,
        summary: AlertSummary,
    ) -> DeliveryStatus:
        """Run one channel end to end, converting every failure into a status."""
        if channel is None:
            logger.debug("Channel %s not configured, skipping", name)
            return DeliveryStatus.SKIPPED

        try:
            destinations = channel.prepare_destinations(await load_destinations())
            if not destinations:
                logger.info("No valid destinations for channel %s, skipping", name)
                return DeliveryStatus.SKIPPED

            success = await self._send_with_retry(channel, destinations, summary)
        except Exception as e:
            logger.error("Channel %s failed for %r: %s", name, summary.title, e)
            return DeliveryStatus.FAILED

        return DeliveryStatus.SENT if success else DeliveryStatus.FAILED

    async def _send_with_retry(
        self,
        channel: NotificationChannel,
        destinations: list[str],
        summary: AlertSummary,
    ) -> bool:
        """Attempt to send with configured retries.

        Returns:
            True if any attempt succeeded.
        """
        delays = self._config.retry_delays
        max_attempts = self._config.retry_max_attempts

        for attempt in range(max_attempts):
            try:
                success = await channel.send(destinations, summary)
                if success:
                    if attempt > 0:
                        logger.info(
                            "%r delivered to %s on attempt %d",
                            summary.title, channel.name, attempt + 1,
                        )
                    return True
            except Exception as e:
                logger.warning(
                    "Channel %s send error (attempt %d): %s",
                    channel.name, attempt + 1, e,
                )

            if attempt < max_attempts - 1 and delays:
                delay = delays[attempt] if attempt < len(delays) else delays[-1]
                await asyncio.sleep(delay)

        if max_attempts > 1:
            logger.warning(
                "All %d attempts exhausted for %r on channel %s",
                max_attempts, summary.title, channel.name,
            )
        return False

    def _record_delivery(self, summary: AlertSummary, report: DispatchReport) -> None:
        """Log and count delivery results."""
        metrics = get_metrics()
        for name, status in report.outcomes:
            metrics.record_delivery(name, status.value)

        sent = [n for n, s in report.outcomes if s is DeliveryStatus.SENT]
        failed = [n for n, s in report.outcomes if s is DeliveryStatus.FAILED]

        if failed and not sent:
            logger.error("%r failed ALL attempted channels: %s", summary.title, failed)
        elif failed:
            logger.warning(
                "%r partial delivery: ok=%s failed=%s", summary.title, sent, failed,
            )
        elif not sent:
            logger.warning("%r not delivered: every channel skipped", summary.title)
        else:
            logger.debug("%r delivered via %s", summary.title, sent)


def create_dispatcher(
    destinations: DestinationRegistry | None,
    email_recipient: str | None,
    config: NotificationConfig | None = None,
) -> NotificationDispatcher:
    """Build a dispatcher with the Resend and Expo adapters from config."""
    config = config or NotificationConfig()

    api_key = config.resend_api_key.get_secret_value() if config.resend_api_key else None
    access_token = (
        config.expo_access_token.get_secret_value() if config.expo_access_token else None
    )

    email = EmailChannel(
        api_key=api_key,
        from_email=config.resend_from_email,
        api_url=config.resend_api_url,
        timeout=config.channel_timeout_seconds,
    )
    push = PushChannel(
        access_token=access_token,
        push_url=config.expo_push_url,
        chunk_size=config.push_chunk_size,
        timeout=config.channel_timeout_seconds,
    )
    return NotificationDispatcher(
        email_channel=email,
        push_channel=push,
        destinations=destinations,
        email_recipient=email_recipient,
        config=config,
    )
