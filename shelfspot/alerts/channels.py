"""Notification channel implementations for alert delivery.

Provides an ABC for notification channels plus concrete implementations
for e-mail (Resend HTTP API) and mobile push (Expo push service). A
CircuitBreaker decorator wraps any channel to stop hammering a
downstream service that keeps failing.

Every channel takes a list of destinations and the batch summary. The
e-mail channel receives the single configured recipient; the push
channel receives every registered device token and validates them in
``prepare_destinations`` before anything is sent.

Pattern: Decorator (CircuitBreaker wraps any NotificationChannel).
"""

import enum
import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx

from shelfspot.alerts.schemas import AlertSummary

logger = logging.getLogger(__name__)

# Expo accepts both token spellings plus bare device UUIDs
_EXPO_TOKEN_RE = re.compile(r"^(?:ExponentPushToken|ExpoPushToken)\[.+\]$")
_EXPO_UUID_RE = re.compile(
    r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$",
    re.IGNORECASE,
)


class ChannelError(Exception):
    """Hard delivery failure raised by a channel."""


class NotificationChannel(ABC):
    """Abstract base for notification delivery channels."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this channel (e.g. 'email', 'push')."""

    def prepare_destinations(self, destinations: list[str]) -> list[str]:
        """Drop destinations this channel cannot deliver to.

        The default implementation only drops empty values.
        """
        return [d for d in destinations if d]

    @abstractmethod
    async def send(self, destinations: list[str], summary: AlertSummary) -> bool:
        """Deliver the summary to the given destinations.

        Args:
            destinations: Validated destinations (see ``prepare_destinations``).
            summary: Batch summary to deliver.

        Returns:
            True if delivery succeeded, False otherwise.
        """


def format_sender(from_email: str, app_name: str = "ShelfSpot") -> str:
    """Normalize the configured sender into a ``Name <address>`` string.

    A bare domain becomes ``noreply@domain``; a bare address gets the app
    name; an already formatted sender is returned as-is.
    """
    if "@" not in from_email:
        return f"{app_name} <noreply@{from_email}>"
    if "<" not in from_email:
        return f"{app_name} <{from_email}>"
    return from_email


class EmailChannel(NotificationChannel):
    """Delivers alert summaries by e-mail through the Resend HTTP API.

    Creates a new ``httpx.AsyncClient`` per call (short-lived, no pooling).
    Without an API key the channel stays constructible but every send
    fails with a logged error.
    """

    def __init__(
        self,
        api_key: str | None,
        from_email: str = "noreply@resend.dev",
        api_url: str = "https://api.resend.com",
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._sender = format_sender(from_email)
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout

        if not api_key:
            logger.warning("Resend API key not configured, e-mail channel disabled")

    @property
    def name(self) -> str:
        return "email"

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _build_payload(self, destinations: list[str], summary: AlertSummary) -> dict:
        return {
            "from": self._sender,
            "to": destinations,
            "subject": summary.title,
            "text": summary.body,
        }

    async def send(self, destinations: list[str], summary: AlertSummary) -> bool:
        if not self._api_key:
            logger.error("E-mail service not configured, cannot send %r", summary.title)
            return False

        payload = self._build_payload(destinations, summary)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    f"{self._api_url}/emails",
                    json=payload,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
                if resp.is_success:
                    message_id = resp.json().get("id") if resp.content else None
                    logger.info("Alert e-mail sent, message id %s", message_id)
                    return True
                logger.warning(
                    "Resend returned %d for %r: %s",
                    resp.status_code, summary.title, resp.text[:200],
                )
                return False
        except httpx.TimeoutException:
            logger.warning("Resend timed out for %r", summary.title)
            return False
        except Exception as e:
            logger.warning("E-mail send failed for %r: %s", summary.title, e)
            return False


def is_push_token(token: Any) -> bool:
    """Check whether a value looks like an Expo push token."""
    if not isinstance(token, str):
        return False
    return bool(_EXPO_TOKEN_RE.match(token) or _EXPO_UUID_RE.match(token))


class PushChannel(NotificationChannel):
    """Delivers alert summaries as Expo push notifications.

    Messages are sent in chunks (Expo accepts at most 100 per request).
    Per-ticket errors are logged; a transport or HTTP failure raises
    ``ChannelError``.
    """

    def __init__(
        self,
        access_token: str | None = None,
        push_url: str = "https://exp.host/--/api/v2/push/send",
        chunk_size: int = 100,
        timeout: float = 10.0,
    ) -> None:
        self._access_token = access_token
        self._push_url = push_url
        self._chunk_size = chunk_size
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "push"

    def prepare_destinations(self, destinations: list[str]) -> list[str]:
        valid: list[str] = []
        for token in destinations:
            if is_push_token(token):
                valid.append(token)
            else:
                logger.warning("Invalid Expo push token: %s", token)
        return valid

    def _build_messages(self, tokens: list[str], summary: AlertSummary) -> list[dict]:
        return [
            {
                "to": token,
                "sound": "default",
                "title": summary.title,
                "body": summary.short,
                "data": {"type": "low_stock", "alerts": summary.alerts},
            }
            for token in tokens
        ]

    def _chunks(self, messages: list[dict]) -> list[list[dict]]:
        size = self._chunk_size
        return [messages[i:i + size] for i in range(0, len(messages), size)]

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    def _handle_tickets(self, tickets: list[dict]) -> int:
        """Log error tickets. Returns the number of error tickets."""
        errors = 0
        for index, ticket in enumerate(tickets):
            if ticket.get("status") == "error":
                errors += 1
                logger.error(
                    "Push notification error for ticket %d: %s (%s)",
                    index,
                    ticket.get("message"),
                    (ticket.get("details") or {}).get("error"),
                )
        return errors

    async def send(self, destinations: list[str], summary: AlertSummary) -> bool:
        messages = self._build_messages(destinations, summary)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                for chunk in self._chunks(messages):
                    resp = await client.post(
                        self._push_url,
                        json=chunk,
                        headers=self._headers(),
                    )
                    resp.raise_for_status()
                    self._handle_tickets(resp.json().get("data", []))
        except httpx.HTTPError as e:
            logger.error("Failed to send push notifications: %s", e)
            raise ChannelError(f"Expo push request failed: {e}") from e

        logger.info("Sent push notifications to %d device(s)", len(destinations))
        return True


class CircuitState(enum.Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker(NotificationChannel):
    """Wraps a NotificationChannel with circuit breaker protection.

    State machine: CLOSED → OPEN → HALF_OPEN → CLOSED.

    - CLOSED: All requests pass through. Consecutive failures tracked.
    - OPEN: Requests rejected immediately. After recovery_timeout, moves
      to HALF_OPEN.
    - HALF_OPEN: Single probe request allowed. Success → CLOSED, failure → OPEN.

    A send that raises counts as a failure and the exception is re-raised.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
    ) -> None:
        self._channel = channel
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._last_failure_time: float = 0.0

    @property
    def name(self) -> str:
        return self._channel.name

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def channel(self) -> NotificationChannel:
        return self._channel

    def prepare_destinations(self, destinations: list[str]) -> list[str]:
        return self._channel.prepare_destinations(destinations)

    async def send(self, destinations: list[str], summary: AlertSummary) -> bool:
        if self._state == CircuitState.OPEN:
            if time.monotonic() - self._last_failure_time >= self._recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                logger.info(
                    "Circuit breaker %s: OPEN → HALF_OPEN (recovery probe)",
                    self.name,
                )
            else:
                logger.debug(
                    "Circuit breaker %s: OPEN, rejecting %r",
                    self.name, summary.title,
                )
                return False

        try:
            success = await self._channel.send(destinations, summary)
        except Exception:
            self._record_failure()
            raise

        if success:
            if self._state == CircuitState.HALF_OPEN:
                logger.info(
                    "Circuit breaker %s: HALF_OPEN → CLOSED (probe succeeded)",
                    self.name,
                )
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
        else:
            self._record_failure()

        return success

    def _record_failure(self) -> None:
        self._consecutive_failures += 1
        self._last_failure_time = time.monotonic()

        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker %s: HALF_OPEN → OPEN (probe failed)",
                self.name,
            )
        elif self._consecutive_failures >= self._failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker %s: CLOSED → OPEN after %d failures",
                self.name, self._consecutive_failures,
            )
