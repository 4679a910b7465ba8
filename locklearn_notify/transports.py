"""
Notification transports.

A transport delivers a NotificationPayload and returns nothing. Delivery is
best-effort and at most once: transports never retry, and a failure surfaces
as TransportError for the caller to log.

Variants are picked at construction time by create_transport():
- LogTransport: writes prompts to the log (desktop / development)
- WebhookTransport: POSTs the payload to a push gateway (web, mobile)
- MultiTransport: fans out to several transports
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger

from .exceptions import TransportError

if TYPE_CHECKING:
    from .config import Settings
    from .models import Quiz

# Compact notification UIs render at most two action buttons
MAX_QUICK_ACTIONS = 2


# =============================================================================
# Payload
# =============================================================================


@dataclass(frozen=True)
class QuickAction:
    label: str
    action_id: str


@dataclass(frozen=True)
class NotificationPayload:
    """What a transport sends for one quiz prompt."""

    title: str
    body: str
    quick_actions: tuple[QuickAction, ...] = ()
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_quiz(
        cls,
        quiz: Quiz,
        notification_id: str,
        user_id: str,
        title: str = "LockLearn Quiz",
    ) -> NotificationPayload:
        """Build the payload for a quiz: question as body, first two options as actions."""
        actions = tuple(
            QuickAction(label=option, action_id=f"answer-{index}")
            for index, option in enumerate(quiz.options[:MAX_QUICK_ACTIONS])
        )
        return cls(
            title=title,
            body=quiz.question,
            quick_actions=actions,
            data={
                "notification_id": notification_id,
                "quiz_id": quiz.id,
                "user_id": user_id,
                "type": "quiz",
            },
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "body": self.body,
            "quick_actions": [
                {"label": a.label, "action_id": a.action_id} for a in self.quick_actions
            ],
            "data": dict(self.data),
        }


# =============================================================================
# Transports
# =============================================================================


class Transport(ABC):
    """Capability interface for notification delivery."""

    name: str = "transport"

    @abstractmethod
    async def send(self, payload: NotificationPayload) -> None:
        """
        Deliver a payload.

        Raises:
            TransportError: If the payload could not be handed off
        """

    async def aclose(self) -> None:
        """Release any held resources."""


class LogTransport(Transport):
    """Writes prompts to the log instead of a device."""

    name = "log"

    def __init__(self, level: str = "INFO"):
        self.level = level

    async def send(self, payload: NotificationPayload) -> None:
        actions = ", ".join(a.label for a in payload.quick_actions) or "-"
        logger.log(
            self.level,
            "[{}] {} | {} (actions: {})",
            payload.data.get("notification_id", "?"),
            payload.title,
            payload.body,
            actions,
        )


class WebhookTransport(Transport):
    """HTTP transport for a push gateway (web push, FCM/APNS bridge)."""

    def __init__(
        self,
        url: str,
        platform: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize webhook transport.

        Args:
            url: Push gateway endpoint
            platform: Platform tag sent with each payload ("web", "mobile")
            timeout_seconds: Request timeout
            client: Optional pre-built client (tests inject a MockTransport)
        """
        self.url = url
        self.platform = platform
        self.name = f"webhook:{platform}"
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
        )

    async def send(self, payload: NotificationPayload) -> None:
        body = payload.to_dict()
        body["platform"] = self.platform
        try:
            response = await self.client.post(self.url, json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Push gateway returned {e.response.status_code} for {self.platform}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Push gateway unreachable for {self.platform}: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


class MultiTransport(Transport):
    """Sends to every child transport; fails if any child failed."""

    name = "multi"

    def __init__(self, transports: list[Transport] | None = None):
        self.transports = list(transports or [])

    async def send(self, payload: NotificationPayload) -> None:
        if not self.transports:
            logger.debug("No transports configured - payload dropped")
            return

        failures: list[str] = []
        for transport in self.transports:
            try:
                await transport.send(payload)
            except TransportError as e:
                failures.append(f"{transport.name}: {e}")

        if failures:
            raise TransportError("; ".join(failures))

    async def aclose(self) -> None:
        for transport in self.transports:
            await transport.aclose()


def create_transport(settings: Settings) -> Transport:
    """
    Build the transport for the enabled platforms.

    Web and mobile go through the push gateway when one is configured;
    desktop logs locally.
    """
    transports: list[Transport] = []

    if settings.push_gateway_url:
        for platform, enabled in (
            ("web", settings.platform_web),
            ("mobile", settings.platform_mobile),
        ):
            if enabled:
                transports.append(
                    WebhookTransport(
                        settings.push_gateway_url,
                        platform=platform,
                        timeout_seconds=settings.push_timeout_seconds,
                    )
                )
    elif settings.platform_web or settings.platform_mobile:
        logger.info("No push gateway configured - web/mobile delivery disabled")

    if settings.platform_desktop:
        transports.append(LogTransport())

    if len(transports) == 1:
        return transports[0]
    return MultiTransport(transports)
