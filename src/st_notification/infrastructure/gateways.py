"""Notification gateways used by the outbox dispatcher.

The wire format belongs to whoever receives the webhook; this side only posts
the notification type, recipient and context as JSON.
"""

import logging
from typing import Any

import httpx

from config.settings import settings

logger = logging.getLogger(__name__)


class NotificationDeliveryError(Exception):
    pass


class HttpNotificationGateway:
    def __init__(
        self,
        url: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout if timeout is not None else settings.NOTIFICATION_TIMEOUT_SECONDS
        self._transport = transport

    async def send(
        self, notification_type: str, recipient: str, context: dict[str, Any]
    ) -> None:
        body = {"type": notification_type, "recipient": recipient, "context": context}
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                resp = await client.post(self._url, json=body)
                resp.raise_for_status()
            except httpx.HTTPError as e:
                raise NotificationDeliveryError(f"{type(e).__name__}: {e}") from e


class LoggingNotificationGateway:
    """Used when no webhook is configured: notifications only reach the log."""

    async def send(
        self, notification_type: str, recipient: str, context: dict[str, Any]
    ) -> None:
        logger.info("notification %s → %s %s", notification_type, recipient, context)


def build_gateway() -> HttpNotificationGateway | LoggingNotificationGateway:
    if settings.NOTIFICATION_WEBHOOK_URL:
        return HttpNotificationGateway(settings.NOTIFICATION_WEBHOOK_URL)
    return LoggingNotificationGateway()
