"""Outbox and gateway Protocols."""

from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.st_notification.domain.models import NotificationIntent, OutboxMessage


class OutboxRepositoryProtocol(Protocol):
    async def enqueue(self, db: AsyncSession, intent: NotificationIntent) -> int: ...

    async def claim_pending(
        self, db: AsyncSession, limit: int, max_attempts: int
    ) -> list[OutboxMessage]:
        """Lock up to `limit` deliverable rows, skipping rows locked by other workers."""
        ...

    async def mark_sent(self, db: AsyncSession, message_id: int) -> None: ...

    async def mark_failed(
        self, db: AsyncSession, message_id: int, error: str, give_up: bool
    ) -> None: ...


class NotificationGatewayProtocol(Protocol):
    async def send(
        self, notification_type: str, recipient: str, context: dict[str, Any]
    ) -> None: ...
