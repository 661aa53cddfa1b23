"""NotificationOutbox — enqueue notification intents inside the business transaction.

Each intent is written under a SAVEPOINT, so a failed outbox insert is logged
and dropped without rolling back the confirmation, finalization or ledger
write it accompanies. Delivery happens later in OutboxDispatcher.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.st_notification.domain.models import NotificationIntent
from src.st_notification.domain.repository import OutboxRepositoryProtocol
from src.st_notification.infrastructure.persistence import OutboxRepository

logger = logging.getLogger(__name__)


class NotificationOutbox:
    def __init__(self, repo: OutboxRepositoryProtocol | None = None) -> None:
        self._repo: OutboxRepositoryProtocol = repo or OutboxRepository()

    async def notify(
        self,
        db: AsyncSession,
        notification_type: str,
        recipient: str | None,
        payload: dict[str, Any],
    ) -> None:
        type_value = str(getattr(notification_type, "value", notification_type))
        if not recipient:
            logger.warning("Dropping %s notification without recipient: %s", type_value, payload)
            return
        try:
            async with db.begin_nested():
                await self._repo.enqueue(
                    db, NotificationIntent(type_value, recipient, payload)
                )
        except Exception:
            logger.exception("Failed to enqueue %s notification for %s", type_value, recipient)
