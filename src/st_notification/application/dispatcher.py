"""OutboxDispatcher — delivers pending outbox rows through the gateway.

Rows are claimed with FOR UPDATE SKIP LOCKED, so several dispatchers can run
at once. A failed send bumps `attempts`; after NOTIFICATION_MAX_ATTEMPTS the
row is parked as `failed`. Delivery errors never propagate.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.st_common.database import async_session_factory
from src.st_notification.domain.repository import (
    NotificationGatewayProtocol,
    OutboxRepositoryProtocol,
)
from src.st_notification.infrastructure.gateways import build_gateway
from src.st_notification.infrastructure.persistence import OutboxRepository

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    claimed: int = 0
    sent: int = 0
    failed: int = 0


class OutboxDispatcher:
    def __init__(
        self,
        gateway: NotificationGatewayProtocol | None = None,
        repo: OutboxRepositoryProtocol | None = None,
        session_factory: Callable[[], AsyncSession] | None = None,
        max_attempts: int | None = None,
        batch_size: int | None = None,
    ) -> None:
        self._gateway: NotificationGatewayProtocol = gateway or build_gateway()
        self._repo: OutboxRepositoryProtocol = repo or OutboxRepository()
        self._session_factory = session_factory or async_session_factory
        self._max_attempts = max_attempts or settings.NOTIFICATION_MAX_ATTEMPTS
        self._batch_size = batch_size or settings.NOTIFICATION_BATCH_SIZE

    async def dispatch_once(self) -> DispatchResult:
        result = DispatchResult()
        async with self._session_factory() as db:
            try:
                messages = await self._repo.claim_pending(
                    db, self._batch_size, self._max_attempts
                )
                result.claimed = len(messages)
                for message in messages:
                    try:
                        await self._gateway.send(
                            message.notification_type, message.recipient, message.payload
                        )
                    except Exception as e:
                        give_up = message.attempts + 1 >= self._max_attempts
                        logger.warning(
                            "Notification %d (%s → %s) failed, attempt %d%s: %s",
                            message.id,
                            message.notification_type,
                            message.recipient,
                            message.attempts + 1,
                            ", giving up" if give_up else "",
                            e,
                        )
                        await self._repo.mark_failed(db, message.id, str(e), give_up)
                        result.failed += 1
                    else:
                        await self._repo.mark_sent(db, message.id)
                        result.sent += 1
                await db.commit()
            except Exception:
                await db.rollback()
                logger.exception("Outbox dispatch batch aborted")
        return result
