"""Repository Protocol for fulfillment confirmations.

Writers hold the order row lock (SELECT ... FOR UPDATE on `orders`) before
touching a confirmation, so `save` is a plain overwrite. The scheduler's claim
is the exception: it is conditional so overlapping sweeps cannot both win.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.st_confirmation.domain.models import FulfillmentConfirmation


class ConfirmationRepositoryProtocol(Protocol):
    async def get(self, db: AsyncSession, order_id: str) -> FulfillmentConfirmation | None: ...

    async def get_or_create(
        self, db: AsyncSession, order_id: str, leg: str
    ) -> FulfillmentConfirmation: ...

    async def save(
        self, db: AsyncSession, confirmation: FulfillmentConfirmation
    ) -> FulfillmentConfirmation: ...

    async def list_due_order_ids(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[str]: ...

    async def claim_auto_completion(
        self, db: AsyncSession, confirmation: FulfillmentConfirmation
    ) -> bool:
        """Persist an AUTO_COMPLETED confirmation only if auto_completed_at is still unset."""
        ...
