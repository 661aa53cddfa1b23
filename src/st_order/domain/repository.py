"""Order Store Protocol — the only order operations settlement relies on."""

from collections.abc import Sequence
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.st_order.domain.models import Order


class OrderRepositoryProtocol(Protocol):
    async def get_by_id(
        self, db: AsyncSession, order_id: str, for_update: bool = False
    ) -> Order | None: ...

    async def mark_finalized(
        self, db: AsyncSession, order_id: str, expected_payment_statuses: Sequence[str]
    ) -> Order | None:
        """Set terminal status + paid + completed_at. None if payment_status was not expected."""
        ...

    async def set_payment_status(
        self,
        db: AsyncSession,
        order_id: str,
        new_status: str,
        expected_payment_statuses: Sequence[str],
    ) -> Order | None: ...
