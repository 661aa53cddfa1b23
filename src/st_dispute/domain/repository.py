"""Repository Protocol — dependency inversion for testability."""

from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.st_dispute.domain.models import Dispute, DisputeFilters, DisputeStatistics, NewDispute


class DisputeRepositoryProtocol(Protocol):
    async def get(
        self, db: AsyncSession, order_id: str, for_update: bool = False
    ) -> Dispute | None: ...

    async def open_dispute(self, db: AsyncSession, new: NewDispute) -> Dispute | None:
        """Insert the dispute. None if the order already has one."""
        ...

    async def update_status(
        self,
        db: AsyncSession,
        order_id: str,
        expected_status: str,
        status: str,
        admin_notes: str | None,
        resolved_by: str | None,
    ) -> Dispute | None:
        """Conditional on `expected_status`; stamps resolved_at when resolved_by is set."""
        ...

    async def resolve(
        self,
        db: AsyncSession,
        order_id: str,
        resolution: str,
        notes: str | None,
        admin_id: str,
        release_hold: bool,
    ) -> Dispute | None:
        """Conditional on no resolution being recorded yet."""
        ...

    async def add_evidence(
        self, db: AsyncSession, order_id: str, evidence: dict[str, Any]
    ) -> Dispute | None: ...

    async def list_disputes(
        self,
        db: AsyncSession,
        filters: DisputeFilters,
        offset: int,
        limit: int,
        sort_by: str,
        descending: bool,
    ) -> tuple[list[Dispute], int]: ...

    async def statistics(
        self, db: AsyncSession, since: datetime, period_days: int
    ) -> DisputeStatistics: ...
