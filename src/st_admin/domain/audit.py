"""Admin audit log contract."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession


@dataclass
class AuditEntry:
    id: int
    actor_id: str
    action: str
    target_type: str
    target_id: str
    before_value: dict[str, Any] = field(default_factory=dict)
    after_value: dict[str, Any] = field(default_factory=dict)
    description: str | None = None
    created_at: datetime | None = None


class AdminAuditLogProtocol(Protocol):
    async def record(
        self,
        db: AsyncSession,
        actor_id: str,
        action: str,
        target_type: str,
        target_id: str,
        before_value: dict[str, Any],
        after_value: dict[str, Any],
        description: str | None = None,
    ) -> None:
        """Append within the caller's transaction, so the entry commits with the change."""
        ...

    async def list_for_target(
        self, db: AsyncSession, target_type: str, target_id: str, limit: int
    ) -> list[AuditEntry]: ...
