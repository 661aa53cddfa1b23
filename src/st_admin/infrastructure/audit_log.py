"""SqlAdminAuditLog — append-only `admin_audit_log` rows."""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.st_admin.domain.audit import AuditEntry

_INSERT_SQL = text("""
    INSERT INTO admin_audit_log
        (actor_id, action, target_type, target_id, before_value, after_value, description)
    VALUES
        (:actor_id, :action, :target_type, :target_id,
         CAST(:before_value AS JSONB), CAST(:after_value AS JSONB), :description)
""")

_LIST_FOR_TARGET_SQL = text("""
    SELECT id, actor_id, action, target_type, target_id,
           before_value, after_value, description, created_at
    FROM admin_audit_log
    WHERE target_type = :target_type AND target_id = :target_id
    ORDER BY id DESC
    LIMIT :limit
""")


def _load_json(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, (str, bytes)):
        return dict(json.loads(value))
    return dict(value)


class SqlAdminAuditLog:
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
        await db.execute(
            _INSERT_SQL,
            {
                "actor_id": actor_id,
                "action": action,
                "target_type": target_type,
                "target_id": target_id,
                "before_value": json.dumps(before_value, default=str),
                "after_value": json.dumps(after_value, default=str),
                "description": description,
            },
        )

    async def list_for_target(
        self, db: AsyncSession, target_type: str, target_id: str, limit: int
    ) -> list[AuditEntry]:
        rows = (
            await db.execute(
                _LIST_FOR_TARGET_SQL,
                {"target_type": target_type, "target_id": target_id, "limit": limit},
            )
        ).fetchall()
        return [
            AuditEntry(
                id=r.id,
                actor_id=r.actor_id,
                action=r.action,
                target_type=r.target_type,
                target_id=r.target_id,
                before_value=_load_json(r.before_value),
                after_value=_load_json(r.after_value),
                description=r.description,
                created_at=r.created_at,
            )
            for r in rows
        ]
