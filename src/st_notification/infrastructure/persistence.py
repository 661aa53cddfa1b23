"""OutboxRepository — `notification_outbox` rows written in the business transaction."""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.st_notification.domain.models import NotificationIntent, OutboxMessage

_OUTBOX_COLUMNS = """
    id, notification_type, recipient, payload, status, attempts, last_error,
    created_at, sent_at
"""

_ENQUEUE_SQL = text("""
    INSERT INTO notification_outbox (notification_type, recipient, payload)
    VALUES (:notification_type, :recipient, CAST(:payload AS JSONB))
    RETURNING id
""")

_CLAIM_PENDING_SQL = text(f"""
    SELECT {_OUTBOX_COLUMNS}
    FROM notification_outbox
    WHERE status = 'pending' AND attempts < :max_attempts
    ORDER BY id
    LIMIT :limit
    FOR UPDATE SKIP LOCKED
""")

_MARK_SENT_SQL = text("""
    UPDATE notification_outbox
    SET status = 'sent', attempts = attempts + 1, sent_at = NOW(), last_error = NULL
    WHERE id = :id
""")

_MARK_FAILED_SQL = text("""
    UPDATE notification_outbox
    SET status = CASE WHEN :give_up THEN 'failed' ELSE 'pending' END,
        attempts = attempts + 1,
        last_error = :error
    WHERE id = :id
""")


def _load_json(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, (str, bytes)):
        return dict(json.loads(value))
    return dict(value)


def _row_to_message(row: Any) -> OutboxMessage:
    return OutboxMessage(
        id=row.id,
        notification_type=row.notification_type,
        recipient=row.recipient,
        payload=_load_json(row.payload),
        status=row.status,
        attempts=row.attempts,
        last_error=row.last_error,
        created_at=row.created_at,
        sent_at=row.sent_at,
    )


class OutboxRepository:
    async def enqueue(self, db: AsyncSession, intent: NotificationIntent) -> int:
        row = (
            await db.execute(
                _ENQUEUE_SQL,
                {
                    "notification_type": str(
                        getattr(intent.notification_type, "value", intent.notification_type)
                    ),
                    "recipient": intent.recipient,
                    "payload": json.dumps(intent.payload, default=str),
                },
            )
        ).fetchone()
        return int(row.id)  # type: ignore[union-attr]

    async def claim_pending(
        self, db: AsyncSession, limit: int, max_attempts: int
    ) -> list[OutboxMessage]:
        rows = (
            await db.execute(_CLAIM_PENDING_SQL, {"limit": limit, "max_attempts": max_attempts})
        ).fetchall()
        return [_row_to_message(r) for r in rows]

    async def mark_sent(self, db: AsyncSession, message_id: int) -> None:
        await db.execute(_MARK_SENT_SQL, {"id": message_id})

    async def mark_failed(
        self, db: AsyncSession, message_id: int, error: str, give_up: bool
    ) -> None:
        await db.execute(
            _MARK_FAILED_SQL, {"id": message_id, "error": error[:1000], "give_up": give_up}
        )
