"""ConfirmationRepository — raw SQL over `fulfillment_confirmations`."""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.st_common.enums import ConfirmationState
from src.st_confirmation.domain.models import FulfillmentConfirmation, PartyConfirmation

_CONF_COLUMNS = """
    order_id, leg, state,
    artisan_confirmed, artisan_confirmed_at, artisan_notes, delivery_proof,
    buyer_confirmed, buyer_confirmed_at, buyer_notes,
    completion_deadline, auto_completed_at
"""

_GET_SQL = text(
    f"SELECT {_CONF_COLUMNS} FROM fulfillment_confirmations WHERE order_id = :order_id"
)

_GET_OR_CREATE_SQL = text(f"""
    INSERT INTO fulfillment_confirmations (order_id, leg)
    VALUES (:order_id, :leg)
    ON CONFLICT (order_id) DO UPDATE
        SET updated_at = NOW()
    RETURNING {_CONF_COLUMNS}
""")

_SAVE_SQL = text(f"""
    UPDATE fulfillment_confirmations
    SET state = :state,
        artisan_confirmed = :artisan_confirmed,
        artisan_confirmed_at = :artisan_confirmed_at,
        artisan_notes = :artisan_notes,
        delivery_proof = CAST(:delivery_proof AS JSONB),
        buyer_confirmed = :buyer_confirmed,
        buyer_confirmed_at = :buyer_confirmed_at,
        buyer_notes = :buyer_notes,
        completion_deadline = :completion_deadline,
        auto_completed_at = :auto_completed_at,
        updated_at = NOW()
    WHERE order_id = :order_id
    RETURNING {_CONF_COLUMNS}
""")

_LIST_DUE_SQL = text("""
    SELECT c.order_id
    FROM fulfillment_confirmations c
    JOIN orders o ON o.id = c.order_id
    LEFT JOIN order_disputes d ON d.order_id = c.order_id
    WHERE c.state = 'AWAITING_BUYER'
      AND c.artisan_confirmed
      AND NOT c.buyer_confirmed
      AND c.auto_completed_at IS NULL
      AND c.completion_deadline <= :now
      AND COALESCE(d.is_disputed, FALSE) = FALSE
      AND o.payment_status = 'pending'
    ORDER BY c.completion_deadline
    LIMIT :limit
""")

_CLAIM_SQL = text("""
    UPDATE fulfillment_confirmations
    SET state = :state,
        auto_completed_at = :auto_completed_at,
        updated_at = NOW()
    WHERE order_id = :order_id
      AND auto_completed_at IS NULL
      AND state = 'AWAITING_BUYER'
    RETURNING order_id
""")


def _load_proof(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (str, bytes)):
        value = json.loads(value)
    return tuple(str(v) for v in value)


def _row_to_confirmation(row: Any) -> FulfillmentConfirmation:
    return FulfillmentConfirmation(
        order_id=row.order_id,
        leg=row.leg,
        state=ConfirmationState(row.state),
        artisan_confirmed=PartyConfirmation(
            row.artisan_confirmed, row.artisan_confirmed_at, row.artisan_notes
        ),
        buyer_confirmed=PartyConfirmation(
            row.buyer_confirmed, row.buyer_confirmed_at, row.buyer_notes
        ),
        delivery_proof=_load_proof(row.delivery_proof),
        completion_deadline=row.completion_deadline,
        auto_completed_at=row.auto_completed_at,
    )


class ConfirmationRepository:
    async def get(self, db: AsyncSession, order_id: str) -> FulfillmentConfirmation | None:
        row = (await db.execute(_GET_SQL, {"order_id": order_id})).fetchone()
        return _row_to_confirmation(row) if row is not None else None

    async def get_or_create(
        self, db: AsyncSession, order_id: str, leg: str
    ) -> FulfillmentConfirmation:
        row = (
            await db.execute(
                _GET_OR_CREATE_SQL,
                {"order_id": order_id, "leg": str(getattr(leg, "value", leg))},
            )
        ).fetchone()
        return _row_to_confirmation(row)

    async def save(
        self, db: AsyncSession, confirmation: FulfillmentConfirmation
    ) -> FulfillmentConfirmation:
        c = confirmation
        row = (
            await db.execute(
                _SAVE_SQL,
                {
                    "order_id": c.order_id,
                    "state": ConfirmationState(c.state).value,
                    "artisan_confirmed": c.artisan_confirmed.confirmed,
                    "artisan_confirmed_at": c.artisan_confirmed.confirmed_at,
                    "artisan_notes": c.artisan_confirmed.notes,
                    "delivery_proof": json.dumps(list(c.delivery_proof)),
                    "buyer_confirmed": c.buyer_confirmed.confirmed,
                    "buyer_confirmed_at": c.buyer_confirmed.confirmed_at,
                    "buyer_notes": c.buyer_confirmed.notes,
                    "completion_deadline": c.completion_deadline,
                    "auto_completed_at": c.auto_completed_at,
                },
            )
        ).fetchone()
        return _row_to_confirmation(row)

    async def list_due_order_ids(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[str]:
        rows = (await db.execute(_LIST_DUE_SQL, {"now": now, "limit": limit})).fetchall()
        return [r.order_id for r in rows]

    async def claim_auto_completion(
        self, db: AsyncSession, confirmation: FulfillmentConfirmation
    ) -> bool:
        row = (
            await db.execute(
                _CLAIM_SQL,
                {
                    "order_id": confirmation.order_id,
                    "state": ConfirmationState(confirmation.state).value,
                    "auto_completed_at": confirmation.auto_completed_at,
                },
            )
        ).fetchone()
        return row is not None
