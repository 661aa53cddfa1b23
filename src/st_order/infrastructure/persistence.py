"""OrderRepository — raw SQL over the `orders` table.

Finalization and payment-status changes are conditional UPDATE ... RETURNING
statements: 0 rows means another writer already moved the order on, and the
caller treats that as a no-op.
"""

from collections.abc import Sequence

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.st_common.identity import SellerProfileId, WalletOwnerId
from src.st_order.domain.models import Order

_ORDER_COLUMNS = """
    id, status, payment_status, delivery_method, total_amount_cents,
    delivery_fee_cents, currency, artisan_profile_id, artisan_user_id,
    patron_user_id, guest_email, buyer_contact, artisan_contact,
    completed_at, created_at, updated_at
"""

_GET_ORDER_SQL = text(f"SELECT {_ORDER_COLUMNS} FROM orders WHERE id = :order_id")

_GET_ORDER_FOR_UPDATE_SQL = text(
    f"SELECT {_ORDER_COLUMNS} FROM orders WHERE id = :order_id FOR UPDATE"
)

_MARK_FINALIZED_SQL = text(f"""
    UPDATE orders
    SET status = CASE WHEN delivery_method = 'pickup' THEN 'picked_up' ELSE 'delivered' END,
        payment_status = 'paid',
        completed_at = NOW(),
        updated_at = NOW()
    WHERE id = :order_id
      AND payment_status = ANY(string_to_array(CAST(:expected_csv AS TEXT), ','))
    RETURNING {_ORDER_COLUMNS}
""")

_SET_PAYMENT_STATUS_SQL = text(f"""
    UPDATE orders
    SET payment_status = :new_status,
        updated_at = NOW()
    WHERE id = :order_id
      AND payment_status = ANY(string_to_array(CAST(:expected_csv AS TEXT), ','))
    RETURNING {_ORDER_COLUMNS}
""")


def _row_to_order(row: object) -> Order:
    return Order(
        id=row.id,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        payment_status=row.payment_status,  # type: ignore[attr-defined]
        delivery_method=row.delivery_method,  # type: ignore[attr-defined]
        total_amount=row.total_amount_cents,  # type: ignore[attr-defined]
        delivery_fee=row.delivery_fee_cents,  # type: ignore[attr-defined]
        currency=row.currency,  # type: ignore[attr-defined]
        artisan_profile_id=SellerProfileId(row.artisan_profile_id),  # type: ignore[attr-defined]
        artisan_user_id=WalletOwnerId(row.artisan_user_id),  # type: ignore[attr-defined]
        patron_user_id=row.patron_user_id,  # type: ignore[attr-defined]
        guest_email=row.guest_email,  # type: ignore[attr-defined]
        buyer_contact=row.buyer_contact,  # type: ignore[attr-defined]
        artisan_contact=row.artisan_contact,  # type: ignore[attr-defined]
        completed_at=row.completed_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _value(status: str) -> str:
    return str(getattr(status, "value", status))


def _csv(statuses: Sequence[str]) -> str:
    return ",".join(_value(s) for s in statuses)


class OrderRepository:
    async def get_by_id(
        self, db: AsyncSession, order_id: str, for_update: bool = False
    ) -> Order | None:
        sql = _GET_ORDER_FOR_UPDATE_SQL if for_update else _GET_ORDER_SQL
        row = (await db.execute(sql, {"order_id": order_id})).fetchone()
        return _row_to_order(row) if row is not None else None

    async def mark_finalized(
        self, db: AsyncSession, order_id: str, expected_payment_statuses: Sequence[str]
    ) -> Order | None:
        row = (
            await db.execute(
                _MARK_FINALIZED_SQL,
                {"order_id": order_id, "expected_csv": _csv(expected_payment_statuses)},
            )
        ).fetchone()
        return _row_to_order(row) if row is not None else None

    async def set_payment_status(
        self,
        db: AsyncSession,
        order_id: str,
        new_status: str,
        expected_payment_statuses: Sequence[str],
    ) -> Order | None:
        row = (
            await db.execute(
                _SET_PAYMENT_STATUS_SQL,
                {
                    "order_id": order_id,
                    "new_status": _value(new_status),
                    "expected_csv": _csv(expected_payment_statuses),
                },
            )
        ).fetchone()
        return _row_to_order(row) if row is not None else None
