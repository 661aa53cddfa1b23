"""PayoutAttemptRepository — durable record of every external payout request.

A partial unique index on owner_id over the in-flight statuses
(`requested`, `submitted`) enforces one in-flight attempt per wallet. The
insert runs under a SAVEPOINT so that a losing concurrent request surfaces
as PayoutInProgressError without poisoning the caller's transaction.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.st_common.errors import PayoutInProgressError
from src.st_common.identity import WalletOwnerId
from src.st_payout.domain.models import PayoutAttempt

_ATTEMPT_COLUMNS = """
    id, owner_id, amount_cents, currency, mode, status, processor_payout_id,
    transaction_id, error, reconcile_attempts, created_at, updated_at
"""

_INSERT_SQL = text(f"""
    INSERT INTO payout_attempts (owner_id, amount_cents, currency, mode)
    VALUES (:owner_id, :amount, :currency, :mode)
    RETURNING {_ATTEMPT_COLUMNS}
""")

_GET_SQL = text(f"SELECT {_ATTEMPT_COLUMNS} FROM payout_attempts WHERE id = :id")

_GET_FOR_UPDATE_SQL = text(
    f"SELECT {_ATTEMPT_COLUMNS} FROM payout_attempts WHERE id = :id FOR UPDATE"
)

_MARK_SUBMITTED_SQL = text(f"""
    UPDATE payout_attempts
    SET status = 'submitted', processor_payout_id = :processor_payout_id,
        error = NULL, updated_at = NOW()
    WHERE id = :id AND status = 'requested'
    RETURNING {_ATTEMPT_COLUMNS}
""")

_MARK_COMPLETED_SQL = text(f"""
    UPDATE payout_attempts
    SET status = 'completed', transaction_id = :transaction_id,
        error = NULL, updated_at = NOW()
    WHERE id = :id AND status = 'submitted'
    RETURNING {_ATTEMPT_COLUMNS}
""")

_MARK_FAILED_SQL = text(f"""
    UPDATE payout_attempts
    SET status = 'failed', error = :error, updated_at = NOW()
    WHERE id = :id AND status = 'requested'
    RETURNING {_ATTEMPT_COLUMNS}
""")

_RECORD_ERROR_SQL = text(f"""
    UPDATE payout_attempts
    SET error = :error, reconcile_attempts = reconcile_attempts + 1, updated_at = NOW()
    WHERE id = :id AND status IN ('requested', 'submitted')
    RETURNING {_ATTEMPT_COLUMNS}
""")

_MARK_NEEDS_REVIEW_SQL = text(f"""
    UPDATE payout_attempts
    SET status = 'needs_review', error = :error, updated_at = NOW()
    WHERE id = :id AND status IN ('requested', 'submitted')
    RETURNING {_ATTEMPT_COLUMNS}
""")

_LIST_FOR_OWNER_SQL = text(f"""
    SELECT {_ATTEMPT_COLUMNS}
    FROM payout_attempts
    WHERE owner_id = :owner_id
    ORDER BY created_at DESC, id
    OFFSET :offset
    LIMIT :limit
""")

_COUNT_FOR_OWNER_SQL = text("SELECT COUNT(*) FROM payout_attempts WHERE owner_id = :owner_id")

_LIST_STALE_SQL = text(f"""
    SELECT {_ATTEMPT_COLUMNS}
    FROM payout_attempts
    WHERE status IN ('requested', 'submitted') AND updated_at < :older_than
    ORDER BY updated_at
    LIMIT :limit
""")


def _row_to_attempt(row: Any) -> PayoutAttempt:
    return PayoutAttempt(
        id=str(row.id),
        owner_id=WalletOwnerId(row.owner_id),
        amount=row.amount_cents,
        currency=row.currency,
        mode=row.mode,
        status=row.status,
        processor_payout_id=row.processor_payout_id,
        transaction_id=row.transaction_id,
        error=row.error,
        reconcile_attempts=row.reconcile_attempts,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _value(v: Any) -> str:
    return str(getattr(v, "value", v))


class PayoutAttemptRepository:
    async def create(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        amount: int,
        currency: str,
        mode: str,
    ) -> PayoutAttempt:
        params = {
            "owner_id": owner_id,
            "amount": amount,
            "currency": currency,
            "mode": _value(mode),
        }
        try:
            async with db.begin_nested():
                row = (await db.execute(_INSERT_SQL, params)).fetchone()
        except IntegrityError:
            raise PayoutInProgressError(owner_id) from None
        return _row_to_attempt(row)

    async def get(
        self, db: AsyncSession, attempt_id: str, for_update: bool = False
    ) -> PayoutAttempt | None:
        sql = _GET_FOR_UPDATE_SQL if for_update else _GET_SQL
        row = (await db.execute(sql, {"id": attempt_id})).fetchone()
        return _row_to_attempt(row) if row else None

    async def _update(
        self, db: AsyncSession, sql: Any, params: dict[str, Any]
    ) -> PayoutAttempt | None:
        row = (await db.execute(sql, params)).fetchone()
        return _row_to_attempt(row) if row else None

    async def mark_submitted(
        self, db: AsyncSession, attempt_id: str, processor_payout_id: str
    ) -> PayoutAttempt | None:
        return await self._update(
            db, _MARK_SUBMITTED_SQL, {"id": attempt_id, "processor_payout_id": processor_payout_id}
        )

    async def mark_completed(
        self, db: AsyncSession, attempt_id: str, transaction_id: int
    ) -> PayoutAttempt | None:
        return await self._update(
            db, _MARK_COMPLETED_SQL, {"id": attempt_id, "transaction_id": transaction_id}
        )

    async def mark_failed(
        self, db: AsyncSession, attempt_id: str, error: str
    ) -> PayoutAttempt | None:
        return await self._update(db, _MARK_FAILED_SQL, {"id": attempt_id, "error": error})

    async def record_error(
        self, db: AsyncSession, attempt_id: str, error: str
    ) -> PayoutAttempt | None:
        return await self._update(db, _RECORD_ERROR_SQL, {"id": attempt_id, "error": error})

    async def mark_needs_review(
        self, db: AsyncSession, attempt_id: str, error: str
    ) -> PayoutAttempt | None:
        return await self._update(db, _MARK_NEEDS_REVIEW_SQL, {"id": attempt_id, "error": error})

    async def list_for_owner(
        self, db: AsyncSession, owner_id: WalletOwnerId, offset: int, limit: int
    ) -> tuple[list[PayoutAttempt], int]:
        rows = (
            await db.execute(
                _LIST_FOR_OWNER_SQL, {"owner_id": owner_id, "offset": offset, "limit": limit}
            )
        ).fetchall()
        total = (await db.execute(_COUNT_FOR_OWNER_SQL, {"owner_id": owner_id})).scalar_one()
        return [_row_to_attempt(r) for r in rows], int(total)

    async def list_stale(
        self, db: AsyncSession, older_than: datetime, limit: int
    ) -> list[PayoutAttempt]:
        rows = (
            await db.execute(_LIST_STALE_SQL, {"older_than": older_than, "limit": limit})
        ).fetchall()
        return [_row_to_attempt(r) for r in rows]
