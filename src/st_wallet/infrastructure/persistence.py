"""WalletRepository — concrete implementation of WalletRepositoryProtocol.

Lazy creation uses INSERT ... ON CONFLICT (owner_id) so concurrent first use
yields exactly one wallet. Balance writes are conditional on `version` and
always follow a SELECT ... FOR UPDATE issued by the ledger.

Transaction ownership: the CALLER commits.
"""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.st_common.identity import WalletOwnerId
from src.st_wallet.domain.models import (
    NewTransaction,
    PayoutSettings,
    Wallet,
    WalletCounters,
    WalletTransaction,
)

_WALLET_COLUMNS = """
    id, owner_id, balance_cents, currency, is_active, processor_account_id,
    payout_enabled, payout_schedule, minimum_payout_cents, last_payout_at, next_payout_at,
    total_earnings_cents, total_spent_cents, total_payouts_cents, platform_fees_cents,
    version, created_at, updated_at
"""

_TX_COLUMNS = """
    id, wallet_id, owner_id, type, amount_cents, currency,
    balance_before_cents, balance_after_cents, description,
    reference_type, reference_id, status, metadata, idempotency_key, created_at
"""

# ---------------------------------------------------------------------------
# SQL: wallets
# ---------------------------------------------------------------------------

_GET_OR_CREATE_SQL = text(f"""
    INSERT INTO wallets (owner_id, currency, minimum_payout_cents)
    VALUES (:owner_id, :currency, :minimum_payout)
    ON CONFLICT (owner_id) DO UPDATE
        SET updated_at = wallets.updated_at
    RETURNING {_WALLET_COLUMNS}
""")

_GET_WALLET_SQL = text(f"SELECT {_WALLET_COLUMNS} FROM wallets WHERE owner_id = :owner_id")

_GET_WALLET_FOR_UPDATE_SQL = text(
    f"SELECT {_WALLET_COLUMNS} FROM wallets WHERE owner_id = :owner_id FOR UPDATE"
)

_APPLY_BALANCE_SQL = text(f"""
    UPDATE wallets
    SET balance_cents = :new_balance,
        total_earnings_cents = total_earnings_cents + :d_earnings,
        total_spent_cents    = total_spent_cents    + :d_spent,
        total_payouts_cents  = total_payouts_cents  + :d_payouts,
        platform_fees_cents  = platform_fees_cents  + :d_fees,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :wallet_id AND version = :expected_version
    RETURNING {_WALLET_COLUMNS}
""")

_SET_ACTIVE_SQL = text(f"""
    UPDATE wallets
    SET is_active = :is_active, updated_at = NOW()
    WHERE owner_id = :owner_id
    RETURNING {_WALLET_COLUMNS}
""")

_UPDATE_PAYOUT_SETTINGS_SQL = text(f"""
    UPDATE wallets
    SET payout_enabled = :enabled,
        payout_schedule = :schedule,
        minimum_payout_cents = :minimum_payout,
        next_payout_at = :next_payout_at,
        updated_at = NOW()
    WHERE owner_id = :owner_id
    RETURNING {_WALLET_COLUMNS}
""")

_RECORD_PAYOUT_DATES_SQL = text(f"""
    UPDATE wallets
    SET last_payout_at = :last_payout_at,
        next_payout_at = :next_payout_at,
        updated_at = NOW()
    WHERE owner_id = :owner_id
    RETURNING {_WALLET_COLUMNS}
""")

_SET_PROCESSOR_ACCOUNT_SQL = text(f"""
    UPDATE wallets
    SET processor_account_id = :account_id, updated_at = NOW()
    WHERE owner_id = :owner_id AND processor_account_id IS NULL
    RETURNING {_WALLET_COLUMNS}
""")

_LIST_DUE_FOR_PAYOUT_SQL = text(f"""
    SELECT {_WALLET_COLUMNS}
    FROM wallets
    WHERE payout_enabled
      AND is_active
      AND processor_account_id IS NOT NULL
      AND next_payout_at IS NOT NULL
      AND next_payout_at <= :now
      AND balance_cents >= minimum_payout_cents
      AND balance_cents > 0
    ORDER BY next_payout_at
    LIMIT :limit
""")

_CLAIM_SCHEDULED_PAYOUT_SQL = text("""
    UPDATE wallets
    SET next_payout_at = :new_next, updated_at = NOW()
    WHERE owner_id = :owner_id AND next_payout_at = :expected_next
    RETURNING id
""")

# ---------------------------------------------------------------------------
# SQL: wallet_transactions (append-only)
# ---------------------------------------------------------------------------

_INSERT_TX_SQL = text(f"""
    INSERT INTO wallet_transactions
        (wallet_id, owner_id, type, amount_cents, currency,
         balance_before_cents, balance_after_cents, description,
         reference_type, reference_id, status, metadata, idempotency_key)
    VALUES
        (:wallet_id, :owner_id, :type, :amount, :currency,
         :balance_before, :balance_after, :description,
         :reference_type, :reference_id, 'completed', CAST(:metadata AS JSONB),
         :idempotency_key)
    RETURNING {_TX_COLUMNS}
""")

_FIND_TX_BY_KEY_SQL = text(
    f"SELECT {_TX_COLUMNS} FROM wallet_transactions WHERE idempotency_key = :key"
)

_LIST_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM wallet_transactions
    WHERE owner_id = :owner_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
      AND (CAST(:tx_type AS VARCHAR) IS NULL OR type = :tx_type)
    ORDER BY id DESC
    LIMIT :limit
""")

_SUM_BY_TYPE_SQL = text("""
    SELECT type, COALESCE(SUM(amount_cents), 0) AS total
    FROM wallet_transactions
    WHERE owner_id = :owner_id AND status = 'completed'
    GROUP BY type
""")


def _load_json(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, (str, bytes)):
        return dict(json.loads(value))
    return dict(value)


def _row_to_wallet(row: Any) -> Wallet:
    return Wallet(
        id=str(row.id),
        owner_id=WalletOwnerId(row.owner_id),
        balance=row.balance_cents,
        currency=row.currency,
        is_active=row.is_active,
        processor_account_id=row.processor_account_id,
        payout_settings=PayoutSettings(
            enabled=row.payout_enabled,
            schedule=row.payout_schedule,
            minimum_payout=row.minimum_payout_cents,
            last_payout_at=row.last_payout_at,
            next_payout_at=row.next_payout_at,
        ),
        counters=WalletCounters(
            total_earnings=row.total_earnings_cents,
            total_spent=row.total_spent_cents,
            total_payouts=row.total_payouts_cents,
            platform_fees=row.platform_fees_cents,
        ),
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_tx(row: Any) -> WalletTransaction:
    return WalletTransaction(
        id=row.id,
        wallet_id=str(row.wallet_id),
        owner_id=WalletOwnerId(row.owner_id),
        type=row.type,
        amount=row.amount_cents,
        currency=row.currency,
        balance_before=row.balance_before_cents,
        balance_after=row.balance_after_cents,
        description=row.description,
        reference_type=row.reference_type,
        reference_id=row.reference_id,
        status=row.status,
        metadata=_load_json(row.metadata),
        idempotency_key=row.idempotency_key,
        created_at=row.created_at,
    )


class WalletRepository:
    async def get_or_create(
        self, db: AsyncSession, owner_id: WalletOwnerId, currency: str
    ) -> Wallet:
        row = (
            await db.execute(
                _GET_OR_CREATE_SQL,
                {
                    "owner_id": owner_id,
                    "currency": currency,
                    "minimum_payout": settings.DEFAULT_MINIMUM_PAYOUT_CENTS,
                },
            )
        ).fetchone()
        return _row_to_wallet(row)

    async def get_by_owner(
        self, db: AsyncSession, owner_id: WalletOwnerId, for_update: bool = False
    ) -> Wallet | None:
        sql = _GET_WALLET_FOR_UPDATE_SQL if for_update else _GET_WALLET_SQL
        row = (await db.execute(sql, {"owner_id": owner_id})).fetchone()
        return _row_to_wallet(row) if row is not None else None

    async def find_transaction_by_key(
        self, db: AsyncSession, idempotency_key: str
    ) -> WalletTransaction | None:
        row = (await db.execute(_FIND_TX_BY_KEY_SQL, {"key": idempotency_key})).fetchone()
        return _row_to_tx(row) if row is not None else None

    async def insert_transaction(
        self, db: AsyncSession, new_tx: NewTransaction
    ) -> WalletTransaction:
        row = (
            await db.execute(
                _INSERT_TX_SQL,
                {
                    "wallet_id": new_tx.wallet_id,
                    "owner_id": new_tx.owner_id,
                    "type": new_tx.type,
                    "amount": new_tx.amount,
                    "currency": new_tx.currency,
                    "balance_before": new_tx.balance_before,
                    "balance_after": new_tx.balance_after,
                    "description": new_tx.description,
                    "reference_type": new_tx.reference_type,
                    "reference_id": new_tx.reference_id,
                    "metadata": json.dumps(new_tx.metadata),
                    "idempotency_key": new_tx.idempotency_key,
                },
            )
        ).fetchone()
        return _row_to_tx(row)

    async def apply_balance(
        self,
        db: AsyncSession,
        wallet_id: str,
        expected_version: int,
        new_balance: int,
        deltas: WalletCounters,
    ) -> Wallet | None:
        row = (
            await db.execute(
                _APPLY_BALANCE_SQL,
                {
                    "wallet_id": wallet_id,
                    "expected_version": expected_version,
                    "new_balance": new_balance,
                    "d_earnings": deltas.total_earnings,
                    "d_spent": deltas.total_spent,
                    "d_payouts": deltas.total_payouts,
                    "d_fees": deltas.platform_fees,
                },
            )
        ).fetchone()
        return _row_to_wallet(row) if row is not None else None

    async def list_transactions(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        cursor_id: int | None,
        limit: int,
        tx_type: str | None,
    ) -> list[WalletTransaction]:
        rows = (
            await db.execute(
                _LIST_TX_SQL,
                {
                    "owner_id": owner_id,
                    "cursor_id": cursor_id,
                    "limit": limit,
                    "tx_type": tx_type,
                },
            )
        ).fetchall()
        return [_row_to_tx(r) for r in rows]

    async def sum_by_type(self, db: AsyncSession, owner_id: WalletOwnerId) -> dict[str, int]:
        rows = (await db.execute(_SUM_BY_TYPE_SQL, {"owner_id": owner_id})).fetchall()
        return {r.type: int(r.total) for r in rows}

    async def set_active(
        self, db: AsyncSession, owner_id: WalletOwnerId, is_active: bool
    ) -> Wallet | None:
        row = (
            await db.execute(_SET_ACTIVE_SQL, {"owner_id": owner_id, "is_active": is_active})
        ).fetchone()
        return _row_to_wallet(row) if row is not None else None

    async def update_payout_settings(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        enabled: bool,
        schedule: str,
        minimum_payout: int,
        next_payout_at: datetime | None,
    ) -> Wallet | None:
        row = (
            await db.execute(
                _UPDATE_PAYOUT_SETTINGS_SQL,
                {
                    "owner_id": owner_id,
                    "enabled": enabled,
                    "schedule": schedule,
                    "minimum_payout": minimum_payout,
                    "next_payout_at": next_payout_at,
                },
            )
        ).fetchone()
        return _row_to_wallet(row) if row is not None else None

    async def record_payout_dates(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        last_payout_at: datetime,
        next_payout_at: datetime | None,
    ) -> Wallet | None:
        row = (
            await db.execute(
                _RECORD_PAYOUT_DATES_SQL,
                {
                    "owner_id": owner_id,
                    "last_payout_at": last_payout_at,
                    "next_payout_at": next_payout_at,
                },
            )
        ).fetchone()
        return _row_to_wallet(row) if row is not None else None

    async def set_processor_account(
        self, db: AsyncSession, owner_id: WalletOwnerId, account_id: str
    ) -> Wallet | None:
        row = (
            await db.execute(
                _SET_PROCESSOR_ACCOUNT_SQL, {"owner_id": owner_id, "account_id": account_id}
            )
        ).fetchone()
        return _row_to_wallet(row) if row is not None else None

    async def list_due_for_payout(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[Wallet]:
        rows = (
            await db.execute(_LIST_DUE_FOR_PAYOUT_SQL, {"now": now, "limit": limit})
        ).fetchall()
        return [_row_to_wallet(r) for r in rows]

    async def claim_scheduled_payout(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        expected_next: datetime,
        new_next: datetime,
    ) -> bool:
        row = (
            await db.execute(
                _CLAIM_SCHEDULED_PAYOUT_SQL,
                {"owner_id": owner_id, "expected_next": expected_next, "new_next": new_next},
            )
        ).fetchone()
        return row is not None
