"""Wallet ledger invariant checks.

  balance:  wallets.balance_cents == Σ wallet_transactions.amount_cents
  chain:    first balance_before == 0, each balance_before == previous
            balance_after, and balance_after == balance_before + amount
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_COUNT_WALLETS_SQL = text("""
    SELECT COUNT(*) FROM wallets
    WHERE CAST(:owner_id AS VARCHAR) IS NULL OR owner_id = :owner_id
""")

_BALANCE_DRIFT_SQL = text("""
    SELECT w.owner_id, w.balance_cents, COALESCE(SUM(t.amount_cents), 0) AS ledger_sum
    FROM wallets w
    LEFT JOIN wallet_transactions t ON t.wallet_id = w.id
    WHERE CAST(:owner_id AS VARCHAR) IS NULL OR w.owner_id = :owner_id
    GROUP BY w.id, w.owner_id, w.balance_cents
    HAVING w.balance_cents <> COALESCE(SUM(t.amount_cents), 0)
    LIMIT :limit
""")

_CHAIN_BREAK_SQL = text("""
    SELECT owner_id, id, amount_cents, balance_before_cents, balance_after_cents, prev_after
    FROM (
        SELECT t.owner_id, t.id, t.amount_cents, t.balance_before_cents,
               t.balance_after_cents,
               LAG(t.balance_after_cents) OVER (PARTITION BY t.wallet_id ORDER BY t.id)
                   AS prev_after
        FROM wallet_transactions t
        WHERE CAST(:owner_id AS VARCHAR) IS NULL OR t.owner_id = :owner_id
    ) chained
    WHERE balance_before_cents <> COALESCE(prev_after, 0)
       OR balance_after_cents <> balance_before_cents + amount_cents
    ORDER BY owner_id, id
    LIMIT :limit
""")


async def count_wallets(db: AsyncSession, owner_id: str | None = None) -> int:
    return int((await db.execute(_COUNT_WALLETS_SQL, {"owner_id": owner_id})).scalar_one())


async def verify_wallet_ledgers(
    db: AsyncSession, owner_id: str | None = None, limit: int = 100
) -> list[str]:
    """Return one violation string per drifted wallet or broken chain link."""
    violations: list[str] = []
    params = {"owner_id": owner_id, "limit": limit}

    for row in (await db.execute(_BALANCE_DRIFT_SQL, params)).fetchall():
        violations.append(
            f"wallet {row.owner_id}: balance {row.balance_cents} != ledger sum {row.ledger_sum}"
        )

    for row in (await db.execute(_CHAIN_BREAK_SQL, params)).fetchall():
        expected_before = row.prev_after if row.prev_after is not None else 0
        violations.append(
            f"wallet {row.owner_id}: transaction {row.id} "
            f"before={row.balance_before_cents} amount={row.amount_cents} "
            f"after={row.balance_after_cents}, expected before={expected_before}"
        )

    for v in violations:
        logger.error("Ledger invariant violated: %s", v)
    return violations
