"""WalletApplicationService — thin composition layer over WalletLedger.

Credit and debit commit their own transaction. Reads create the wallet lazily
and commit only that creation.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.st_common.identity import WalletOwnerId
from src.st_order.infrastructure.persistence import OrderRepository
from src.st_wallet.application.schemas import (
    CheckBalanceResponse,
    PostingResponse,
    TransactionItem,
    TransactionListResponse,
    WalletInfoResponse,
    cursor_decode,
    cursor_encode,
)
from src.st_wallet.domain.ledger import WalletLedger
from src.st_wallet.domain.models import Wallet
from src.st_wallet.domain.repository import WalletRepositoryProtocol
from src.st_wallet.infrastructure.fee_config import SettingsFeeConfig
from src.st_wallet.infrastructure.persistence import WalletRepository


def build_ledger(repo: WalletRepositoryProtocol | None = None) -> WalletLedger:
    """Wire the ledger with its production collaborators."""
    return WalletLedger(
        repo=repo or WalletRepository(),
        fee_config=SettingsFeeConfig(),
        order_repo=OrderRepository(),
    )


class WalletApplicationService:
    def __init__(
        self,
        repo: WalletRepositoryProtocol | None = None,
        ledger: WalletLedger | None = None,
    ) -> None:
        self._repo: WalletRepositoryProtocol = repo or WalletRepository()
        self._ledger = ledger or build_ledger(self._repo)

    async def _ensure_wallet(self, db: AsyncSession, owner_id: WalletOwnerId) -> Wallet:
        try:
            wallet = await self._ledger.get_or_create_wallet(db, owner_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return wallet

    async def get_wallet_info(
        self, db: AsyncSession, owner_id: WalletOwnerId, limit: int = 10
    ) -> WalletInfoResponse:
        wallet = await self._ensure_wallet(db, owner_id)
        recent = await self._repo.list_transactions(db, owner_id, None, limit, None)
        sums = await self._repo.sum_by_type(db, owner_id)
        return WalletInfoResponse.build(wallet, sums, recent)

    async def list_transactions(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        cursor: str | None,
        limit: int,
        tx_type: str | None,
    ) -> TransactionListResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        rows = await self._repo.list_transactions(db, owner_id, cursor_id, limit + 1, tx_type)
        has_more = len(rows) > limit
        page = rows[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return TransactionListResponse(
            items=[TransactionItem.from_domain(t) for t in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def check_balance(
        self, db: AsyncSession, owner_id: WalletOwnerId, amount_cents: int
    ) -> CheckBalanceResponse:
        wallet = await self._ensure_wallet(db, owner_id)
        return CheckBalanceResponse(
            owner_id=owner_id,
            balance_cents=wallet.balance,
            required_cents=amount_cents,
            has_sufficient_balance=wallet.balance >= amount_cents,
            shortfall_cents=max(0, amount_cents - wallet.balance),
        )

    async def debit_funds(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        amount_cents: int,
        tx_type: str,
        description: str,
        metadata: dict[str, Any] | None = None,
    ) -> PostingResponse:
        try:
            posting = await self._ledger.debit_funds(
                db, owner_id, amount_cents, tx_type, description, metadata
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return PostingResponse.from_posting(posting)

    async def credit_funds(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        amount_cents: int,
        tx_type: str,
        description: str,
        metadata: dict[str, Any] | None = None,
    ) -> PostingResponse:
        try:
            posting = await self._ledger.credit_funds(
                db, owner_id, amount_cents, tx_type, description, metadata
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return PostingResponse.from_posting(posting)
