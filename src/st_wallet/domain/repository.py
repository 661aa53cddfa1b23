"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock or the in-memory fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.st_common.identity import WalletOwnerId
from src.st_wallet.domain.models import (
    NewTransaction,
    Wallet,
    WalletCounters,
    WalletTransaction,
)


class WalletRepositoryProtocol(Protocol):
    async def get_or_create(
        self, db: AsyncSession, owner_id: WalletOwnerId, currency: str
    ) -> Wallet: ...

    async def get_by_owner(
        self, db: AsyncSession, owner_id: WalletOwnerId, for_update: bool = False
    ) -> Wallet | None: ...

    async def find_transaction_by_key(
        self, db: AsyncSession, idempotency_key: str
    ) -> WalletTransaction | None: ...

    async def insert_transaction(
        self, db: AsyncSession, new_tx: NewTransaction
    ) -> WalletTransaction: ...

    async def apply_balance(
        self,
        db: AsyncSession,
        wallet_id: str,
        expected_version: int,
        new_balance: int,
        deltas: WalletCounters,
    ) -> Wallet | None:
        """Write the new cached balance. None if the version moved underneath us."""
        ...

    async def list_transactions(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        cursor_id: int | None,
        limit: int,
        tx_type: str | None,
    ) -> list[WalletTransaction]: ...

    async def sum_by_type(
        self, db: AsyncSession, owner_id: WalletOwnerId
    ) -> dict[str, int]: ...

    async def set_active(
        self, db: AsyncSession, owner_id: WalletOwnerId, is_active: bool
    ) -> Wallet | None: ...

    async def update_payout_settings(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        enabled: bool,
        schedule: str,
        minimum_payout: int,
        next_payout_at: datetime | None,
    ) -> Wallet | None: ...

    async def record_payout_dates(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        last_payout_at: datetime,
        next_payout_at: datetime | None,
    ) -> Wallet | None: ...

    async def set_processor_account(
        self, db: AsyncSession, owner_id: WalletOwnerId, account_id: str
    ) -> Wallet | None:
        """Store the account id only if none is stored yet. None if one already exists."""
        ...

    async def list_due_for_payout(
        self, db: AsyncSession, now: datetime, limit: int
    ) -> list[Wallet]: ...

    async def claim_scheduled_payout(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        expected_next: datetime,
        new_next: datetime,
    ) -> bool: ...
