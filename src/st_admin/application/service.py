"""Admin application service — ledger verification and wallet activation."""

import logging
from dataclasses import asdict

from sqlalchemy.ext.asyncio import AsyncSession

from src.st_admin.application.schemas import (
    DispatchResponse,
    LedgerVerificationResponse,
    WalletActivationResponse,
)
from src.st_admin.domain.audit import AdminAuditLogProtocol
from src.st_admin.domain.ledger_invariants import count_wallets, verify_wallet_ledgers
from src.st_admin.infrastructure.audit_log import SqlAdminAuditLog
from src.st_common.errors import WalletNotFoundError
from src.st_common.identity import WalletOwnerId
from src.st_notification.application.dispatcher import OutboxDispatcher
from src.st_wallet.domain.repository import WalletRepositoryProtocol
from src.st_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)


class AdminService:
    def __init__(
        self,
        wallet_repo: WalletRepositoryProtocol | None = None,
        audit_log: AdminAuditLogProtocol | None = None,
        dispatcher: OutboxDispatcher | None = None,
    ) -> None:
        self._wallets: WalletRepositoryProtocol = wallet_repo or WalletRepository()
        self._audit: AdminAuditLogProtocol = audit_log or SqlAdminAuditLog()
        self._dispatcher = dispatcher

    async def verify_ledgers(
        self, db: AsyncSession, owner_id: str | None = None
    ) -> LedgerVerificationResponse:
        checked = await count_wallets(db, owner_id)
        violations = await verify_wallet_ledgers(db, owner_id)
        return LedgerVerificationResponse(
            ok=not violations, wallets_checked=checked, violations=violations
        )

    async def set_wallet_active(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        is_active: bool,
        admin_id: str,
        reason: str | None = None,
    ) -> WalletActivationResponse:
        try:
            wallet = await self._wallets.get_by_owner(db, owner_id, for_update=True)
            if wallet is None:
                raise WalletNotFoundError(owner_id)
            updated = await self._wallets.set_active(db, owner_id, is_active)
            if updated is None:
                raise WalletNotFoundError(owner_id)
            await self._audit.record(
                db,
                admin_id,
                "wallet.activated" if is_active else "wallet.deactivated",
                "wallet",
                owner_id,
                {"is_active": wallet.is_active},
                {"is_active": is_active},
                reason,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Wallet %s is_active=%s by %s", owner_id, is_active, admin_id)
        return WalletActivationResponse(
            owner_id=owner_id, is_active=updated.is_active, balance_cents=updated.balance
        )

    async def dispatch_notifications(self) -> DispatchResponse:
        dispatcher = self._dispatcher or OutboxDispatcher()
        result = await dispatcher.dispatch_once()
        return DispatchResponse(**asdict(result))
