"""Repository and processor Protocols — dependency inversion for testability."""

from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.st_common.identity import WalletOwnerId
from src.st_payout.domain.models import PayoutAttempt, ProcessorAccountStatus, ProcessorPayout


class PayoutAttemptRepositoryProtocol(Protocol):
    async def create(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        amount: int,
        currency: str,
        mode: str,
    ) -> PayoutAttempt:
        """Insert a `requested` attempt. Raises PayoutInProgressError if one is in flight."""
        ...

    async def get(
        self, db: AsyncSession, attempt_id: str, for_update: bool = False
    ) -> PayoutAttempt | None: ...

    async def mark_submitted(
        self, db: AsyncSession, attempt_id: str, processor_payout_id: str
    ) -> PayoutAttempt | None:
        """requested → submitted. None if the attempt is no longer `requested`."""
        ...

    async def mark_completed(
        self, db: AsyncSession, attempt_id: str, transaction_id: int
    ) -> PayoutAttempt | None:
        """submitted → completed. None if the attempt is no longer `submitted`."""
        ...

    async def mark_failed(
        self, db: AsyncSession, attempt_id: str, error: str
    ) -> PayoutAttempt | None:
        """requested → failed, for a payout the processor definitively rejected."""
        ...

    async def record_error(
        self, db: AsyncSession, attempt_id: str, error: str
    ) -> PayoutAttempt | None:
        """Keep the status, store the error, bump reconcile_attempts."""
        ...

    async def mark_needs_review(
        self, db: AsyncSession, attempt_id: str, error: str
    ) -> PayoutAttempt | None: ...

    async def list_for_owner(
        self, db: AsyncSession, owner_id: WalletOwnerId, offset: int, limit: int
    ) -> tuple[list[PayoutAttempt], int]: ...

    async def list_stale(
        self, db: AsyncSession, older_than: datetime, limit: int
    ) -> list[PayoutAttempt]:
        """In-flight attempts not touched since `older_than`, oldest first."""
        ...


class PaymentProcessorProtocol(Protocol):
    async def create_account(self, owner_id: WalletOwnerId, identity: dict[str, Any]) -> str: ...

    async def get_account_status(self, account_id: str) -> ProcessorAccountStatus: ...

    async def is_ready_for_payouts(self, account_id: str) -> bool: ...

    async def create_payout(
        self,
        account_id: str,
        amount: int,
        currency: str,
        description: str,
        idempotency_key: str,
    ) -> ProcessorPayout:
        """Same idempotency_key → same payout; safe to repeat after a timeout."""
        ...
