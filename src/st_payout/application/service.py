"""PayoutService — moves wallet balance out to the seller's processor account.

process_payout runs in four phases, each in its own short transaction:

  1. checks (read only): wallet exists → balance / minimum → processor
     account → processor readiness
  2. INSERT payout_attempts (requested), COMMIT
     the partial unique index allows one in-flight attempt per wallet
  3. processor.create_payout(idempotency_key=attempt.id), no transaction open
  4. attempt → submitted, COMMIT; then in one transaction: debit the wallet
     with key payout:<processor_payout_id>, stamp payout dates,
     attempt → completed, enqueue payout_processed, COMMIT

If phase 4 fails after the processor accepted the payout, the attempt stays
`submitted` and reconcile_submitted settles it later. A retryable processor
error in phase 3 leaves the attempt `requested`; reconciliation resubmits
it with the same idempotency key. An attempt that keeps failing is parked as
`needs_review` for an operator.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.st_common.cents import cents_to_display
from src.st_common.database import async_session_factory
from src.st_common.datetime_utils import utc_now
from src.st_common.enums import (
    NotificationType,
    PayoutAttemptStatus,
    PayoutMode,
    WalletTransactionType,
)
from src.st_common.errors import (
    BelowMinimumPayoutError,
    ExternalProcessorError,
    InsufficientBalanceError,
    InvalidAmountError,
    ProcessorAccountMissingError,
    ProcessorNotReadyError,
    WalletInactiveError,
    WalletNotFoundError,
)
from src.st_common.identity import WalletOwnerId
from src.st_notification.application.outbox import NotificationOutbox
from src.st_payout.application.schemas import (
    BatchResult,
    PayoutAttemptItem,
    PayoutHistoryResponse,
    PayoutResponse,
    PayoutSettingsResponse,
    PayoutStatusResponse,
    SetupAccountResponse,
)
from src.st_payout.domain.models import PayoutAttempt
from src.st_payout.domain.repository import (
    PaymentProcessorProtocol,
    PayoutAttemptRepositoryProtocol,
)
from src.st_payout.domain.schedule import next_payout_date
from src.st_payout.infrastructure.persistence import PayoutAttemptRepository
from src.st_payout.infrastructure.processor import build_processor
from src.st_wallet.application.service import build_ledger
from src.st_wallet.domain.ledger import WalletLedger, payout_key
from src.st_wallet.domain.models import LedgerPosting, Wallet
from src.st_wallet.domain.repository import WalletRepositoryProtocol
from src.st_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)


def _value(v: Any) -> str:
    return str(getattr(v, "value", v))


def _payout_amount(wallet: Wallet, amount: int | None) -> int:
    if amount is None:
        minimum = wallet.payout_settings.minimum_payout
        if wallet.balance <= 0 or wallet.balance < minimum:
            raise BelowMinimumPayoutError(minimum=minimum, available=wallet.balance)
        return wallet.balance
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(f"Payout amount must be a positive integer, got {amount!r}")
    if amount > wallet.balance:
        raise InsufficientBalanceError(required=amount, available=wallet.balance)
    return amount


class PayoutService:
    def __init__(
        self,
        wallet_repo: WalletRepositoryProtocol | None = None,
        attempt_repo: PayoutAttemptRepositoryProtocol | None = None,
        processor: PaymentProcessorProtocol | None = None,
        ledger: WalletLedger | None = None,
        outbox: NotificationOutbox | None = None,
        session_factory: Callable[[], AsyncSession] | None = None,
        max_reconcile_attempts: int | None = None,
    ) -> None:
        self._wallets: WalletRepositoryProtocol = wallet_repo or WalletRepository()
        self._attempts: PayoutAttemptRepositoryProtocol = attempt_repo or PayoutAttemptRepository()
        self._processor: PaymentProcessorProtocol = processor or build_processor()
        self._ledger = ledger or build_ledger(self._wallets)
        self._outbox = outbox or NotificationOutbox()
        self._session_factory = session_factory or async_session_factory
        self._max_reconcile_attempts = (
            max_reconcile_attempts or settings.PAYOUT_RECONCILE_MAX_ATTEMPTS
        )

    async def _ensure_wallet(self, db: AsyncSession, owner_id: WalletOwnerId) -> Wallet:
        try:
            wallet = await self._ledger.get_or_create_wallet(db, owner_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return wallet

    # ------------------------------------------------------------------
    # Status / account / settings
    # ------------------------------------------------------------------

    async def get_payout_status(
        self, db: AsyncSession, owner_id: WalletOwnerId
    ) -> PayoutStatusResponse:
        wallet = await self._ensure_wallet(db, owner_id)
        minimum = wallet.payout_settings.minimum_payout
        requirements: list[str] = []
        ready = False

        if wallet.processor_account_id is None:
            requirements.append("Set up a payment processor account")
        else:
            try:
                status = await self._processor.get_account_status(wallet.processor_account_id)
            except ExternalProcessorError as exc:
                logger.warning("Processor status lookup failed for %s: %s", owner_id, exc.message)
                requirements.append("Processor account status is unavailable, try again later")
            else:
                ready = status.ready
                requirements.extend(status.requirements)
                if not ready and not status.requirements:
                    requirements.append("Processor account is not ready for payouts")

        if not wallet.is_active:
            requirements.append("Wallet is inactive")
        if wallet.balance < minimum or wallet.balance <= 0:
            requirements.append(
                f"Balance must reach the minimum payout of {cents_to_display(minimum)}"
            )

        return PayoutStatusResponse(
            owner_id=owner_id,
            has_processor_account=wallet.processor_account_id is not None,
            is_ready_for_payouts=ready,
            balance_cents=wallet.balance,
            balance_display=cents_to_display(wallet.balance),
            minimum_payout_cents=minimum,
            can_payout=(
                ready and wallet.is_active and wallet.balance > 0 and wallet.balance >= minimum
            ),
            requirements=requirements,
        )

    async def setup_account(
        self, db: AsyncSession, owner_id: WalletOwnerId, identity: dict[str, Any]
    ) -> SetupAccountResponse:
        wallet = await self._ensure_wallet(db, owner_id)
        if wallet.processor_account_id is not None:
            return SetupAccountResponse(
                owner_id=owner_id,
                processor_account_id=wallet.processor_account_id,
                created=False,
            )

        # No transaction is open here; the processor call may be slow.
        account_id = await self._processor.create_account(owner_id, identity)

        try:
            stored = await self._wallets.set_processor_account(db, owner_id, account_id)
            current = stored or await self._wallets.get_by_owner(db, owner_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if current is None:
            raise WalletNotFoundError(owner_id)
        if stored is None:
            logger.warning(
                "Concurrent setup for %s kept %s, processor account %s is unused",
                owner_id, current.processor_account_id, account_id,
            )
            return SetupAccountResponse(
                owner_id=owner_id,
                processor_account_id=current.processor_account_id or account_id,
                created=False,
            )
        logger.info("Processor account %s set up for %s", account_id, owner_id)
        return SetupAccountResponse(
            owner_id=owner_id, processor_account_id=account_id, created=True
        )

    async def update_payout_settings(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        enabled: bool | None = None,
        schedule: str | None = None,
        minimum_payout: int | None = None,
    ) -> PayoutSettingsResponse:
        try:
            wallet = await self._ledger.get_or_create_wallet(db, owner_id)
            current = wallet.payout_settings
            new_enabled = current.enabled if enabled is None else enabled
            new_schedule = _value(schedule) if schedule is not None else current.schedule
            new_minimum = current.minimum_payout if minimum_payout is None else minimum_payout
            if new_minimum < 0:
                raise InvalidAmountError(f"Minimum payout cannot be negative, got {new_minimum}")
            next_at = next_payout_date(new_schedule, utc_now()) if new_enabled else None

            updated = await self._wallets.update_payout_settings(
                db, owner_id, new_enabled, new_schedule, new_minimum, next_at
            )
            if updated is None:
                raise WalletNotFoundError(owner_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        s = updated.payout_settings
        return PayoutSettingsResponse(
            owner_id=owner_id,
            enabled=s.enabled,
            schedule=s.schedule,
            minimum_payout_cents=s.minimum_payout,
            last_payout_at=s.last_payout_at.isoformat() if s.last_payout_at else None,
            next_payout_at=s.next_payout_at.isoformat() if s.next_payout_at else None,
        )

    async def get_payout_history(
        self, db: AsyncSession, owner_id: WalletOwnerId, limit: int = 20, offset: int = 0
    ) -> PayoutHistoryResponse:
        items, total = await self._attempts.list_for_owner(db, owner_id, offset, limit)
        return PayoutHistoryResponse(
            items=[PayoutAttemptItem.from_domain(a) for a in items],
            total=total,
            limit=limit,
            offset=offset,
        )

    # ------------------------------------------------------------------
    # Payout
    # ------------------------------------------------------------------

    async def process_payout(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        amount: int | None = None,
        mode: str | None = None,
    ) -> PayoutResponse:
        if mode is None:
            mode = PayoutMode.AUTOMATIC if amount is None else PayoutMode.MANUAL
        mode = _value(mode)

        # Phase 1: checks, read only
        try:
            wallet = await self._wallets.get_by_owner(db, owner_id)
            if wallet is None:
                raise WalletNotFoundError(owner_id)
            if not wallet.is_active:
                raise WalletInactiveError(owner_id)
            payout_amount = _payout_amount(wallet, amount)
            account_id = wallet.processor_account_id
            if account_id is None:
                raise ProcessorAccountMissingError(owner_id)
        finally:
            # Nothing was written; end the read transaction before any external call.
            await db.rollback()

        if not await self._processor.is_ready_for_payouts(account_id):
            raise ProcessorNotReadyError(account_id)

        # Phase 2: durable attempt
        try:
            attempt = await self._attempts.create(
                db, owner_id, payout_amount, wallet.currency, mode
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Payout attempt %s: %d cents for %s (%s)", attempt.id, payout_amount, owner_id, mode
        )

        # Phase 3: external call, no transaction open
        try:
            payout = await self._processor.create_payout(
                account_id,
                payout_amount,
                wallet.currency,
                f"Payout {attempt.id}",
                attempt.id,
            )
        except ExternalProcessorError as exc:
            await self._after_submit_failure(db, attempt, exc)
            raise

        # Phase 4: record and settle
        attempt = await self._mark_submitted(db, attempt.id, payout.id) or attempt
        try:
            attempt, posting = await self._settle(db, attempt.id)
        except Exception as exc:
            logger.exception(
                "Payout %s accepted by processor as %s but not settled locally",
                attempt.id, payout.id,
            )
            attempt = await self._record_failure(db, attempt.id, f"settle failed: {exc}") or attempt
            return PayoutResponse(
                attempt=PayoutAttemptItem.from_domain(attempt),
                balance_cents=None,
                pending_reconciliation=True,
            )

        return PayoutResponse(
            attempt=PayoutAttemptItem.from_domain(attempt),
            balance_cents=posting.wallet.balance if posting else None,
            pending_reconciliation=attempt.status != PayoutAttemptStatus.COMPLETED,
        )

    async def _mark_submitted(
        self, db: AsyncSession, attempt_id: str, processor_payout_id: str
    ) -> PayoutAttempt | None:
        try:
            attempt = await self._attempts.mark_submitted(db, attempt_id, processor_payout_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return attempt

    async def _after_submit_failure(
        self, db: AsyncSession, attempt: PayoutAttempt, exc: ExternalProcessorError
    ) -> None:
        try:
            if exc.retryable:
                # The processor may still have accepted it; resubmit later with the same key.
                await self._attempts.record_error(db, attempt.id, exc.message)
            else:
                await self._attempts.mark_failed(db, attempt.id, exc.message)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.warning("Payout attempt %s not submitted: %s", attempt.id, exc.message)

    async def _settle(
        self, db: AsyncSession, attempt_id: str
    ) -> tuple[PayoutAttempt | None, LedgerPosting | None]:
        """Debit the wallet for a `submitted` attempt and mark it completed."""
        try:
            attempt = await self._attempts.get(db, attempt_id, for_update=True)
            if attempt is None or attempt.status != PayoutAttemptStatus.SUBMITTED:
                await db.rollback()
                return attempt, None

            processor_payout_id = attempt.processor_payout_id or ""
            posting = await self._ledger.debit_funds(
                db,
                attempt.owner_id,
                attempt.amount,
                WalletTransactionType.PAYOUT,
                f"Payout {processor_payout_id}",
                {
                    "processor_payout_id": processor_payout_id,
                    "payout_attempt_id": attempt.id,
                    "mode": attempt.mode,
                },
                "payout",
                attempt.id,
                payout_key(processor_payout_id),
            )

            now = utc_now()
            payout_settings = posting.wallet.payout_settings
            next_at = (
                next_payout_date(payout_settings.schedule, now) if payout_settings.enabled else None
            )
            await self._wallets.record_payout_dates(db, attempt.owner_id, now, next_at)
            completed = await self._attempts.mark_completed(db, attempt.id, posting.transaction.id)
            await self._outbox.notify(
                db,
                NotificationType.PAYOUT_PROCESSED,
                attempt.owner_id,
                {
                    "amount_cents": attempt.amount,
                    "currency": attempt.currency,
                    "processor_payout_id": processor_payout_id,
                },
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Payout %s settled: %d cents debited from %s",
            attempt.id, attempt.amount, attempt.owner_id,
        )
        return completed or attempt, posting

    async def _record_failure(
        self, db: AsyncSession, attempt_id: str, error: str
    ) -> PayoutAttempt | None:
        """Count a failed settle or resubmit; park the attempt once it keeps failing."""
        try:
            attempt = await self._attempts.record_error(db, attempt_id, error)
            if attempt is not None and attempt.reconcile_attempts >= self._max_reconcile_attempts:
                attempt = await self._attempts.mark_needs_review(db, attempt_id, error)
                logger.error("Payout attempt %s needs review: %s", attempt_id, error)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return attempt

    # ------------------------------------------------------------------
    # Background jobs
    # ------------------------------------------------------------------

    async def reconcile_submitted(self, now: datetime | None = None) -> BatchResult:
        """Finish in-flight attempts that were left behind by a failed request."""
        now = now or utc_now()
        older_than = now - timedelta(seconds=settings.PAYOUT_RECONCILE_AFTER_SECONDS)
        result = BatchResult()

        async with self._session_factory() as db:
            stale = await self._attempts.list_stale(
                db, older_than, settings.SCHEDULED_PAYOUT_BATCH_SIZE
            )
        result.candidates = len(stale)

        for attempt in stale:
            async with self._session_factory() as db:
                try:
                    final = await self._reconcile_one(db, attempt)
                except Exception:
                    result.failed += 1
                    logger.exception("Reconciliation failed for payout attempt %s", attempt.id)
                    continue
            if final is None:
                result.skipped += 1
            elif final.status == PayoutAttemptStatus.COMPLETED:
                result.completed += 1
            elif final.status == PayoutAttemptStatus.NEEDS_REVIEW:
                result.needs_review += 1
            elif final.status == PayoutAttemptStatus.FAILED:
                result.failed += 1
            else:
                result.skipped += 1

        if result.candidates:
            logger.info("Payout reconciliation: %s", result.model_dump())
        return result

    async def _reconcile_one(
        self, db: AsyncSession, attempt: PayoutAttempt
    ) -> PayoutAttempt | None:
        if attempt.status == PayoutAttemptStatus.REQUESTED:
            wallet = await self._wallets.get_by_owner(db, attempt.owner_id)
            await db.rollback()
            if wallet is None or wallet.processor_account_id is None:
                return await self._record_failure(db, attempt.id, "processor account missing")
            try:
                payout = await self._processor.create_payout(
                    wallet.processor_account_id,
                    attempt.amount,
                    attempt.currency,
                    f"Payout {attempt.id}",
                    attempt.id,
                )
            except ExternalProcessorError as exc:
                if not exc.retryable:
                    await self._after_submit_failure(db, attempt, exc)
                    return await self._attempts.get(db, attempt.id)
                return await self._record_failure(db, attempt.id, exc.message)
            await self._mark_submitted(db, attempt.id, payout.id)

        try:
            settled, _ = await self._settle(db, attempt.id)
        except Exception as exc:
            logger.warning("Settling payout attempt %s failed: %s", attempt.id, exc)
            return await self._record_failure(db, attempt.id, f"settle failed: {exc}")
        return settled

    async def process_scheduled_payouts(self, now: datetime | None = None) -> BatchResult:
        """Pay out every wallet whose schedule is due.

        Each wallet is claimed by advancing next_payout_at with a conditional
        update, so concurrent runs never pay the same period twice.
        """
        now = now or utc_now()
        result = BatchResult()

        async with self._session_factory() as db:
            due = await self._wallets.list_due_for_payout(
                db, now, settings.SCHEDULED_PAYOUT_BATCH_SIZE
            )
        result.candidates = len(due)

        for wallet in due:
            async with self._session_factory() as db:
                try:
                    outcome = await self._process_scheduled_one(db, wallet, now)
                except Exception:
                    result.failed += 1
                    logger.exception("Scheduled payout failed for %s", wallet.owner_id)
                    continue
            if outcome is None:
                result.skipped += 1
            elif outcome.pending_reconciliation:
                result.failed += 1
            else:
                result.completed += 1

        if result.candidates:
            logger.info("Scheduled payouts: %s", result.model_dump())
        return result

    async def _process_scheduled_one(
        self, db: AsyncSession, wallet: Wallet, now: datetime
    ) -> PayoutResponse | None:
        expected = wallet.payout_settings.next_payout_at
        if expected is None:
            return None
        try:
            claimed = await self._wallets.claim_scheduled_payout(
                db,
                wallet.owner_id,
                expected,
                next_payout_date(wallet.payout_settings.schedule, now),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if not claimed:
            return None
        return await self.process_payout(db, wallet.owner_id, None, PayoutMode.SCHEDULED)
