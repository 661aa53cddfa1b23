"""AutoCompletionSweeper — finalizes orders whose buyer never confirmed in time.

Each candidate runs in its own session and transaction:
  1. lock the order row (serializes with buyer confirmation and disputes)
  2. re-check the dispute flag and the confirmation under that lock
  3. claim: UPDATE ... SET auto_completed_at WHERE auto_completed_at IS NULL
  4. Finalize, then commit

A failure rolls back that order's transaction, so auto_completed_at stays
unset and the next sweep retries it. Overlapping sweeps are safe: only one
of them can win the claim for a given order.
"""

import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.st_common.database import async_session_factory
from src.st_common.datetime_utils import utc_now
from src.st_confirmation.application.finalizer import OrderFinalizer
from src.st_confirmation.domain import state_machine
from src.st_confirmation.domain.repository import ConfirmationRepositoryProtocol
from src.st_confirmation.infrastructure.persistence import ConfirmationRepository
from src.st_dispute.domain.repository import DisputeRepositoryProtocol
from src.st_dispute.infrastructure.persistence import DisputeRepository
from src.st_notification.application.outbox import NotificationOutbox
from src.st_order.domain.repository import OrderRepositoryProtocol
from src.st_order.infrastructure.persistence import OrderRepository
from src.st_wallet.application.service import build_ledger

logger = logging.getLogger(__name__)

_BATCH_LIMIT = 500


@dataclass
class SweepResult:
    candidates: int = 0
    completed: int = 0
    skipped: int = 0
    failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class AutoCompletionSweeper:
    def __init__(
        self,
        order_repo: OrderRepositoryProtocol | None = None,
        confirmation_repo: ConfirmationRepositoryProtocol | None = None,
        dispute_repo: DisputeRepositoryProtocol | None = None,
        finalizer: OrderFinalizer | None = None,
        session_factory: Callable[[], AsyncSession] | None = None,
        batch_limit: int = _BATCH_LIMIT,
    ) -> None:
        self._orders: OrderRepositoryProtocol = order_repo or OrderRepository()
        self._confirmations: ConfirmationRepositoryProtocol = (
            confirmation_repo or ConfirmationRepository()
        )
        self._disputes: DisputeRepositoryProtocol = dispute_repo or DisputeRepository()
        self._finalizer = finalizer or OrderFinalizer(
            self._orders, build_ledger(), NotificationOutbox()
        )
        self._session_factory = session_factory or async_session_factory
        self._batch_limit = batch_limit

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        now = now or utc_now()
        result = SweepResult()

        async with self._session_factory() as db:
            order_ids = await self._confirmations.list_due_order_ids(db, now, self._batch_limit)
        result.candidates = len(order_ids)

        for order_id in order_ids:
            try:
                completed = await self._complete_one(order_id, now)
            except Exception:
                result.failed += 1
                logger.exception("Auto-completion failed for order %s, will retry", order_id)
                continue
            if completed:
                result.completed += 1
            else:
                result.skipped += 1

        if result.candidates:
            logger.info("Auto-completion sweep: %s", result.as_dict())
        return result

    async def _complete_one(self, order_id: str, now: datetime) -> bool:
        async with self._session_factory() as db:
            try:
                order = await self._orders.get_by_id(db, order_id, for_update=True)
                if order is None or order.is_finalized:
                    await db.rollback()
                    return False

                dispute = await self._disputes.get(db, order_id)
                if dispute is not None and dispute.is_disputed:
                    await db.rollback()
                    return False

                confirmation = await self._confirmations.get(db, order_id)
                if confirmation is None or not state_machine.is_due(confirmation, now):
                    await db.rollback()
                    return False

                claimed = await self._confirmations.claim_auto_completion(
                    db, state_machine.auto_complete(confirmation, now)
                )
                if not claimed:
                    await db.rollback()
                    return False

                outcome = await self._finalizer.finalize(db, order_id)
                if not outcome.finalized:
                    # Order is no longer pending; leave auto_completed_at unset.
                    await db.rollback()
                    return False
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        logger.info("Order %s auto-completed after deadline", order_id)
        return True
