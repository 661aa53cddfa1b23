"""OrderFinalizer — marks an order fulfilled and credits the seller.

Runs inside the caller's transaction and never commits. Idempotency comes
from the conditional order update: it only matches while payment_status is
one of the expected values, so a second call (or a racing confirmation that
committed first) matches 0 rows and returns `finalized=False` without
touching the ledger. A dispute committed earlier has already moved the order
to held_in_dispute, which the normal path does not expect.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.st_common.enums import NotificationType, PaymentStatus
from src.st_notification.application.outbox import NotificationOutbox
from src.st_order.domain.models import Order
from src.st_order.domain.repository import OrderRepositoryProtocol
from src.st_wallet.domain.ledger import WalletLedger
from src.st_wallet.domain.models import LedgerPosting

logger = logging.getLogger(__name__)


@dataclass
class FinalizeOutcome:
    order_id: str
    finalized: bool
    order: Order | None = None
    posting: LedgerPosting | None = None

    @property
    def credited_cents(self) -> int:
        if self.posting is None or self.posting.replayed:
            return 0
        return self.posting.transaction.amount


class OrderFinalizer:
    def __init__(
        self,
        order_repo: OrderRepositoryProtocol,
        ledger: WalletLedger,
        outbox: NotificationOutbox,
    ) -> None:
        self._orders = order_repo
        self._ledger = ledger
        self._outbox = outbox

    async def finalize(
        self,
        db: AsyncSession,
        order_id: str,
        expected_payment_statuses: Sequence[str] = (PaymentStatus.PENDING,),
    ) -> FinalizeOutcome:
        order = await self._orders.mark_finalized(db, order_id, expected_payment_statuses)
        if order is None:
            logger.info("Order %s already finalized or held, finalize is a no-op", order_id)
            return FinalizeOutcome(order_id=order_id, finalized=False)

        posting = await self._ledger.credit_order_revenue(db, order_id)
        await self._outbox.notify(
            db,
            NotificationType.ORDER_COMPLETED,
            order.seller_recipient,
            {
                "order_id": order_id,
                "status": order.status,
                "credited_cents": posting.transaction.amount if posting else 0,
            },
        )
        logger.info("Order %s finalized as %s", order_id, order.status)
        return FinalizeOutcome(order_id=order_id, finalized=True, order=order, posting=posting)
