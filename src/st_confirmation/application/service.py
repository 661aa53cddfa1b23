"""ConfirmationService — seller/buyer handoff confirmation and dispute reporting.

Every write locks the order row first (SELECT ... FOR UPDATE). That lock
serializes buyer confirmation, dispute reporting and the auto-completion
sweep for one order, so the dispute flag read here is never stale, and
Finalize runs in the same transaction as the confirmation that triggered it.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.st_common.datetime_utils import utc_now
from src.st_common.enums import DisputeParty, NotificationType, PaymentStatus
from src.st_common.errors import (
    AlreadyFinalizedError,
    OrderDisputedError,
    OrderNotFoundError,
    UnauthorizedOrderAccessError,
    WrongDeliveryMethodError,
)
from src.st_confirmation.application.finalizer import OrderFinalizer
from src.st_confirmation.application.schemas import (
    BuyerConfirmResponse,
    ConfirmationStatusResponse,
    ConfirmationView,
    DisputeReportResponse,
    DisputeSummary,
    SellerConfirmResponse,
)
from src.st_confirmation.domain import state_machine
from src.st_confirmation.domain.repository import ConfirmationRepositoryProtocol
from src.st_confirmation.infrastructure.persistence import ConfirmationRepository
from src.st_dispute.domain.models import NewDispute
from src.st_dispute.domain.repository import DisputeRepositoryProtocol
from src.st_dispute.infrastructure.persistence import DisputeRepository
from src.st_notification.application.outbox import NotificationOutbox
from src.st_order.domain.models import Order
from src.st_order.domain.repository import OrderRepositoryProtocol
from src.st_order.infrastructure.persistence import OrderRepository
from src.st_wallet.application.service import build_ledger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """Who is acting on the order: a user id and/or a guest contact e-mail."""

    user_id: str | None = None
    email: str | None = None
    is_admin: bool = False


def _is_buyer(order: Order, caller: Caller) -> bool:
    return any(
        order.is_buyer(candidate)
        for candidate in (caller.user_id, caller.email)
        if candidate
    )


def _check_leg(order: Order, leg: str) -> None:
    if order.leg != leg:
        raise WrongDeliveryMethodError(
            order.id, order.delivery_method, str(getattr(leg, "value", leg))
        )


class ConfirmationService:
    def __init__(
        self,
        order_repo: OrderRepositoryProtocol | None = None,
        confirmation_repo: ConfirmationRepositoryProtocol | None = None,
        dispute_repo: DisputeRepositoryProtocol | None = None,
        finalizer: OrderFinalizer | None = None,
        outbox: NotificationOutbox | None = None,
    ) -> None:
        self._orders: OrderRepositoryProtocol = order_repo or OrderRepository()
        self._confirmations: ConfirmationRepositoryProtocol = (
            confirmation_repo or ConfirmationRepository()
        )
        self._disputes: DisputeRepositoryProtocol = dispute_repo or DisputeRepository()
        self._outbox = outbox or NotificationOutbox()
        self._finalizer = finalizer or OrderFinalizer(self._orders, build_ledger(), self._outbox)

    async def _load_locked(self, db: AsyncSession, order_id: str) -> Order:
        order = await self._orders.get_by_id(db, order_id, for_update=True)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def _ensure_not_disputed(self, db: AsyncSession, order: Order) -> None:
        dispute = await self._disputes.get(db, order.id)
        if dispute is not None and dispute.is_disputed:
            raise OrderDisputedError(order.id)
        if order.payment_status == PaymentStatus.HELD_IN_DISPUTE:
            raise OrderDisputedError(order.id)

    # ------------------------------------------------------------------
    # Seller
    # ------------------------------------------------------------------

    async def confirm_seller(
        self,
        db: AsyncSession,
        order_id: str,
        seller_user_id: str,
        leg: str,
        notes: str | None = None,
        delivery_proof: list[str] | None = None,
    ) -> SellerConfirmResponse:
        try:
            order = await self._load_locked(db, order_id)
            if not order.is_seller(seller_user_id):
                raise UnauthorizedOrderAccessError(order_id)
            _check_leg(order, leg)
            await self._ensure_not_disputed(db, order)
            if order.is_finalized:
                raise AlreadyFinalizedError(order_id)

            current = await self._confirmations.get_or_create(db, order_id, order.leg.value)
            updated = state_machine.confirm_seller(
                current,
                utc_now(),
                settings.CONFIRMATION_WINDOW_HOURS,
                notes,
                tuple(delivery_proof or ()),
            )
            already_confirmed = updated is current
            if not already_confirmed:
                updated = await self._confirmations.save(db, updated)
                await self._outbox.notify(
                    db,
                    NotificationType.CONFIRMATION_PENDING,
                    order.buyer_recipient,
                    {
                        "order_id": order_id,
                        "leg": updated.leg,
                        "completion_deadline": updated.completion_deadline,
                    },
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if not already_confirmed:
            logger.info(
                "Seller confirmed %s for order %s, deadline %s",
                updated.leg, order_id, updated.completion_deadline,
            )
        return SellerConfirmResponse(
            confirmation=ConfirmationView.from_domain(updated),
            already_confirmed=already_confirmed,
        )

    # ------------------------------------------------------------------
    # Buyer
    # ------------------------------------------------------------------

    async def confirm_buyer(
        self,
        db: AsyncSession,
        order_id: str,
        caller: Caller,
        leg: str,
        notes: str | None = None,
    ) -> BuyerConfirmResponse:
        try:
            order = await self._load_locked(db, order_id)
            if not _is_buyer(order, caller):
                raise UnauthorizedOrderAccessError(order_id)
            _check_leg(order, leg)
            await self._ensure_not_disputed(db, order)

            if order.is_finalized:
                await db.rollback()
                confirmation = await self._confirmations.get(db, order_id)
                return BuyerConfirmResponse(
                    order_id=order_id,
                    payment_status=order.payment_status,
                    already_finalized=True,
                    credited_cents=0,
                    confirmation=(
                        ConfirmationView.from_domain(confirmation) if confirmation else None
                    ),
                )

            current = await self._confirmations.get_or_create(db, order_id, order.leg.value)
            updated = await self._confirmations.save(
                db, state_machine.confirm_buyer(current, utc_now(), notes)
            )
            outcome = await self._finalizer.finalize(db, order_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        return BuyerConfirmResponse(
            order_id=order_id,
            payment_status=outcome.order.payment_status if outcome.order else order.payment_status,
            already_finalized=not outcome.finalized,
            credited_cents=outcome.credited_cents,
            confirmation=ConfirmationView.from_domain(updated),
        )

    # ------------------------------------------------------------------
    # Dispute
    # ------------------------------------------------------------------

    async def report_dispute(
        self,
        db: AsyncSession,
        order_id: str,
        caller: Caller,
        dispute_type: str,
        reason: str,
        details: str | None = None,
        evidence: list[dict[str, Any]] | None = None,
        reported_by: str | None = None,
    ) -> DisputeReportResponse:
        try:
            order = await self._load_locked(db, order_id)
            if caller.user_id and order.is_seller(caller.user_id):
                party = DisputeParty.ARTISAN
                reporter_id = caller.user_id
            elif _is_buyer(order, caller):
                party = DisputeParty.BUYER
                reporter_id = caller.user_id or caller.email or ""
            else:
                raise UnauthorizedOrderAccessError(order_id)
            if reported_by is not None and reported_by != party:
                raise UnauthorizedOrderAccessError(order_id)

            await self._ensure_not_disputed(db, order)
            if order.is_finalized:
                raise AlreadyFinalizedError(order_id)

            current = await self._confirmations.get_or_create(db, order_id, order.leg.value)
            await self._confirmations.save(db, state_machine.mark_disputed(current))

            held = await self._orders.set_payment_status(
                db, order_id, PaymentStatus.HELD_IN_DISPUTE, (PaymentStatus.PENDING,)
            )
            if held is None:
                raise AlreadyFinalizedError(order_id)

            now = utc_now()
            dispute = await self._disputes.open_dispute(
                db,
                NewDispute(
                    order_id=order_id,
                    dispute_type=dispute_type,
                    reason=reason,
                    reported_by=party.value,
                    reporter_id=reporter_id,
                    details=details,
                    evidence=[
                        {**item, "uploaded_by": reporter_id, "uploaded_at": now.isoformat()}
                        for item in (evidence or [])
                    ],
                ),
            )
            if dispute is None:
                raise OrderDisputedError(order_id)

            await self._outbox.notify(
                db,
                NotificationType.DISPUTE_REPORTED,
                settings.NOTIFICATION_ADMIN_RECIPIENT,
                {
                    "order_id": order_id,
                    "reported_by": party.value,
                    "dispute_type": dispute_type,
                    "reason": reason,
                },
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.warning("Dispute reported on order %s by %s, funds held", order_id, party.value)
        return DisputeReportResponse(
            order_id=order_id,
            payment_status=held.payment_status,
            dispute=DisputeSummary.from_domain(dispute),
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_confirmation_status(
        self, db: AsyncSession, order_id: str, caller: Caller
    ) -> ConfirmationStatusResponse:
        order = await self._orders.get_by_id(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        allowed = caller.is_admin or _is_buyer(order, caller) or (
            caller.user_id is not None and order.is_seller(caller.user_id)
        )
        if not allowed:
            raise UnauthorizedOrderAccessError(order_id)

        confirmation = await self._confirmations.get(db, order_id)
        dispute = await self._disputes.get(db, order_id)
        return ConfirmationStatusResponse(
            order_id=order_id,
            delivery_method=order.delivery_method,
            status=order.status,
            payment_status=order.payment_status,
            completed_at=order.completed_at.isoformat() if order.completed_at else None,
            confirmation=ConfirmationView.from_domain(confirmation) if confirmation else None,
            dispute=DisputeSummary.from_domain(dispute) if dispute else None,
        )
