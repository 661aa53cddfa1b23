"""DisputeService — admin-driven dispute workflow.

Role checks happen in the HTTP dependency layer (require_admin). Every write
locks the order row first, the same lock the confirmation flow and the
auto-completion sweep take, so a resolution can never interleave with a
finalization of the same order.

Money only moves on `resolve`:
  buyer_refunded            payment_status → refunded, hold released
  artisan_paid / no_action  hold released, Finalize from held_in_dispute
  partial_refund            resolved on paper, funds stay held for manual follow-up
`update_status` never touches funds.
"""

import logging
import math
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from src.st_admin.domain.audit import AdminAuditLogProtocol
from src.st_admin.infrastructure.audit_log import SqlAdminAuditLog
from src.st_common.datetime_utils import utc_now
from src.st_common.enums import (
    ConfirmationState,
    DisputeResolution,
    NotificationType,
    PaymentStatus,
)
from src.st_common.errors import (
    AlreadyResolvedError,
    DisputeNotFoundError,
    InternalError,
    InvalidDisputeTransitionError,
    InvalidResolutionError,
    OrderNotFoundError,
)
from src.st_confirmation.application.finalizer import OrderFinalizer
from src.st_confirmation.application.schemas import ConfirmationView
from src.st_confirmation.domain import state_machine
from src.st_confirmation.domain.repository import ConfirmationRepositoryProtocol
from src.st_confirmation.infrastructure.persistence import ConfirmationRepository
from src.st_dispute.application.schemas import (
    AuditItem,
    DisputeDetailResponse,
    DisputeItem,
    DisputeListQuery,
    DisputeListResponse,
    DisputeStatisticsResponse,
    OrderSummary,
    ResolveResponse,
    StatusChangeResponse,
)
from src.st_dispute.domain.models import (
    RELEASING_RESOLUTIONS,
    TERMINAL_STATUSES,
    Dispute,
    DisputeFilters,
)
from src.st_dispute.domain.repository import DisputeRepositoryProtocol
from src.st_dispute.infrastructure.persistence import DisputeRepository
from src.st_notification.application.outbox import NotificationOutbox
from src.st_order.domain.models import Order
from src.st_order.domain.repository import OrderRepositoryProtocol
from src.st_order.infrastructure.persistence import OrderRepository
from src.st_wallet.application.service import build_ledger

logger = logging.getLogger(__name__)

_HISTORY_LIMIT = 50


class DisputeService:
    def __init__(
        self,
        order_repo: OrderRepositoryProtocol | None = None,
        dispute_repo: DisputeRepositoryProtocol | None = None,
        confirmation_repo: ConfirmationRepositoryProtocol | None = None,
        audit_log: AdminAuditLogProtocol | None = None,
        finalizer: OrderFinalizer | None = None,
        outbox: NotificationOutbox | None = None,
    ) -> None:
        self._orders: OrderRepositoryProtocol = order_repo or OrderRepository()
        self._disputes: DisputeRepositoryProtocol = dispute_repo or DisputeRepository()
        self._confirmations: ConfirmationRepositoryProtocol = (
            confirmation_repo or ConfirmationRepository()
        )
        self._audit: AdminAuditLogProtocol = audit_log or SqlAdminAuditLog()
        self._outbox = outbox or NotificationOutbox()
        self._finalizer = finalizer or OrderFinalizer(self._orders, build_ledger(), self._outbox)

    async def _load_locked(self, db: AsyncSession, order_id: str) -> tuple[Order, Dispute]:
        order = await self._orders.get_by_id(db, order_id, for_update=True)
        if order is None:
            raise OrderNotFoundError(order_id)
        dispute = await self._disputes.get(db, order_id, for_update=True)
        if dispute is None:
            raise DisputeNotFoundError(order_id)
        return order, dispute

    async def _notify_parties(
        self,
        db: AsyncSession,
        notification_type: NotificationType,
        order: Order,
        payload: dict[str, object],
    ) -> None:
        for recipient in (order.seller_recipient, order.buyer_recipient):
            await self._outbox.notify(db, notification_type, recipient, payload)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def update_status(
        self,
        db: AsyncSession,
        order_id: str,
        admin_id: str,
        status: str,
        notes: str | None = None,
    ) -> StatusChangeResponse:
        status = str(getattr(status, "value", status))
        try:
            order, dispute = await self._load_locked(db, order_id)
            previous = dispute.status
            same_status_note = status == previous and not dispute.is_terminal
            if not same_status_note and not dispute.can_move_to(status):
                raise InvalidDisputeTransitionError(previous, status)

            updated = await self._disputes.update_status(
                db,
                order_id,
                expected_status=previous,
                status=status,
                admin_notes=notes,
                resolved_by=admin_id if status in TERMINAL_STATUSES else None,
            )
            if updated is None:
                raise InvalidDisputeTransitionError(previous, status)

            await self._audit.record(
                db,
                admin_id,
                "dispute.status_changed",
                "order",
                order_id,
                {"status": previous},
                {"status": status},
                notes,
            )
            await self._notify_parties(
                db,
                NotificationType.DISPUTE_STATUS_CHANGED,
                order,
                {"order_id": order_id, "previous_status": previous, "status": status},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Dispute %s: %s → %s by %s", order_id, previous, status, admin_id)
        return StatusChangeResponse(
            order_id=order_id,
            previous_status=previous,
            status=updated.status,
            resolved_at=updated.resolved_at.isoformat() if updated.resolved_at else None,
            resolved_by=updated.resolved_by,
        )

    async def resolve(
        self,
        db: AsyncSession,
        order_id: str,
        admin_id: str,
        resolution: str,
        notes: str | None = None,
    ) -> ResolveResponse:
        try:
            resolution = DisputeResolution(resolution).value
        except ValueError:
            raise InvalidResolutionError(resolution) from None

        credited = 0
        try:
            order, dispute = await self._load_locked(db, order_id)
            if dispute.resolution is not None:
                raise AlreadyResolvedError(order_id)

            release = resolution in RELEASING_RESOLUTIONS
            updated = await self._disputes.resolve(
                db, order_id, resolution, notes, admin_id, release_hold=release
            )
            if updated is None:
                raise AlreadyResolvedError(order_id)

            payment_status = order.payment_status
            if resolution == DisputeResolution.BUYER_REFUNDED:
                refunded = await self._orders.set_payment_status(
                    db,
                    order_id,
                    PaymentStatus.REFUNDED,
                    (PaymentStatus.HELD_IN_DISPUTE, PaymentStatus.PENDING),
                )
                if refunded is None:
                    raise InternalError(
                        f"Order {order_id} is {order.payment_status}, cannot record refund"
                    )
                payment_status = refunded.payment_status
            elif release:
                await self._release_confirmation(db, order_id)
                outcome = await self._finalizer.finalize(
                    db,
                    order_id,
                    (PaymentStatus.HELD_IN_DISPUTE, PaymentStatus.PENDING),
                )
                credited = outcome.credited_cents
                if outcome.order is not None:
                    payment_status = outcome.order.payment_status

            await self._audit.record(
                db,
                admin_id,
                "dispute.resolved",
                "order",
                order_id,
                {"status": dispute.status, "payment_status": order.payment_status},
                {
                    "status": updated.status,
                    "resolution": resolution,
                    "payment_status": payment_status,
                },
                notes,
            )
            await self._notify_parties(
                db,
                NotificationType.DISPUTE_RESOLVED,
                order,
                {"order_id": order_id, "resolution": resolution},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if resolution == DisputeResolution.PARTIAL_REFUND:
            logger.warning("Dispute %s resolved as partial_refund, funds remain held", order_id)
        else:
            logger.info("Dispute %s resolved as %s by %s", order_id, resolution, admin_id)
        return ResolveResponse(
            order_id=order_id,
            resolution=resolution,
            status=updated.status,
            payment_status=payment_status,
            funds_held=updated.is_disputed,
            credited_cents=credited,
        )

    async def _release_confirmation(self, db: AsyncSession, order_id: str) -> None:
        confirmation = await self._confirmations.get(db, order_id)
        if confirmation is not None and confirmation.state == ConfirmationState.DISPUTED:
            await self._confirmations.save(db, state_machine.release_dispute(confirmation))

    async def add_evidence(
        self,
        db: AsyncSession,
        order_id: str,
        uploaded_by: str,
        evidence_type: str,
        url: str,
        description: str | None = None,
    ) -> DisputeItem:
        try:
            _, dispute = await self._load_locked(db, order_id)
            entry = {
                "type": evidence_type,
                "url": url,
                "description": description,
                "uploaded_by": uploaded_by,
                "uploaded_at": utc_now().isoformat(),
            }
            updated = await self._disputes.add_evidence(db, order_id, entry)
            if updated is None:
                raise DisputeNotFoundError(order_id)
            await self._audit.record(
                db,
                uploaded_by,
                "dispute.evidence_added",
                "order",
                order_id,
                {"evidence_count": len(dispute.evidence)},
                {"evidence_count": len(updated.evidence)},
                description,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return DisputeItem.from_domain(updated)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_disputes(
        self, db: AsyncSession, query: DisputeListQuery
    ) -> DisputeListResponse:
        filters = DisputeFilters(
            status=query.status.value if query.status else None,
            dispute_type=query.dispute_type,
            reported_by=query.reported_by,
            date_from=query.date_from,
            date_to=query.date_to,
        )
        items, total = await self._disputes.list_disputes(
            db,
            filters,
            offset=(query.page - 1) * query.limit,
            limit=query.limit,
            sort_by=query.sort_by,
            descending=query.sort_order == "desc",
        )
        return DisputeListResponse(
            items=[DisputeItem.from_domain(d) for d in items],
            page=query.page,
            limit=query.limit,
            total=total,
            total_pages=math.ceil(total / query.limit) if total else 0,
        )

    async def get_dispute_details(self, db: AsyncSession, order_id: str) -> DisputeDetailResponse:
        order = await self._orders.get_by_id(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        dispute = await self._disputes.get(db, order_id)
        if dispute is None:
            raise DisputeNotFoundError(order_id)
        confirmation = await self._confirmations.get(db, order_id)
        history = await self._audit.list_for_target(db, "order", order_id, _HISTORY_LIMIT)
        return DisputeDetailResponse(
            dispute=DisputeItem.from_domain(dispute),
            order=OrderSummary.from_domain(order),
            confirmation=ConfirmationView.from_domain(confirmation) if confirmation else None,
            history=[
                AuditItem(
                    actor_id=h.actor_id,
                    action=h.action,
                    before_value=h.before_value,
                    after_value=h.after_value,
                    description=h.description,
                    created_at=h.created_at.isoformat() if h.created_at else None,
                )
                for h in history
            ],
        )

    async def get_dispute_statistics(
        self, db: AsyncSession, period_days: int = 30
    ) -> DisputeStatisticsResponse:
        since = utc_now() - timedelta(days=period_days)
        stats = await self._disputes.statistics(db, since, period_days)
        return DisputeStatisticsResponse.from_domain(stats)
