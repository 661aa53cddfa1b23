"""Pydantic schemas for st_dispute (admin) API."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from src.st_common.cents import cents_to_display
from src.st_common.enums import DisputeStatus
from src.st_confirmation.application.schemas import ConfirmationView
from src.st_dispute.domain.models import Dispute, DisputeStatistics
from src.st_order.domain.models import Order


def _iso(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment else None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class UpdateStatusRequest(BaseModel):
    status: DisputeStatus
    notes: str | None = Field(None, max_length=5000)


class ResolveRequest(BaseModel):
    # Validated in the service so unknown values surface as InvalidResolution
    resolution: str = Field(..., min_length=1, max_length=50)
    notes: str | None = Field(None, max_length=5000)


class AddEvidenceRequest(BaseModel):
    type: str = Field(..., min_length=1, max_length=50)
    url: str = Field(..., min_length=1, max_length=2000)
    description: str | None = Field(None, max_length=1000)


class DisputeListQuery(BaseModel):
    status: DisputeStatus | None = None
    dispute_type: str | None = None
    reported_by: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    sort_by: Literal["reported_at", "resolved_at", "status", "updated_at"] = "reported_at"
    sort_order: Literal["asc", "desc"] = "desc"


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class DisputeItem(BaseModel):
    order_id: str
    is_disputed: bool
    dispute_type: str
    reason: str
    details: str | None
    reported_by: str
    reporter_id: str
    reported_at: str | None
    status: str
    resolution: str | None
    admin_notes: str | None
    resolution_notes: str | None
    resolved_at: str | None
    resolved_by: str | None
    evidence: list[dict[str, Any]]

    @classmethod
    def from_domain(cls, d: Dispute) -> "DisputeItem":
        return cls(
            order_id=d.order_id,
            is_disputed=d.is_disputed,
            dispute_type=d.dispute_type,
            reason=d.reason,
            details=d.details,
            reported_by=d.reported_by,
            reporter_id=d.reporter_id,
            reported_at=_iso(d.reported_at),
            status=d.status,
            resolution=d.resolution,
            admin_notes=d.admin_notes,
            resolution_notes=d.resolution_notes,
            resolved_at=_iso(d.resolved_at),
            resolved_by=d.resolved_by,
            evidence=d.evidence,
        )


class DisputeListResponse(BaseModel):
    items: list[DisputeItem]
    page: int
    limit: int
    total: int
    total_pages: int


class OrderSummary(BaseModel):
    order_id: str
    delivery_method: str
    status: str
    payment_status: str
    total_amount_cents: int
    total_amount_display: str
    delivery_fee_cents: int
    currency: str
    artisan_user_id: str
    patron_user_id: str | None
    guest_email: str | None

    @classmethod
    def from_domain(cls, o: Order) -> "OrderSummary":
        return cls(
            order_id=o.id,
            delivery_method=o.delivery_method,
            status=o.status,
            payment_status=o.payment_status,
            total_amount_cents=o.total_amount,
            total_amount_display=cents_to_display(o.total_amount),
            delivery_fee_cents=o.delivery_fee,
            currency=o.currency,
            artisan_user_id=o.artisan_user_id,
            patron_user_id=o.patron_user_id,
            guest_email=o.guest_email,
        )


class AuditItem(BaseModel):
    actor_id: str
    action: str
    before_value: dict[str, Any]
    after_value: dict[str, Any]
    description: str | None
    created_at: str | None


class DisputeDetailResponse(BaseModel):
    dispute: DisputeItem
    order: OrderSummary
    confirmation: ConfirmationView | None
    history: list[AuditItem]


class StatusChangeResponse(BaseModel):
    order_id: str
    previous_status: str
    status: str
    resolved_at: str | None
    resolved_by: str | None


class ResolveResponse(BaseModel):
    order_id: str
    resolution: str
    status: str
    payment_status: str
    funds_held: bool
    credited_cents: int


class DisputeStatisticsResponse(BaseModel):
    period_days: int
    total: int
    active: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    by_reporter: dict[str, int]
    by_resolution: dict[str, int]
    average_resolution_days: float | None

    @classmethod
    def from_domain(cls, s: DisputeStatistics) -> "DisputeStatisticsResponse":
        return cls(
            period_days=s.period_days,
            total=s.total,
            active=s.active,
            by_status=s.by_status,
            by_type=s.by_type,
            by_reporter=s.by_reporter,
            by_resolution=s.by_resolution,
            average_resolution_days=s.average_resolution_days,
        )
