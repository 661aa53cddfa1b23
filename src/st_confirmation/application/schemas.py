"""Pydantic schemas for st_confirmation API."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.st_common.enums import DisputeParty
from src.st_confirmation.domain.models import FulfillmentConfirmation
from src.st_dispute.domain.models import Dispute


def _iso(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment else None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class SellerConfirmRequest(BaseModel):
    notes: str | None = Field(None, max_length=1000)
    delivery_proof: list[str] = Field(default_factory=list, max_length=10)


class BuyerConfirmRequest(BaseModel):
    notes: str | None = Field(None, max_length=1000)
    guest_email: str | None = Field(None, max_length=254, description="Guest checkout e-mail")


class EvidenceItem(BaseModel):
    type: str = Field(..., min_length=1, max_length=50)
    url: str = Field(..., min_length=1, max_length=2000)
    description: str | None = Field(None, max_length=1000)


class DisputeReportRequest(BaseModel):
    reported_by: DisputeParty | None = None
    dispute_type: str = Field(..., min_length=1, max_length=50)
    reason: str = Field(..., min_length=1, max_length=500)
    details: str | None = Field(None, max_length=5000)
    evidence: list[EvidenceItem] = Field(default_factory=list, max_length=20)
    guest_email: str | None = Field(None, max_length=254)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PartyConfirmationView(BaseModel):
    confirmed: bool
    confirmed_at: str | None
    notes: str | None


class ConfirmationView(BaseModel):
    order_id: str
    leg: str
    state: str
    artisan_confirmed: PartyConfirmationView
    buyer_confirmed: PartyConfirmationView
    delivery_proof: list[str]
    completion_deadline: str | None
    auto_completed_at: str | None

    @classmethod
    def from_domain(cls, c: FulfillmentConfirmation) -> "ConfirmationView":
        return cls(
            order_id=c.order_id,
            leg=c.leg,
            state=str(getattr(c.state, "value", c.state)),
            artisan_confirmed=PartyConfirmationView(
                confirmed=c.artisan_confirmed.confirmed,
                confirmed_at=_iso(c.artisan_confirmed.confirmed_at),
                notes=c.artisan_confirmed.notes,
            ),
            buyer_confirmed=PartyConfirmationView(
                confirmed=c.buyer_confirmed.confirmed,
                confirmed_at=_iso(c.buyer_confirmed.confirmed_at),
                notes=c.buyer_confirmed.notes,
            ),
            delivery_proof=list(c.delivery_proof),
            completion_deadline=_iso(c.completion_deadline),
            auto_completed_at=_iso(c.auto_completed_at),
        )


class SellerConfirmResponse(BaseModel):
    confirmation: ConfirmationView
    already_confirmed: bool


class BuyerConfirmResponse(BaseModel):
    order_id: str
    payment_status: str
    already_finalized: bool
    credited_cents: int
    confirmation: ConfirmationView | None


class DisputeSummary(BaseModel):
    is_disputed: bool
    dispute_type: str
    reason: str
    reported_by: str
    reported_at: str | None
    status: str
    resolution: str | None
    evidence_count: int

    @classmethod
    def from_domain(cls, d: Dispute) -> "DisputeSummary":
        return cls(
            is_disputed=d.is_disputed,
            dispute_type=d.dispute_type,
            reason=d.reason,
            reported_by=d.reported_by,
            reported_at=_iso(d.reported_at),
            status=d.status,
            resolution=d.resolution,
            evidence_count=len(d.evidence),
        )


class DisputeReportResponse(BaseModel):
    order_id: str
    payment_status: str
    dispute: DisputeSummary


class ConfirmationStatusResponse(BaseModel):
    order_id: str
    delivery_method: str
    status: str
    payment_status: str
    completed_at: str | None
    confirmation: ConfirmationView | None
    dispute: DisputeSummary | None
