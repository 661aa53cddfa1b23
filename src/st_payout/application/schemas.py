"""Pydantic schemas for st_payout API."""

from pydantic import BaseModel, Field

from src.st_common.cents import cents_to_display
from src.st_common.enums import PayoutSchedule
from src.st_payout.domain.models import PayoutAttempt

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PayoutRequest(BaseModel):
    # None = automatic payout of the full balance
    amount_cents: int | None = Field(None, gt=0)


class SetupAccountRequest(BaseModel):
    email: str | None = Field(None, max_length=320)
    country: str = Field("CA", min_length=2, max_length=2)
    business_type: str = Field("individual", max_length=50)


class PayoutSettingsRequest(BaseModel):
    enabled: bool | None = None
    schedule: PayoutSchedule | None = None
    minimum_payout_cents: int | None = Field(None, ge=0)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PayoutStatusResponse(BaseModel):
    owner_id: str
    has_processor_account: bool
    is_ready_for_payouts: bool
    balance_cents: int
    balance_display: str
    minimum_payout_cents: int
    can_payout: bool
    requirements: list[str]


class PayoutAttemptItem(BaseModel):
    attempt_id: str
    amount_cents: int
    amount_display: str
    currency: str
    mode: str
    status: str
    processor_payout_id: str | None
    transaction_id: int | None
    error: str | None
    created_at: str | None
    updated_at: str | None

    @classmethod
    def from_domain(cls, a: PayoutAttempt) -> "PayoutAttemptItem":
        return cls(
            attempt_id=a.id,
            amount_cents=a.amount,
            amount_display=cents_to_display(a.amount),
            currency=a.currency,
            mode=a.mode,
            status=a.status,
            processor_payout_id=a.processor_payout_id,
            transaction_id=a.transaction_id,
            error=a.error,
            created_at=a.created_at.isoformat() if a.created_at else None,
            updated_at=a.updated_at.isoformat() if a.updated_at else None,
        )


class PayoutResponse(BaseModel):
    attempt: PayoutAttemptItem
    balance_cents: int | None
    pending_reconciliation: bool


class SetupAccountResponse(BaseModel):
    owner_id: str
    processor_account_id: str
    created: bool


class PayoutSettingsResponse(BaseModel):
    owner_id: str
    enabled: bool
    schedule: str
    minimum_payout_cents: int
    last_payout_at: str | None
    next_payout_at: str | None


class PayoutHistoryResponse(BaseModel):
    items: list[PayoutAttemptItem]
    total: int
    limit: int
    offset: int


class BatchResult(BaseModel):
    candidates: int = 0
    completed: int = 0
    skipped: int = 0
    failed: int = 0
    needs_review: int = 0
