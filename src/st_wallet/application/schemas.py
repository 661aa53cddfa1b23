"""Pydantic schemas and cursor utilities for st_wallet API."""

import base64
import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from src.st_common.cents import cents_to_display
from src.st_common.enums import WalletTransactionType
from src.st_wallet.domain.models import LedgerPosting, Wallet, WalletTransaction

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


def _iso(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment else None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class DebitRequest(BaseModel):
    amount_cents: int = Field(..., gt=0, description="Amount to deduct in cents")
    # Payouts, revenue and refunds are posted only by their own workflows
    type: Literal["purchase", "fee"] = "purchase"
    description: str = Field(..., min_length=1, max_length=500)
    metadata: dict[str, Any] = Field(default_factory=dict)


class CreditRequest(BaseModel):
    owner_id: str = Field(..., min_length=1, max_length=64, description="Seller user id")
    amount_cents: int = Field(..., gt=0, description="Amount to add in cents")
    type: Literal["adjustment", "top_up", "refund"] = "adjustment"
    description: str = Field(..., min_length=1, max_length=500)
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class TransactionItem(BaseModel):
    id: int
    type: str
    amount_cents: int
    amount_display: str
    balance_before_cents: int
    balance_after_cents: int
    currency: str
    description: str | None
    reference_type: str | None
    reference_id: str | None
    status: str
    metadata: dict[str, Any]
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, tx: WalletTransaction) -> "TransactionItem":
        return cls(
            id=tx.id,
            type=tx.type,
            amount_cents=tx.amount,
            amount_display=cents_to_display(tx.amount),
            balance_before_cents=tx.balance_before,
            balance_after_cents=tx.balance_after,
            currency=tx.currency,
            description=tx.description,
            reference_type=tx.reference_type,
            reference_id=tx.reference_id,
            status=tx.status,
            metadata=tx.metadata,
            created_at=tx.created_at.isoformat() if tx.created_at else "",
        )


class TransactionListResponse(BaseModel):
    items: list[TransactionItem]
    next_cursor: str | None
    has_more: bool


class WalletTotals(BaseModel):
    earnings_cents: int
    payouts_cents: int
    spent_cents: int
    platform_fees_cents: int
    by_type: dict[str, int]


class WalletInfoResponse(BaseModel):
    owner_id: str
    balance_cents: int
    balance_display: str
    currency: str
    is_active: bool
    has_processor_account: bool
    payout_enabled: bool
    payout_schedule: str
    minimum_payout_cents: int
    last_payout_at: str | None
    next_payout_at: str | None
    totals: WalletTotals
    recent_transactions: list[TransactionItem]

    @classmethod
    def build(
        cls,
        wallet: Wallet,
        sums: dict[str, int],
        recent: list[WalletTransaction],
    ) -> "WalletInfoResponse":
        settings_ = wallet.payout_settings
        return cls(
            owner_id=wallet.owner_id,
            balance_cents=wallet.balance,
            balance_display=cents_to_display(wallet.balance),
            currency=wallet.currency,
            is_active=wallet.is_active,
            has_processor_account=wallet.processor_account_id is not None,
            payout_enabled=settings_.enabled,
            payout_schedule=settings_.schedule,
            minimum_payout_cents=settings_.minimum_payout,
            last_payout_at=_iso(settings_.last_payout_at),
            next_payout_at=_iso(settings_.next_payout_at),
            totals=WalletTotals(
                earnings_cents=sums.get(WalletTransactionType.REVENUE.value, 0),
                payouts_cents=-sums.get(WalletTransactionType.PAYOUT.value, 0),
                spent_cents=-sums.get(WalletTransactionType.PURCHASE.value, 0),
                platform_fees_cents=wallet.counters.platform_fees,
                by_type=sums,
            ),
            recent_transactions=[TransactionItem.from_domain(t) for t in recent],
        )


class CheckBalanceResponse(BaseModel):
    owner_id: str
    balance_cents: int
    required_cents: int
    has_sufficient_balance: bool
    shortfall_cents: int


class PostingResponse(BaseModel):
    owner_id: str
    balance_cents: int
    balance_display: str
    transaction: TransactionItem
    replayed: bool

    @classmethod
    def from_posting(cls, posting: LedgerPosting) -> "PostingResponse":
        return cls(
            owner_id=posting.wallet.owner_id,
            balance_cents=posting.wallet.balance,
            balance_display=cents_to_display(posting.wallet.balance),
            transaction=TransactionItem.from_domain(posting.transaction),
            replayed=posting.replayed,
        )
