"""Domain models for st_wallet — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.st_common.identity import WalletOwnerId


@dataclass
class PayoutSettings:
    enabled: bool = False
    schedule: str = "weekly"          # PayoutSchedule value
    minimum_payout: int = 5000        # cents
    last_payout_at: datetime | None = None
    next_payout_at: datetime | None = None


@dataclass
class WalletCounters:
    total_earnings: int = 0   # cents, net revenue credited
    total_spent: int = 0      # cents, purchases
    total_payouts: int = 0    # cents, paid out to the processor
    platform_fees: int = 0    # cents, withheld from revenue


@dataclass
class Wallet:
    id: str
    owner_id: WalletOwnerId
    balance: int              # cents, cached projection of Σ transactions.amount
    currency: str
    is_active: bool = True
    processor_account_id: str | None = None
    payout_settings: PayoutSettings = field(default_factory=PayoutSettings)
    counters: WalletCounters = field(default_factory=WalletCounters)
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class WalletTransaction:
    id: int                   # BIGSERIAL, creation order within a wallet
    wallet_id: str
    owner_id: WalletOwnerId
    type: str                 # WalletTransactionType value
    amount: int               # cents, positive=credit negative=debit
    currency: str
    balance_before: int
    balance_after: int
    description: str | None = None
    reference_type: str | None = None
    reference_id: str | None = None
    status: str = "completed"
    metadata: dict[str, Any] = field(default_factory=dict)
    idempotency_key: str | None = None
    created_at: datetime | None = None


@dataclass
class NewTransaction:
    """A transaction about to be appended; balances are fixed by the ledger."""

    wallet_id: str
    owner_id: WalletOwnerId
    type: str
    amount: int
    currency: str
    balance_before: int
    balance_after: int
    description: str | None = None
    reference_type: str | None = None
    reference_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    idempotency_key: str | None = None


@dataclass
class LedgerPosting:
    """Result of one atomic append + balance update."""

    wallet: Wallet
    transaction: WalletTransaction
    replayed: bool = False    # True when the idempotency key already existed


@dataclass
class RevenueSplit:
    product_amount: int
    delivery_fee: int
    platform_fee: int
    seller_delivery_fee: int

    @property
    def net_amount(self) -> int:
        return self.product_amount - self.platform_fee + self.seller_delivery_fee
