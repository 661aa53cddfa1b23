"""Domain models for st_payout — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime

from src.st_common.enums import PayoutAttemptStatus
from src.st_common.identity import WalletOwnerId

IN_FLIGHT_STATUSES = frozenset(
    {PayoutAttemptStatus.REQUESTED.value, PayoutAttemptStatus.SUBMITTED.value}
)


@dataclass
class PayoutAttempt:
    id: str                   # UUID, also the idempotency key sent to the processor
    owner_id: WalletOwnerId
    amount: int               # cents
    currency: str
    mode: str                 # PayoutMode value
    status: str = PayoutAttemptStatus.REQUESTED.value
    processor_payout_id: str | None = None
    transaction_id: int | None = None
    error: str | None = None
    reconcile_attempts: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def in_flight(self) -> bool:
        return self.status in IN_FLIGHT_STATUSES


@dataclass
class ProcessorAccountStatus:
    account_id: str
    ready: bool
    requirements: list[str] = field(default_factory=list)


@dataclass
class ProcessorPayout:
    id: str
    status: str
