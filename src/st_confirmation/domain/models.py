"""Domain models for st_confirmation — one FulfillmentConfirmation per order."""

from dataclasses import dataclass, field
from datetime import datetime

from src.st_common.enums import ConfirmationState


@dataclass(frozen=True)
class PartyConfirmation:
    confirmed: bool = False
    confirmed_at: datetime | None = None
    notes: str | None = None


@dataclass(frozen=True)
class FulfillmentConfirmation:
    order_id: str
    leg: str                                 # ConfirmationLeg value
    state: ConfirmationState = ConfirmationState.AWAITING_SELLER
    artisan_confirmed: PartyConfirmation = field(default_factory=PartyConfirmation)
    buyer_confirmed: PartyConfirmation = field(default_factory=PartyConfirmation)
    delivery_proof: tuple[str, ...] = ()
    completion_deadline: datetime | None = None
    auto_completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (ConfirmationState.COMPLETED, ConfirmationState.AUTO_COMPLETED)
