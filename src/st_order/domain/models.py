"""Domain models for st_order — the slice of an order that settlement reads and writes.

Orders are owned by order management. Settlement only touches `status`,
`payment_status` and `completed_at`; everything else is read-only here.
"""

from dataclasses import dataclass
from datetime import datetime

from src.st_common.enums import ConfirmationLeg, DeliveryMethod, OrderStatus, PaymentStatus
from src.st_common.identity import SellerProfileId, WalletOwnerId


@dataclass
class Order:
    id: str
    status: str
    payment_status: str
    delivery_method: str
    total_amount: int       # cents, products only
    delivery_fee: int       # cents
    currency: str
    artisan_profile_id: SellerProfileId
    artisan_user_id: WalletOwnerId
    patron_user_id: str | None = None
    guest_email: str | None = None
    buyer_contact: str | None = None
    artisan_contact: str | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_finalized(self) -> bool:
        return self.payment_status in (PaymentStatus.PAID, PaymentStatus.REFUNDED)

    @property
    def leg(self) -> ConfirmationLeg:
        if self.delivery_method == DeliveryMethod.PICKUP:
            return ConfirmationLeg.PICKUP
        return ConfirmationLeg.DELIVERY

    @property
    def terminal_status(self) -> OrderStatus:
        if self.delivery_method == DeliveryMethod.PICKUP:
            return OrderStatus.PICKED_UP
        return OrderStatus.DELIVERED

    @property
    def buyer_recipient(self) -> str | None:
        return self.buyer_contact or self.guest_email or self.patron_user_id

    @property
    def seller_recipient(self) -> str:
        return self.artisan_contact or self.artisan_user_id

    def is_seller(self, user_id: str) -> bool:
        return self.artisan_user_id == user_id

    def is_buyer(self, buyer_id: str) -> bool:
        """Registered buyers match on user id, guests on e-mail (case-insensitive)."""
        if not buyer_id:
            return False
        if self.patron_user_id is not None and self.patron_user_id == buyer_id:
            return True
        if self.guest_email is not None:
            return self.guest_email.strip().lower() == buyer_id.strip().lower()
        return False
