"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class DeliveryMethod(str, Enum):
    PICKUP = "pickup"
    PERSONAL_DELIVERY = "personalDelivery"
    PROFESSIONAL_DELIVERY = "professionalDelivery"


class ConfirmationLeg(str, Enum):
    """Which handoff a confirmation acknowledges."""
    PICKUP = "pickup"
    DELIVERY = "delivery"


class ConfirmationState(str, Enum):
    AWAITING_SELLER = "AWAITING_SELLER"
    AWAITING_BUYER = "AWAITING_BUYER"
    COMPLETED = "COMPLETED"
    AUTO_COMPLETED = "AUTO_COMPLETED"
    DISPUTED = "DISPUTED"


class OrderStatus(str, Enum):
    # Only the terminal fulfillment states are written by this service;
    # earlier states belong to order management.
    PICKED_UP = "picked_up"
    DELIVERED = "delivered"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    HELD_IN_DISPUTE = "held_in_dispute"


class DisputeParty(str, Enum):
    ARTISAN = "artisan"
    BUYER = "buyer"


class DisputeStatus(str, Enum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    CLOSED = "closed"


class DisputeResolution(str, Enum):
    BUYER_REFUNDED = "buyer_refunded"
    ARTISAN_PAID = "artisan_paid"
    PARTIAL_REFUND = "partial_refund"
    NO_ACTION_NEEDED = "no_action_needed"


class WalletTransactionType(str, Enum):
    REVENUE = "revenue"
    TOP_UP = "top_up"
    PURCHASE = "purchase"
    PAYOUT = "payout"
    REFUND = "refund"
    FEE = "fee"
    ADJUSTMENT = "adjustment"


class WalletTransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PayoutSchedule(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class PayoutMode(str, Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class PayoutAttemptStatus(str, Enum):
    REQUESTED = "requested"
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    FAILED = "failed"
    NEEDS_REVIEW = "needs_review"


class NotificationType(str, Enum):
    CONFIRMATION_PENDING = "confirmation_pending"
    ORDER_COMPLETED = "order_completed"
    DISPUTE_REPORTED = "dispute_reported"
    DISPUTE_STATUS_CHANGED = "dispute_status_changed"
    DISPUTE_RESOLVED = "dispute_resolved"
    PAYOUT_PROCESSED = "payout_processed"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class UserRole(str, Enum):
    PATRON = "patron"
    ARTISAN = "artisan"
    ADMIN = "admin"
