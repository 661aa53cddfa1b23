"""Domain models for st_dispute — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.st_common.enums import DisputeResolution, DisputeStatus

TERMINAL_STATUSES = frozenset({DisputeStatus.RESOLVED.value, DisputeStatus.CLOSED.value})

# UpdateStatus transitions. Terminal statuses have no outgoing edges.
STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    DisputeStatus.OPEN.value: frozenset(
        {
            DisputeStatus.INVESTIGATING.value,
            DisputeStatus.RESOLVED.value,
            DisputeStatus.CLOSED.value,
        }
    ),
    DisputeStatus.INVESTIGATING.value: frozenset(
        {DisputeStatus.OPEN.value, DisputeStatus.RESOLVED.value, DisputeStatus.CLOSED.value}
    ),
    DisputeStatus.RESOLVED.value: frozenset(),
    DisputeStatus.CLOSED.value: frozenset(),
}

# Resolutions after which the order's funds leave the dispute hold.
RELEASING_RESOLUTIONS = frozenset(
    {
        DisputeResolution.BUYER_REFUNDED.value,
        DisputeResolution.ARTISAN_PAID.value,
        DisputeResolution.NO_ACTION_NEEDED.value,
    }
)


@dataclass
class Dispute:
    order_id: str
    is_disputed: bool
    dispute_type: str
    reason: str
    reported_by: str           # DisputeParty value
    reporter_id: str
    status: str = DisputeStatus.OPEN.value
    details: str | None = None
    reported_at: datetime | None = None
    resolution: str | None = None
    admin_notes: str | None = None
    resolution_notes: str | None = None
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    evidence: list[dict[str, Any]] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_move_to(self, status: str) -> bool:
        return status in STATUS_TRANSITIONS.get(self.status, frozenset())


@dataclass
class NewDispute:
    order_id: str
    dispute_type: str
    reason: str
    reported_by: str
    reporter_id: str
    details: str | None = None
    evidence: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class DisputeFilters:
    status: str | None = None
    dispute_type: str | None = None
    reported_by: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


@dataclass
class DisputeStatistics:
    period_days: int
    total: int
    active: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    by_reporter: dict[str, int]
    by_resolution: dict[str, int]
    average_resolution_days: float | None
