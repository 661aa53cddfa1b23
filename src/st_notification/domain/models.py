"""Domain models for st_notification — outbox rows and the intents that create them."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class NotificationIntent:
    notification_type: str   # NotificationType value
    recipient: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class OutboxMessage:
    id: int
    notification_type: str
    recipient: str
    payload: dict[str, Any]
    status: str              # NotificationStatus value
    attempts: int = 0
    last_error: str | None = None
    created_at: datetime | None = None
    sent_at: datetime | None = None
