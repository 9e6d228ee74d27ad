"""Notification schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class NotificationType(str, Enum):
    """Notification type enumeration."""

    REMINDER = "reminder"
    CONFIRMATION = "confirmation"
    CANCELLATION = "cancellation"
    RESCHEDULE_CONFIRM = "reschedule_confirm"


class NotificationStatus(str, Enum):
    """Notification delivery status enumeration."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationResponse(BaseModel):
    """Notification response schema."""

    notification_id: int
    user_id: int
    appointment_id: int | None = None
    type: NotificationType
    status: NotificationStatus
    sent_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
