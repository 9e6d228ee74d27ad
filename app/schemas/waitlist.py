"""Waitlist schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class WaitlistStatus(str, Enum):
    """Waitlist entry status enumeration."""

    WAITING = "waiting"
    NOTIFIED = "notified"
    BOOKED = "booked"
    CANCELLED = "cancelled"


class WaitlistPriority(str, Enum):
    """Waitlist priority enumeration."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class WaitlistCreate(BaseModel):
    """Schema for adding a patient to a doctor's waitlist."""

    doctor_id: int
    patient_id: int
    requested_time: datetime
    specialization_id: int | None = None
    priority: WaitlistPriority = WaitlistPriority.MEDIUM
    notes: str | None = Field(None, max_length=1000)


class WaitlistResponse(BaseModel):
    """Waitlist entry response schema."""

    waitlist_id: int
    doctor_id: int
    patient_id: int
    specialization_id: int | None = None
    requested_time: datetime
    status: WaitlistStatus
    priority: WaitlistPriority
    notes: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
