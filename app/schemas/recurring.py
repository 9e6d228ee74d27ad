"""Recurring appointment pattern schemas."""

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class RecurrencePattern(str, Enum):
    """Recurrence pattern enumeration."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class RecurringAppointmentCreate(BaseModel):
    """Schema for defining a recurring appointment pattern."""

    patient_id: int
    doctor_id: int
    specialization_id: int | None = None
    start_date: date
    end_date: date | None = None
    recurrence_pattern: RecurrencePattern
    occurrences: int | None = Field(None, ge=1)

    @field_validator("end_date")
    @classmethod
    def validate_end_date(cls, v: date | None, info: any) -> date | None:
        """Validate the series does not end before it starts."""
        if v and "start_date" in info.data and v < info.data["start_date"]:
            raise ValueError("End date must not be before start date")
        return v


class RecurringAppointmentResponse(BaseModel):
    """Recurring appointment pattern response schema."""

    recurring_id: int
    patient_id: int
    doctor_id: int
    specialization_id: int | None = None
    start_date: date
    end_date: date | None = None
    recurrence_pattern: RecurrencePattern
    occurrences: int | None = None

    model_config = {"from_attributes": True}
