"""Availability slot schemas."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class AvailabilityCreate(BaseModel):
    """Schema for publishing a doctor's availability slot."""

    doctor_id: int
    start_time: datetime
    end_time: datetime
    timezone: str | None = Field(None, max_length=50)

    @field_validator("end_time")
    @classmethod
    def validate_end_time(cls, v: datetime, info: any) -> datetime:
        """Validate end time is after start time."""
        if "start_time" not in info.data:
            return v
        start = info.data["start_time"]
        if (start.tzinfo is None) != (v.tzinfo is None):
            raise ValueError("Start and end time must both carry a UTC offset or both omit it")
        if v <= start:
            raise ValueError("End time must be after start time")
        return v


class AvailabilityResponse(BaseModel):
    """Availability slot response schema."""

    availability_id: int
    doctor_id: int
    start_time: datetime
    end_time: datetime
    timezone: str

    model_config = {"from_attributes": True}
