"""Appointment schemas and the appointment state machine."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    RESCHEDULED = "rescheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Completed and cancelled appointments accept no further transitions."""
        return self in TERMINAL_STATUSES

    def can_transition_to(self, target: "AppointmentStatus") -> bool:
        """Check whether ``target`` is an edge out of this status."""
        return target in ALLOWED_TRANSITIONS[self]


TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED})

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {
            AppointmentStatus.RESCHEDULED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.COMPLETED,
        }
    ),
    AppointmentStatus.RESCHEDULED: frozenset(
        {
            AppointmentStatus.RESCHEDULED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.COMPLETED,
        }
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}


class AppointmentResponse(BaseModel):
    """Appointment response schema."""

    appointment_id: int
    patient_id: int
    doctor_id: int
    availability_id: int
    status: AppointmentStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PatientAppointmentView(BaseModel):
    """An appointment joined with its doctor, slot times and meeting link."""

    appointment_id: int
    patient_id: int
    doctor_id: int
    status: AppointmentStatus
    created_at: datetime
    updated_at: datetime
    doctor_first_name: str
    doctor_last_name: str
    appointment_start_time: datetime
    appointment_end_time: datetime
    timezone: str
    meeting_url: str | None = None

    model_config = {"from_attributes": True}


class VirtualLinkResponse(BaseModel):
    """Virtual meeting link response schema."""

    appointment_id: int
    meeting_url: str
    expires_at: datetime | None = None

    model_config = {"from_attributes": True}


class ConsultationResponse(BaseModel):
    """Consultation record response schema."""

    consultation_id: int
    appointment_id: int
    notes: str | None = None
    prescription: str | None = None
    outcome: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class OperationResult(BaseModel):
    """Success payload of a booking operation."""

    message: str
    appointment_id: int
    consultation_id: int | None = None
