"""Database models."""

from app.models.appointments import appointments, consultations, virtual_links
from app.models.audit_logs import audit_logs
from app.models.availability import availability
from app.models.feedback import feedback
from app.models.metadata import metadata
from app.models.notifications import notifications
from app.models.recurring_appointments import recurring_appointments
from app.models.users import doctor_specializations, specializations, users
from app.models.waitlist import waitlist

__all__ = [
    "appointments",
    "audit_logs",
    "availability",
    "consultations",
    "doctor_specializations",
    "feedback",
    "metadata",
    "notifications",
    "recurring_appointments",
    "specializations",
    "users",
    "virtual_links",
    "waitlist",
]
