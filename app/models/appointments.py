"""Appointments and their one-to-one children (virtual links, consultations)."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    func,
)

from app.models.metadata import metadata

appointments = Table(
    "appointments",
    metadata,
    Column("appointment_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "patient_id",
        Integer,
        ForeignKey("users.user_id", ondelete="RESTRICT"),
        nullable=False,
    ),
    Column(
        "doctor_id",
        Integer,
        ForeignKey("users.user_id", ondelete="RESTRICT"),
        nullable=False,
    ),
    # One appointment per slot, permanently
    Column(
        "availability_id",
        Integer,
        ForeignKey("availability.availability_id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    ),
    Column("status", String(20), nullable=False, server_default="scheduled"),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "status IN ('scheduled', 'completed', 'cancelled', 'rescheduled')",
        name="appointments_status_check",
    ),
    Index("idx_appointments_patient_doctor", "patient_id", "doctor_id"),
    Index("idx_appointments_status", "status"),
)

virtual_links = Table(
    "virtual_links",
    metadata,
    Column(
        "appointment_id",
        Integer,
        ForeignKey("appointments.appointment_id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("meeting_url", String(255), nullable=False),
    Column("expires_at", DateTime),
)

consultations = Table(
    "consultations",
    metadata,
    Column("consultation_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "appointment_id",
        Integer,
        ForeignKey("appointments.appointment_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    Column("notes", Text),
    Column("prescription", Text),
    Column("outcome", Text),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
