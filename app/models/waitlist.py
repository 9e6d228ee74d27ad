"""Waitlist entries for patients wanting a doctor or specialization."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    func,
)

from app.models.metadata import metadata

waitlist = Table(
    "waitlist",
    metadata,
    Column("waitlist_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "doctor_id",
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "patient_id",
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "specialization_id",
        Integer,
        ForeignKey("specializations.specialization_id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("requested_time", DateTime, nullable=False),
    Column("status", String(10), nullable=False, server_default="waiting"),
    Column("priority", String(10), nullable=False, server_default="medium"),
    Column("notes", Text),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "status IN ('waiting', 'notified', 'booked', 'cancelled')",
        name="waitlist_status_check",
    ),
    CheckConstraint(
        "priority IN ('high', 'medium', 'low')",
        name="waitlist_priority_check",
    ),
)
