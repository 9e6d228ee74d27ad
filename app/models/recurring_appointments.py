"""Recurring appointment patterns."""

from sqlalchemy import CheckConstraint, Column, Date, ForeignKey, Integer, String, Table

from app.models.metadata import metadata

recurring_appointments = Table(
    "recurring_appointments",
    metadata,
    Column("recurring_id", Integer, primary_key=True, autoincrement=True),
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
    Column(
        "specialization_id",
        Integer,
        ForeignKey("specializations.specialization_id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date),
    Column("recurrence_pattern", String(10), nullable=False),
    Column("occurrences", Integer),
    CheckConstraint(
        "recurrence_pattern IN ('daily', 'weekly', 'monthly')",
        name="recurring_appointments_pattern_check",
    ),
    CheckConstraint(
        "occurrences IS NULL OR occurrences > 0",
        name="recurring_appointments_occurrences_check",
    ),
)
