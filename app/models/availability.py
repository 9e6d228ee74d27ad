"""Doctor availability slots.

There is no booked flag: a slot is booked iff an appointment references it.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    UniqueConstraint,
)

from app.models.metadata import metadata

availability = Table(
    "availability",
    metadata,
    Column("availability_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "doctor_id",
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    ),
    # Wall-clock times in the slot's own timezone
    Column("start_time", DateTime, nullable=False),
    Column("end_time", DateTime, nullable=False),
    Column("timezone", String(50), nullable=False, server_default="Asia/Kolkata"),
    UniqueConstraint("doctor_id", "start_time", "end_time", name="unique_doctor_slot"),
    CheckConstraint("start_time < end_time", name="availability_interval_check"),
    Index("idx_availability_doctor_time", "doctor_id", "start_time", "end_time"),
)
