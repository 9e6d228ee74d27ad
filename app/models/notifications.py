"""Notification records; delivery is owned by the external dispatcher."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    func,
)

from app.models.metadata import metadata

notifications = Table(
    "notifications",
    metadata,
    Column("notification_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    ),
    # NULL when the notification is not appointment-specific
    Column(
        "appointment_id",
        Integer,
        ForeignKey("appointments.appointment_id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("type", String(30), nullable=False),
    Column("status", String(10), nullable=False, server_default="pending"),
    Column("sent_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "type IN ('reminder', 'confirmation', 'cancellation', 'reschedule_confirm')",
        name="notifications_type_check",
    ),
    CheckConstraint(
        "status IN ('pending', 'sent', 'failed')",
        name="notifications_status_check",
    ),
    Index("idx_notifications_user", "user_id"),
    Index("idx_notifications_status", "status"),
)
