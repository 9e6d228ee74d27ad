"""Append-only audit trail."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Table, Text, func

from app.models.metadata import metadata

audit_logs = Table(
    "audit_logs",
    metadata,
    Column("log_id", Integer, primary_key=True, autoincrement=True),
    # NULL for system actions; also nulled when the user is deleted
    Column(
        "user_id",
        Integer,
        ForeignKey("users.user_id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("action", String(100), nullable=False),
    Column("target_table", String(50)),
    Column("target_id", Integer),
    Column("timestamp", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("details", Text),
    Index("idx_audit_logs_user_action", "user_id", "action"),
)
