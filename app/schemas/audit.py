"""Audit log schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class AuditAction(str, Enum):
    """Actions recorded by the booking core."""

    CREATE = "create"
    RESCHEDULE = "reschedule"
    CANCEL = "cancel"


class AuditLogResponse(BaseModel):
    """Audit log entry response schema."""

    log_id: int
    user_id: int | None = None
    action: str
    target_table: str | None = None
    target_id: int | None = None
    timestamp: datetime
    details: str | None = None

    model_config = {"from_attributes": True}
