"""Audit logger: append-only record of state-changing actions."""

import structlog
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import transaction
from app.models.audit_logs import audit_logs
from app.schemas.audit import AuditAction, AuditLogResponse

logger = structlog.get_logger(__name__)


class AuditLogger:
    """Writes and reads the audit trail.

    Entries are only ever inserted; there is no update or delete entry point.
    Rows outlive the users and appointments they mention.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        """Initialize with the session factory used for reads."""
        self.session_factory = session_factory

    @staticmethod
    async def record(
        session: AsyncSession,
        user_id: int | None,
        action: AuditAction | str,
        target_table: str,
        target_id: int | None,
        details: str | None = None,
    ) -> int:
        """
        Append an entry inside the caller's transaction.

        Args:
            session: Session of the enclosing transaction
            user_id: Acting user, or None for system actions
            action: Action verb
            target_table: Table of the affected row
            target_id: Primary key of the affected row
            details: Free-text detail

        Returns:
            ID of the new log entry
        """
        action_value = action.value if isinstance(action, AuditAction) else action
        result = await session.execute(
            insert(audit_logs)
            .values(
                user_id=user_id,
                action=action_value,
                target_table=target_table,
                target_id=target_id,
                details=details,
            )
            .returning(audit_logs.c.log_id)
        )
        log_id = result.scalar_one()

        logger.info(
            "audit_entry_recorded",
            log_id=log_id,
            user_id=user_id,
            action=action_value,
            target_table=target_table,
            target_id=target_id,
        )
        return log_id

    async def list_entries(
        self,
        user_id: int | None = None,
        target_table: str | None = None,
        target_id: int | None = None,
    ) -> list[AuditLogResponse]:
        """List entries matching the filters, oldest first."""
        stmt = select(audit_logs)
        if user_id is not None:
            stmt = stmt.where(audit_logs.c.user_id == user_id)
        if target_table is not None:
            stmt = stmt.where(audit_logs.c.target_table == target_table)
        if target_id is not None:
            stmt = stmt.where(audit_logs.c.target_id == target_id)

        async with transaction(self.session_factory) as session:
            result = await session.execute(stmt.order_by(audit_logs.c.log_id))
            return [AuditLogResponse.model_validate(dict(row)) for row in result.mappings()]
