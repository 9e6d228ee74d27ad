"""Notification service.

The booking core only writes notification rows. Delivery (email, SMS,
push) belongs to an external dispatcher, which polls pending rows with
:meth:`NotificationService.fetch_pending` and reports the outcome with
:meth:`NotificationService.mark_delivery`.
"""

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import (
    AppointmentNotFoundError,
    EntityNotFoundError,
    InvalidStateTransitionError,
    ValidationError,
)
from app.core.validators import parse_enum
from app.database import transaction
from app.models.appointments import appointments
from app.models.notifications import notifications
from app.schemas.notifications import (
    NotificationResponse,
    NotificationStatus,
    NotificationType,
)
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)


class NotificationService:
    """Service for creating notification records and tracking their delivery."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        """Initialize service with an optional session factory."""
        self.session_factory = session_factory

    @staticmethod
    async def enqueue(
        session: AsyncSession,
        user_id: int,
        appointment_id: int | None,
        notification_type: NotificationType,
    ) -> int:
        """
        Queue a pending notification inside the caller's transaction.

        Returns:
            ID of the new notification
        """
        result = await session.execute(
            insert(notifications)
            .values(
                user_id=user_id,
                appointment_id=appointment_id,
                type=notification_type.value,
                status=NotificationStatus.PENDING.value,
            )
            .returning(notifications.c.notification_id)
        )
        notification_id = result.scalar_one()

        logger.info(
            "notification_enqueued",
            notification_id=notification_id,
            user_id=user_id,
            appointment_id=appointment_id,
            type=notification_type.value,
        )
        return notification_id

    async def send_notification(
        self,
        user_id: int,
        appointment_id: int | None,
        notification_type: NotificationType | str,
        status: NotificationStatus | str = NotificationStatus.PENDING,
    ) -> NotificationResponse:
        """
        Record a notification for a user.

        Args:
            user_id: Recipient
            appointment_id: Related appointment, if any
            notification_type: One of the notification types
            status: Initial delivery status

        Returns:
            Created notification

        Raises:
            ValidationError: If type or status is not a known value
            UserNotFoundError: If the user does not exist
            AppointmentNotFoundError: If the appointment does not exist
        """
        kind = parse_enum(NotificationType, notification_type, "type")
        state = parse_enum(NotificationStatus, status, "status")

        async with transaction(self.session_factory) as session:
            await UserService.fetch_user(session, user_id)
            if appointment_id is not None:
                found = await session.execute(
                    select(appointments.c.appointment_id).where(
                        appointments.c.appointment_id == appointment_id
                    )
                )
                if found.first() is None:
                    raise AppointmentNotFoundError(appointment_id)

            result = await session.execute(
                insert(notifications)
                .values(
                    user_id=user_id,
                    appointment_id=appointment_id,
                    type=kind.value,
                    status=state.value,
                    sent_at=func.now() if state == NotificationStatus.SENT else None,
                )
                .returning(notifications)
            )
            notification = NotificationResponse.model_validate(dict(result.mappings().one()))

        logger.info(
            "notification_logged",
            notification_id=notification.notification_id,
            user_id=user_id,
            type=kind.value,
            status=state.value,
        )
        return notification

    async def fetch_pending(self, limit: int = 100) -> list[NotificationResponse]:
        """List pending notifications, oldest first, for the dispatcher."""
        stmt = (
            select(notifications)
            .where(notifications.c.status == NotificationStatus.PENDING.value)
            .order_by(notifications.c.notification_id)
            .limit(limit)
        )
        async with transaction(self.session_factory) as session:
            result = await session.execute(stmt)
            return [NotificationResponse.model_validate(dict(row)) for row in result.mappings()]

    async def mark_delivery(
        self,
        notification_id: int,
        status: NotificationStatus | str,
    ) -> NotificationResponse:
        """
        Record the dispatcher's delivery outcome.

        Raises:
            ValidationError: If status is not ``sent`` or ``failed``
            EntityNotFoundError: If the notification does not exist
            InvalidStateTransitionError: If the notification is no longer pending
        """
        outcome = parse_enum(NotificationStatus, status, "status")
        if outcome == NotificationStatus.PENDING:
            raise ValidationError(
                "Delivery outcome must be 'sent' or 'failed'",
                field="status",
                value=outcome.value,
            )

        async with transaction(self.session_factory) as session:
            result = await session.execute(
                select(notifications.c.status)
                .where(notifications.c.notification_id == notification_id)
                .with_for_update()
            )
            current = result.scalar_one_or_none()
            if current is None:
                raise EntityNotFoundError("Notification", notification_id)
            if current != NotificationStatus.PENDING.value:
                raise InvalidStateTransitionError(
                    notification_id,
                    current,
                    f"mark as {outcome.value}",
                    entity="notification",
                )

            result = await session.execute(
                update(notifications)
                .where(notifications.c.notification_id == notification_id)
                .values(
                    status=outcome.value,
                    sent_at=func.now() if outcome == NotificationStatus.SENT else None,
                )
                .returning(notifications)
            )
            notification = NotificationResponse.model_validate(dict(result.mappings().one()))

        logger.info(
            "notification_delivery_recorded",
            notification_id=notification_id,
            status=outcome.value,
        )
        return notification

    async def list_for_user(self, user_id: int) -> list[NotificationResponse]:
        """List a user's notifications, oldest first."""
        stmt = (
            select(notifications)
            .where(notifications.c.user_id == user_id)
            .order_by(notifications.c.notification_id)
        )
        async with transaction(self.session_factory) as session:
            result = await session.execute(stmt)
            return [NotificationResponse.model_validate(dict(row)) for row in result.mappings()]
