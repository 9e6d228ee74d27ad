"""Feedback service."""

import structlog
from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import AppointmentNotFoundError, DuplicateEntityError, EntityNotFoundError
from app.core.validators import require_range
from app.database import transaction
from app.models.appointments import appointments
from app.models.feedback import feedback
from app.schemas.feedback import MAX_RATING, MIN_RATING, FeedbackResponse

logger = structlog.get_logger(__name__)


class FeedbackService:
    """Service for patient ratings of appointments."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        """Initialize service with an optional session factory."""
        self.session_factory = session_factory

    async def submit_feedback(
        self,
        appointment_id: int,
        rating: int,
        comments: str | None = None,
    ) -> FeedbackResponse:
        """
        Rate an appointment.

        Raises:
            ValidationError: If the rating is outside 1-5
            AppointmentNotFoundError: If the appointment does not exist
            DuplicateEntityError: If the appointment already has feedback
        """
        require_range(rating, MIN_RATING, MAX_RATING, "rating")

        async with transaction(self.session_factory) as session:
            found = await session.execute(
                select(appointments.c.appointment_id).where(
                    appointments.c.appointment_id == appointment_id
                )
            )
            if found.first() is None:
                raise AppointmentNotFoundError(appointment_id)

            existing = await session.execute(
                select(feedback.c.feedback_id).where(feedback.c.appointment_id == appointment_id)
            )
            if existing.first():
                raise DuplicateEntityError("Feedback", appointment_id=appointment_id)

            try:
                result = await session.execute(
                    insert(feedback)
                    .values(appointment_id=appointment_id, rating=rating, comments=comments)
                    .returning(feedback)
                )
            except IntegrityError:
                raise DuplicateEntityError("Feedback", appointment_id=appointment_id) from None
            entry = FeedbackResponse.model_validate(dict(result.mappings().one()))

        logger.info("feedback_submitted", appointment_id=appointment_id, rating=rating)
        return entry

    async def get_feedback(self, appointment_id: int) -> FeedbackResponse:
        """Get the feedback left for an appointment."""
        async with transaction(self.session_factory) as session:
            result = await session.execute(
                select(feedback).where(feedback.c.appointment_id == appointment_id)
            )
            row = result.mappings().first()
            if not row:
                raise EntityNotFoundError("Feedback", appointment_id)
            return FeedbackResponse.model_validate(dict(row))
