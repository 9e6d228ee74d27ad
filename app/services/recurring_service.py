"""Recurring appointment patterns.

A pattern describes when a patient wants to see a doctor again; it does not
claim slots. Each concrete occurrence is booked through the booking service.
"""

from datetime import date

import structlog
from dateutil.relativedelta import relativedelta
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import EntityNotFoundError
from app.database import transaction
from app.models.recurring_appointments import recurring_appointments
from app.models.users import specializations
from app.schemas.recurring import (
    RecurrencePattern,
    RecurringAppointmentCreate,
    RecurringAppointmentResponse,
)
from app.schemas.users import UserType
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)

_STEPS = {
    RecurrencePattern.DAILY: relativedelta(days=1),
    RecurrencePattern.WEEKLY: relativedelta(weeks=1),
    RecurrencePattern.MONTHLY: relativedelta(months=1),
}


def occurrence_dates(
    pattern: RecurringAppointmentResponse,
    limit: int = 52,
) -> list[date]:
    """
    Expand a pattern into concrete dates.

    The series stops at whichever comes first: ``end_date``, ``occurrences``
    or ``limit``. Monthly steps are taken from the start date, so a series
    starting on the 31st lands on the last day of shorter months.

    Args:
        pattern: Pattern to expand
        limit: Upper bound for open-ended series

    Returns:
        Dates in ascending order
    """
    count = limit if pattern.occurrences is None else min(pattern.occurrences, limit)
    step = _STEPS[pattern.recurrence_pattern]

    dates: list[date] = []
    for index in range(count):
        current = pattern.start_date + step * index
        if pattern.end_date is not None and current > pattern.end_date:
            break
        dates.append(current)
    return dates


class RecurringAppointmentService:
    """Service for recurring appointment patterns."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        """Initialize service with an optional session factory."""
        self.session_factory = session_factory

    async def create_pattern(
        self,
        data: RecurringAppointmentCreate,
    ) -> RecurringAppointmentResponse:
        """
        Store a recurring appointment pattern.

        Raises:
            UserNotFoundError: If the patient or doctor does not exist
            ValidationError: If either user has the wrong role
            EntityNotFoundError: If the specialization does not exist
        """
        async with transaction(self.session_factory) as session:
            patient = await UserService.fetch_user(session, data.patient_id)
            UserService.require_type(patient, UserType.PATIENT)
            doctor = await UserService.fetch_user(session, data.doctor_id)
            UserService.require_type(doctor, UserType.DOCTOR)

            if data.specialization_id is not None:
                found = await session.execute(
                    select(specializations.c.specialization_id).where(
                        specializations.c.specialization_id == data.specialization_id
                    )
                )
                if found.first() is None:
                    raise EntityNotFoundError("Specialization", data.specialization_id)

            result = await session.execute(
                insert(recurring_appointments)
                .values(
                    patient_id=data.patient_id,
                    doctor_id=data.doctor_id,
                    specialization_id=data.specialization_id,
                    start_date=data.start_date,
                    end_date=data.end_date,
                    recurrence_pattern=data.recurrence_pattern.value,
                    occurrences=data.occurrences,
                )
                .returning(recurring_appointments)
            )
            pattern = RecurringAppointmentResponse.model_validate(dict(result.mappings().one()))

        logger.info(
            "recurring_pattern_created",
            recurring_id=pattern.recurring_id,
            recurrence_pattern=pattern.recurrence_pattern.value,
        )
        return pattern

    async def get_pattern(self, recurring_id: int) -> RecurringAppointmentResponse:
        """Get a pattern by ID."""
        async with transaction(self.session_factory) as session:
            result = await session.execute(
                select(recurring_appointments).where(
                    recurring_appointments.c.recurring_id == recurring_id
                )
            )
            row = result.mappings().first()
            if not row:
                raise EntityNotFoundError("RecurringAppointment", recurring_id)
            return RecurringAppointmentResponse.model_validate(dict(row))
