"""Waitlist service."""

import structlog
from sqlalchemy import case, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.core.exceptions import EntityNotFoundError, InvalidStateTransitionError
from app.core.validators import parse_enum, to_wall_clock
from app.database import transaction
from app.models.users import specializations
from app.models.waitlist import waitlist
from app.schemas.users import UserType
from app.schemas.waitlist import (
    WaitlistCreate,
    WaitlistPriority,
    WaitlistResponse,
    WaitlistStatus,
)
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)

# Entries in these states are closed
FINAL_WAITLIST_STATUSES = frozenset({WaitlistStatus.BOOKED, WaitlistStatus.CANCELLED})

_PRIORITY_ORDER = case(
    {
        WaitlistPriority.HIGH.value: 0,
        WaitlistPriority.MEDIUM.value: 1,
        WaitlistPriority.LOW.value: 2,
    },
    value=waitlist.c.priority,
)


class WaitlistService:
    """Service for patients waiting on a doctor or specialization."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        """Initialize service with an optional session factory."""
        self.session_factory = session_factory

    async def add_entry(self, data: WaitlistCreate) -> WaitlistResponse:
        """
        Put a patient on a doctor's waitlist.

        Raises:
            UserNotFoundError: If the doctor or patient does not exist
            ValidationError: If either user has the wrong role
            EntityNotFoundError: If the specialization does not exist
        """
        async with transaction(self.session_factory) as session:
            doctor = await UserService.fetch_user(session, data.doctor_id)
            UserService.require_type(doctor, UserType.DOCTOR)
            patient = await UserService.fetch_user(session, data.patient_id)
            UserService.require_type(patient, UserType.PATIENT)

            if data.specialization_id is not None:
                found = await session.execute(
                    select(specializations.c.specialization_id).where(
                        specializations.c.specialization_id == data.specialization_id
                    )
                )
                if found.first() is None:
                    raise EntityNotFoundError("Specialization", data.specialization_id)

            result = await session.execute(
                insert(waitlist)
                .values(
                    doctor_id=data.doctor_id,
                    patient_id=data.patient_id,
                    specialization_id=data.specialization_id,
                    requested_time=to_wall_clock(
                        data.requested_time, settings.default_timezone, "requested_time"
                    ),
                    priority=data.priority.value,
                    notes=data.notes,
                )
                .returning(waitlist)
            )
            entry = WaitlistResponse.model_validate(dict(result.mappings().one()))

        logger.info(
            "waitlist_entry_added",
            waitlist_id=entry.waitlist_id,
            doctor_id=entry.doctor_id,
            patient_id=entry.patient_id,
        )
        return entry

    async def update_status(
        self,
        waitlist_id: int,
        status: WaitlistStatus | str,
    ) -> WaitlistResponse:
        """
        Move a waitlist entry to a new status.

        Raises:
            ValidationError: If the status is unknown
            EntityNotFoundError: If the entry does not exist
            InvalidStateTransitionError: If the entry is already booked or cancelled
        """
        new_status = parse_enum(WaitlistStatus, status, "status")

        async with transaction(self.session_factory) as session:
            result = await session.execute(
                select(waitlist.c.status)
                .where(waitlist.c.waitlist_id == waitlist_id)
                .with_for_update()
            )
            current = result.scalar_one_or_none()
            if current is None:
                raise EntityNotFoundError("Waitlist", waitlist_id)
            if WaitlistStatus(current) in FINAL_WAITLIST_STATUSES:
                raise InvalidStateTransitionError(
                    waitlist_id,
                    current,
                    f"mark as {new_status.value}",
                    entity="waitlist entry",
                )

            result = await session.execute(
                update(waitlist)
                .where(waitlist.c.waitlist_id == waitlist_id)
                .values(status=new_status.value)
                .returning(waitlist)
            )
            entry = WaitlistResponse.model_validate(dict(result.mappings().one()))

        logger.info("waitlist_status_updated", waitlist_id=waitlist_id, status=new_status.value)
        return entry

    async def list_waiting(self, doctor_id: int) -> list[WaitlistResponse]:
        """List a doctor's waiting entries, highest priority first, then oldest."""
        stmt = (
            select(waitlist)
            .where(
                waitlist.c.doctor_id == doctor_id,
                waitlist.c.status == WaitlistStatus.WAITING.value,
            )
            .order_by(_PRIORITY_ORDER, waitlist.c.created_at, waitlist.c.waitlist_id)
        )
        async with transaction(self.session_factory) as session:
            result = await session.execute(stmt)
            return [WaitlistResponse.model_validate(dict(row)) for row in result.mappings()]
