"""Availability service: doctor slots and open-slot polling."""

from datetime import datetime

import structlog
from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.core.exceptions import DuplicateEntityError, ReferentialIntegrityError
from app.core.validators import get_timezone, to_wall_clock
from app.database import transaction
from app.models.appointments import appointments
from app.models.availability import availability
from app.schemas.availability import AvailabilityCreate, AvailabilityResponse
from app.schemas.users import UserType
from app.services.slot_ledger import SlotLedger
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)


class AvailabilityService:
    """Service for managing doctor availability slots."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        """Initialize service with an optional session factory."""
        self.session_factory = session_factory

    async def add_availability(self, data: AvailabilityCreate) -> AvailabilityResponse:
        """
        Publish a new slot for a doctor.

        Times with a UTC offset are stored as wall-clock time in the slot's
        timezone.

        Args:
            data: Slot owner and interval

        Returns:
            Created slot

        Raises:
            UserNotFoundError: If the doctor does not exist
            ValidationError: If the owner is not a doctor or the timezone is unknown
            DuplicateEntityError: If the doctor already has this exact interval
        """
        tz_name = data.timezone or settings.default_timezone
        get_timezone(tz_name)
        start_time = to_wall_clock(data.start_time, tz_name, "start_time")
        end_time = to_wall_clock(data.end_time, tz_name, "end_time")

        async with transaction(self.session_factory) as session:
            doctor = await UserService.fetch_user(session, data.doctor_id)
            UserService.require_type(doctor, UserType.DOCTOR)

            existing = await session.execute(
                select(availability.c.availability_id).where(
                    availability.c.doctor_id == data.doctor_id,
                    availability.c.start_time == start_time,
                    availability.c.end_time == end_time,
                )
            )
            if existing.first():
                raise DuplicateEntityError(
                    "Availability",
                    doctor_id=data.doctor_id,
                    start_time=start_time,
                    end_time=end_time,
                )

            try:
                result = await session.execute(
                    insert(availability)
                    .values(
                        doctor_id=data.doctor_id,
                        start_time=start_time,
                        end_time=end_time,
                        timezone=tz_name,
                    )
                    .returning(availability)
                )
            except IntegrityError:
                raise DuplicateEntityError(
                    "Availability",
                    doctor_id=data.doctor_id,
                    start_time=start_time,
                    end_time=end_time,
                ) from None
            slot = AvailabilityResponse.model_validate(dict(result.mappings().one()))

        logger.info(
            "availability_added",
            availability_id=slot.availability_id,
            doctor_id=slot.doctor_id,
        )
        return slot

    async def get_availability(self, availability_id: int) -> AvailabilityResponse:
        """Get a slot by ID."""
        async with transaction(self.session_factory) as session:
            slot = await SlotLedger(session).get_slot(availability_id)
            return AvailabilityResponse.model_validate(dict(slot))

    async def delete_availability(self, availability_id: int) -> None:
        """
        Remove a slot.

        Raises:
            AvailabilityNotFoundError: If the slot does not exist
            ReferentialIntegrityError: While an appointment references the slot
        """
        async with transaction(self.session_factory) as session:
            ledger = SlotLedger(session)
            await ledger.lock_slot(availability_id)

            claimant = await ledger.claimant(availability_id)
            if claimant is not None:
                raise ReferentialIntegrityError(
                    "Availability", availability_id, {"appointments": 1}
                )

            await session.execute(
                delete(availability).where(availability.c.availability_id == availability_id)
            )

        logger.info("availability_deleted", availability_id=availability_id)

    async def list_available_slots(
        self,
        doctor_id: int,
        after: datetime | None = None,
    ) -> list[AvailabilityResponse]:
        """
        List a doctor's slots that no appointment references.

        Args:
            doctor_id: Doctor whose slots to list
            after: Only include slots starting later than this. A naive value
                is compared with the stored wall-clock times; an aware one with
                each slot's start in its own timezone.

        Returns:
            Open slots ordered by start time
        """
        aware_after = after is not None and after.utcoffset() is not None
        stmt = (
            select(availability)
            .outerjoin(
                appointments,
                appointments.c.availability_id == availability.c.availability_id,
            )
            .where(
                availability.c.doctor_id == doctor_id,
                appointments.c.appointment_id.is_(None),
            )
        )
        if after is not None and not aware_after:
            stmt = stmt.where(availability.c.start_time > after)

        async with transaction(self.session_factory) as session:
            result = await session.execute(stmt.order_by(availability.c.start_time))
            slots = [AvailabilityResponse.model_validate(dict(row)) for row in result.mappings()]

        if aware_after:
            slots = [
                slot
                for slot in slots
                if get_timezone(slot.timezone).localize(slot.start_time) > after
            ]
        return slots
