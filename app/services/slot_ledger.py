"""Slot ledger: which appointment holds each availability slot."""

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.engine import RowMapping
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AvailabilityNotFoundError, SlotConflictError, ValidationError
from app.models.appointments import appointments
from app.models.availability import availability

logger = structlog.get_logger(__name__)


class SlotLedger:
    """Enforces "at most one appointment per availability slot".

    A ledger is bound to the session of one open transaction, so a claim
    commits or rolls back together with the caller's other writes. Callers
    lock the slot row with :meth:`lock_slot` before checking or claiming it;
    the slot lock is what serializes concurrent claimers. The unique
    constraint on ``appointments.availability_id`` backs this up at the
    storage layer.
    """

    def __init__(self, session: AsyncSession):
        """Bind the ledger to an open transaction."""
        self.session = session

    async def get_slot(self, slot_id: int) -> RowMapping:
        """Read a slot without locking it."""
        result = await self.session.execute(
            select(availability).where(availability.c.availability_id == slot_id)
        )
        slot = result.mappings().first()
        if not slot:
            raise AvailabilityNotFoundError(slot_id)
        return slot

    async def lock_slot(self, slot_id: int) -> RowMapping:
        """
        Lock a slot row for the rest of the transaction.

        Raises:
            AvailabilityNotFoundError: If the slot does not exist
        """
        result = await self.session.execute(
            select(availability)
            .where(availability.c.availability_id == slot_id)
            .with_for_update()
        )
        slot = result.mappings().first()
        if not slot:
            raise AvailabilityNotFoundError(slot_id)
        return slot

    async def claimant(self, slot_id: int) -> int | None:
        """Return the id of the appointment holding the slot, if any."""
        result = await self.session.execute(
            select(appointments.c.appointment_id).where(
                appointments.c.availability_id == slot_id
            )
        )
        return result.scalar_one_or_none()

    async def is_claimed(self, slot_id: int) -> bool:
        """Check whether any appointment references the slot."""
        return await self.claimant(slot_id) is not None

    async def ensure_unclaimed(self, slot_id: int) -> None:
        """Raise SlotConflictError if the slot is already held."""
        holder = await self.claimant(slot_id)
        if holder is not None:
            logger.warning("slot_conflict", availability_id=slot_id, claimed_by=holder)
            raise SlotConflictError(slot_id, claimed_by=holder)

    async def claim_new(self, slot_id: int, **values: object) -> int:
        """
        Insert a new appointment bound to the slot.

        Args:
            slot_id: Slot to claim
            **values: Remaining appointment columns

        Returns:
            ID of the new appointment

        Raises:
            SlotConflictError: If another appointment holds the slot
        """
        await self.ensure_unclaimed(slot_id)
        try:
            result = await self.session.execute(
                insert(appointments)
                .values(availability_id=slot_id, **values)
                .returning(appointments.c.appointment_id)
            )
        except IntegrityError:
            logger.warning("slot_conflict_on_insert", availability_id=slot_id)
            raise SlotConflictError(slot_id) from None
        return result.scalar_one()

    async def claim(self, slot_id: int, appointment_id: int) -> None:
        """
        Repoint an existing appointment to the slot.

        The slot the appointment held before is left unreferenced.

        Raises:
            ValidationError: If the appointment already holds the slot
            SlotConflictError: If another appointment holds the slot
        """
        if await self.claimant(slot_id) == appointment_id:
            raise ValidationError(
                f"Appointment {appointment_id} is already in availability slot {slot_id}",
                field="availability_id",
                value=slot_id,
            )
        await self.ensure_unclaimed(slot_id)
        try:
            await self.session.execute(
                update(appointments)
                .where(appointments.c.appointment_id == appointment_id)
                .values(availability_id=slot_id)
            )
        except IntegrityError:
            logger.warning(
                "slot_conflict_on_update",
                availability_id=slot_id,
                appointment_id=appointment_id,
            )
            raise SlotConflictError(slot_id) from None
