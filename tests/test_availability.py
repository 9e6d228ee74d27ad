"""Tests for availability slots and the slot ledger."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as SchemaValidationError

from app.core.exceptions import (
    AvailabilityNotFoundError,
    DuplicateEntityError,
    ReferentialIntegrityError,
    SlotConflictError,
    ValidationError,
)
from app.database import transaction
from app.schemas.availability import AvailabilityCreate
from app.services.slot_ledger import SlotLedger


@pytest.mark.asyncio
async def test_add_availability(availability_service, sample_data) -> None:
    """Test slots get the default timezone and sequential ids."""
    assert [slot.availability_id for slot in sample_data.slots] == [1, 2, 3, 4, 5, 6]

    slot = await availability_service.get_availability(1)
    assert slot.doctor_id == sample_data.alice.user_id
    assert slot.start_time == datetime(2025, 6, 23, 10)
    assert slot.end_time == datetime(2025, 6, 23, 11)
    assert slot.timezone == "Asia/Kolkata"


@pytest.mark.asyncio
async def test_add_availability_with_timezone(availability_service, sample_data) -> None:
    """Test an explicit timezone is stored as given."""
    slot = await availability_service.add_availability(
        AvailabilityCreate(
            doctor_id=sample_data.bob.user_id,
            start_time=datetime(2025, 7, 1, 9),
            end_time=datetime(2025, 7, 1, 10),
            timezone="Europe/London",
        )
    )
    assert slot.timezone == "Europe/London"


@pytest.mark.asyncio
async def test_add_duplicate_availability(availability_service, sample_data) -> None:
    """Test a doctor cannot publish the same interval twice."""
    with pytest.raises(DuplicateEntityError):
        await availability_service.add_availability(
            AvailabilityCreate(
                doctor_id=sample_data.alice.user_id,
                start_time=datetime(2025, 6, 23, 10),
                end_time=datetime(2025, 6, 23, 11),
            )
        )


@pytest.mark.asyncio
async def test_add_availability_for_patient(availability_service, sample_data) -> None:
    """Test only doctors own slots."""
    with pytest.raises(ValidationError):
        await availability_service.add_availability(
            AvailabilityCreate(
                doctor_id=sample_data.charlie.user_id,
                start_time=datetime(2025, 7, 1, 9),
                end_time=datetime(2025, 7, 1, 10),
            )
        )


def test_availability_end_before_start() -> None:
    """Test a slot must end after it starts."""
    with pytest.raises(SchemaValidationError):
        AvailabilityCreate(
            doctor_id=1,
            start_time=datetime(2025, 7, 1, 10),
            end_time=datetime(2025, 7, 1, 9),
        )


@pytest.mark.asyncio
async def test_list_available_slots(availability_service, sample_data, booked) -> None:
    """Test open slots exclude claimed ones and are ordered by start time."""
    open_slots = await availability_service.list_available_slots(sample_data.alice.user_id)
    assert [slot.availability_id for slot in open_slots] == [3, 4, 5, 6]

    later = await availability_service.list_available_slots(
        sample_data.alice.user_id, after=datetime(2025, 6, 24, 10)
    )
    assert [slot.availability_id for slot in later] == [5, 6]

    bob_slots = await availability_service.list_available_slots(sample_data.bob.user_id)
    assert [slot.availability_id for slot in bob_slots] == [2]


@pytest.mark.asyncio
async def test_delete_availability(availability_service, sample_data) -> None:
    """Test unclaimed slots can be removed."""
    await availability_service.delete_availability(6)

    with pytest.raises(AvailabilityNotFoundError):
        await availability_service.get_availability(6)
    with pytest.raises(AvailabilityNotFoundError):
        await availability_service.delete_availability(6)


@pytest.mark.asyncio
async def test_delete_claimed_availability(availability_service, sample_data, booked) -> None:
    """Test a slot referenced by an appointment cannot be removed."""
    with pytest.raises(ReferentialIntegrityError) as exc_info:
        await availability_service.delete_availability(1)

    assert exc_info.value.dependents == {"appointments": 1}
    assert (await availability_service.get_availability(1)).availability_id == 1


@pytest.mark.asyncio
async def test_slot_ledger_claimant(session_factory, sample_data, booked) -> None:
    """Test the ledger reports which appointment holds a slot."""
    async with transaction(session_factory) as session:
        ledger = SlotLedger(session)
        assert await ledger.claimant(1) == booked.appointment_id
        assert await ledger.is_claimed(1) is True
        assert await ledger.is_claimed(3) is False

        with pytest.raises(SlotConflictError):
            await ledger.ensure_unclaimed(1)
        with pytest.raises(AvailabilityNotFoundError):
            await ledger.lock_slot(999)


@pytest.mark.asyncio
async def test_add_availability_with_utc_offset(availability_service, sample_data) -> None:
    """Test offset-aware times are stored as wall-clock time in the slot's timezone."""
    slot = await availability_service.add_availability(
        AvailabilityCreate(
            doctor_id=sample_data.bob.user_id,
            start_time=datetime(2025, 7, 1, 3, 30, tzinfo=timezone.utc),
            end_time=datetime(2025, 7, 1, 4, 30, tzinfo=timezone.utc),
        )
    )
    assert slot.timezone == "Asia/Kolkata"
    assert slot.start_time == datetime(2025, 7, 1, 9)
    assert slot.end_time == datetime(2025, 7, 1, 10)

    london = await availability_service.add_availability(
        AvailabilityCreate(
            doctor_id=sample_data.bob.user_id,
            start_time=datetime(2025, 7, 1, 8, tzinfo=timezone.utc),
            end_time=datetime(2025, 7, 1, 9, tzinfo=timezone.utc),
            timezone="Europe/London",
        )
    )
    assert london.start_time == datetime(2025, 7, 1, 9)


@pytest.mark.asyncio
async def test_add_availability_unknown_timezone(availability_service, sample_data) -> None:
    """Test slots must name a real timezone."""
    with pytest.raises(ValidationError) as exc_info:
        await availability_service.add_availability(
            AvailabilityCreate(
                doctor_id=sample_data.bob.user_id,
                start_time=datetime(2025, 7, 1, 9),
                end_time=datetime(2025, 7, 1, 10),
                timezone="Mars/Olympus_Mons",
            )
        )
    assert exc_info.value.field == "timezone"


def test_availability_mixed_offsets_rejected() -> None:
    """Test start and end must agree on carrying a UTC offset."""
    with pytest.raises(SchemaValidationError):
        AvailabilityCreate(
            doctor_id=1,
            start_time=datetime(2025, 7, 1, 9),
            end_time=datetime(2025, 7, 1, 10, tzinfo=timezone.utc),
        )


@pytest.mark.asyncio
async def test_list_available_slots_after_aware(availability_service, sample_data) -> None:
    """Test an offset-aware cut-off is compared in each slot's timezone."""
    # 2025-06-24 10:00 in Asia/Kolkata
    cutoff = datetime(2025, 6, 24, 4, 30, tzinfo=timezone.utc)

    later = await availability_service.list_available_slots(sample_data.alice.user_id, after=cutoff)
    assert [slot.availability_id for slot in later] == [5, 6]
