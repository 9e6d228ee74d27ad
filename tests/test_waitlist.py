"""Tests for the doctor waitlist."""

from datetime import datetime, timezone

import pytest

from app.core.exceptions import (
    EntityNotFoundError,
    InvalidStateTransitionError,
    ValidationError,
)
from app.schemas.waitlist import WaitlistCreate, WaitlistPriority, WaitlistStatus


def _entry(sample_data, patient_id: int, priority: WaitlistPriority, **extra) -> WaitlistCreate:
    return WaitlistCreate(
        doctor_id=sample_data.alice.user_id,
        patient_id=patient_id,
        requested_time=datetime(2025, 6, 26, 9),
        priority=priority,
        **extra,
    )


@pytest.mark.asyncio
async def test_add_entry(waitlist_service, sample_data) -> None:
    """Test new entries start out waiting with medium priority."""
    entry = await waitlist_service.add_entry(
        WaitlistCreate(
            doctor_id=sample_data.alice.user_id,
            patient_id=sample_data.charlie.user_id,
            requested_time=datetime(2025, 6, 26, 9),
            specialization_id=sample_data.cardiology.specialization_id,
            notes="Any morning works.",
        )
    )

    assert entry.status == WaitlistStatus.WAITING
    assert entry.priority == WaitlistPriority.MEDIUM
    assert entry.specialization_id == sample_data.cardiology.specialization_id


@pytest.mark.asyncio
async def test_add_entry_checks_roles(waitlist_service, sample_data) -> None:
    """Test the doctor and patient must have the right roles."""
    with pytest.raises(ValidationError):
        await waitlist_service.add_entry(
            WaitlistCreate(
                doctor_id=sample_data.charlie.user_id,
                patient_id=sample_data.charlie.user_id,
                requested_time=datetime(2025, 6, 26, 9),
            )
        )
    with pytest.raises(EntityNotFoundError):
        await waitlist_service.add_entry(
            _entry(
                sample_data,
                sample_data.charlie.user_id,
                WaitlistPriority.LOW,
                specialization_id=99,
            )
        )


@pytest.mark.asyncio
async def test_list_waiting_orders_by_priority(
    waitlist_service,
    second_patient,
    sample_data,
) -> None:
    """Test high priority entries come first, then oldest."""
    low = await waitlist_service.add_entry(
        _entry(sample_data, sample_data.charlie.user_id, WaitlistPriority.LOW)
    )
    high = await waitlist_service.add_entry(
        _entry(sample_data, second_patient.user_id, WaitlistPriority.HIGH)
    )
    medium = await waitlist_service.add_entry(
        _entry(sample_data, sample_data.charlie.user_id, WaitlistPriority.MEDIUM)
    )

    waiting = await waitlist_service.list_waiting(sample_data.alice.user_id)
    assert [w.waitlist_id for w in waiting] == [
        high.waitlist_id,
        medium.waitlist_id,
        low.waitlist_id,
    ]

    await waitlist_service.update_status(high.waitlist_id, "notified")
    waiting = await waitlist_service.list_waiting(sample_data.alice.user_id)
    assert [w.waitlist_id for w in waiting] == [medium.waitlist_id, low.waitlist_id]


@pytest.mark.asyncio
async def test_update_status(waitlist_service, sample_data) -> None:
    """Test booked and cancelled entries are closed."""
    entry = await waitlist_service.add_entry(
        _entry(sample_data, sample_data.charlie.user_id, WaitlistPriority.HIGH)
    )

    notified = await waitlist_service.update_status(entry.waitlist_id, WaitlistStatus.NOTIFIED)
    assert notified.status == WaitlistStatus.NOTIFIED
    booked = await waitlist_service.update_status(entry.waitlist_id, "booked")
    assert booked.status == WaitlistStatus.BOOKED

    with pytest.raises(InvalidStateTransitionError) as exc_info:
        await waitlist_service.update_status(entry.waitlist_id, "waiting")
    assert exc_info.value.entity == "waitlist entry"


@pytest.mark.asyncio
async def test_update_status_invalid(waitlist_service, sample_data) -> None:
    """Test unknown statuses and entries are rejected."""
    entry = await waitlist_service.add_entry(
        _entry(sample_data, sample_data.charlie.user_id, WaitlistPriority.LOW)
    )

    with pytest.raises(ValidationError):
        await waitlist_service.update_status(entry.waitlist_id, "expired")
    with pytest.raises(EntityNotFoundError):
        await waitlist_service.update_status(999, "notified")


@pytest.mark.asyncio
async def test_add_entry_with_utc_offset(waitlist_service, sample_data) -> None:
    """Test an offset-aware requested time is stored as default-timezone wall-clock time."""
    entry = await waitlist_service.add_entry(
        WaitlistCreate(
            doctor_id=sample_data.alice.user_id,
            patient_id=sample_data.charlie.user_id,
            requested_time=datetime(2025, 6, 26, 3, 30, tzinfo=timezone.utc),
        )
    )
    assert entry.requested_time == datetime(2025, 6, 26, 9)
