"""Script to initialize the database and optionally load sample data."""

import argparse
import asyncio
import sys
from datetime import date, datetime

import structlog

from app.config import settings
from app.core.logging import configure_logging
from app.database import check_database_connection, create_tables, engine
from app.schemas.availability import AvailabilityCreate
from app.schemas.users import Gender, UserCreate, UserType
from app.services.availability_service import AvailabilityService
from app.services.booking_service import BookingService
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)

SAMPLE_SLOTS = [
    ("alice.smith@telehealth.com", "2025-06-23 10:00", "2025-06-23 11:00"),
    ("bob.jones@telehealth.com", "2025-06-23 14:00", "2025-06-23 15:00"),
    ("alice.smith@telehealth.com", "2025-06-24 09:00", "2025-06-24 10:00"),
    ("alice.smith@telehealth.com", "2025-06-24 10:00", "2025-06-24 11:00"),
    ("alice.smith@telehealth.com", "2025-06-24 11:00", "2025-06-24 12:00"),
    ("alice.smith@telehealth.com", "2025-06-25 09:00", "2025-06-25 10:00"),
]


async def load_sample_data() -> None:
    """Load two doctors, one patient, three specializations, six slots and one booking."""
    user_service = UserService()
    availability_service = AvailabilityService()

    alice = await user_service.create_user(
        UserCreate(
            user_type=UserType.DOCTOR,
            first_name="Alice",
            last_name="Smith",
            email="alice.smith@telehealth.com",
            password_hash="hashed_pass_alice",
            phone="9876543210",
        )
    )
    bob = await user_service.create_user(
        UserCreate(
            user_type=UserType.DOCTOR,
            first_name="Bob",
            last_name="Jones",
            email="bob.jones@telehealth.com",
            password_hash="hashed_pass_bob",
            phone="9988776655",
        )
    )
    charlie = await user_service.create_user(
        UserCreate(
            user_type=UserType.PATIENT,
            first_name="Charlie",
            last_name="Brown",
            email="charlie.brown@telehealth.com",
            password_hash="hashed_pass_charlie",
            phone="9123456789",
            date_of_birth=date(1995, 9, 23),
            gender=Gender.MALE,
        )
    )

    specs = {}
    for name in ("Cardiology", "Dermatology", "General Medicine"):
        specs[name] = await user_service.create_specialization(name)
    await user_service.assign_specialization(alice.user_id, specs["Cardiology"].specialization_id)
    await user_service.assign_specialization(bob.user_id, specs["Dermatology"].specialization_id)
    await user_service.assign_specialization(
        alice.user_id, specs["General Medicine"].specialization_id
    )

    doctors = {alice.email: alice.user_id, bob.email: bob.user_id}
    slots = []
    for email, start, end in SAMPLE_SLOTS:
        slots.append(
            await availability_service.add_availability(
                AvailabilityCreate(
                    doctor_id=doctors[email],
                    start_time=datetime.fromisoformat(start),
                    end_time=datetime.fromisoformat(end),
                )
            )
        )

    result = await BookingService().book_appointment(
        patient_id=charlie.user_id,
        doctor_id=alice.user_id,
        availability_id=slots[0].availability_id,
        log_detail="Patient Charlie Brown booked appointment with Dr. Alice Smith.",
    )
    logger.info("sample_data_loaded", appointment_id=result.appointment_id)


async def init_db(with_sample_data: bool = False) -> bool:
    """Initialize the database by creating all tables.

    Returns False without touching the schema when the database is unreachable.
    """
    try:
        if not await check_database_connection():
            logger.error("database_init_aborted", environment=settings.environment)
            return False

        await create_tables()
        logger.info("database_initialized", environment=settings.environment)

        if with_sample_data:
            await load_sample_data()
        return True
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--sample-data", action="store_true", help="load the sample data set")
    args = parser.parse_args()

    configure_logging()
    if not asyncio.run(init_db(with_sample_data=args.sample_data)):
        sys.exit(1)
