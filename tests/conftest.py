import os
from collections.abc import AsyncGenerator
from datetime import date, datetime
from types import SimpleNamespace

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

from app.config import settings
from app.database import build_engine
from app.models import metadata
from app.schemas.availability import AvailabilityCreate
from app.schemas.users import Gender, UserCreate, UserType
from app.services.audit_service import AuditLogger
from app.services.availability_service import AvailabilityService
from app.services.booking_service import BookingService
from app.services.feedback_service import FeedbackService
from app.services.notification_service import NotificationService
from app.services.recurring_service import RecurringAppointmentService
from app.services.user_service import UserService
from app.services.waitlist_service import WaitlistService


@pytest.fixture
def database_url(tmp_path) -> str:
    """
    Database URL for one test.

    Uses TEST_DATABASE_URL when set (e.g. a PostgreSQL test database),
    otherwise a fresh SQLite file.
    """
    url = os.getenv("TEST_DATABASE_URL")
    if not url:
        return f"sqlite+aiosqlite:///{tmp_path / 'telehealth_test.db'}"

    # Safety check: prevent running tests against the main database
    if url == settings.database_url:
        pytest.exit("TEST_DATABASE_URL must differ from DATABASE_URL", returncode=1)
    return url.replace("postgresql://", "postgresql+asyncpg://", 1)


@pytest_asyncio.fixture
async def session_factory(
    database_url: str,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create a fresh schema and yield a session factory bound to it."""
    # NullPool avoids sharing connections across event loops
    engine = build_engine(database_url, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def user_service(session_factory) -> UserService:
    return UserService(session_factory)


@pytest.fixture
def availability_service(session_factory) -> AvailabilityService:
    return AvailabilityService(session_factory)


@pytest.fixture
def booking_service(session_factory) -> BookingService:
    return BookingService(session_factory)


@pytest.fixture
def notification_service(session_factory) -> NotificationService:
    return NotificationService(session_factory)


@pytest.fixture
def audit_logger(session_factory) -> AuditLogger:
    return AuditLogger(session_factory)


@pytest.fixture
def feedback_service(session_factory) -> FeedbackService:
    return FeedbackService(session_factory)


@pytest.fixture
def waitlist_service(session_factory) -> WaitlistService:
    return WaitlistService(session_factory)


@pytest.fixture
def recurring_service(session_factory) -> RecurringAppointmentService:
    return RecurringAppointmentService(session_factory)


@pytest.fixture
def count_rows(session_factory):
    """Count rows of a table, optionally filtered by column equality."""

    async def _count(table, **filters) -> int:
        stmt = select(func.count()).select_from(table)
        for column, value in filters.items():
            stmt = stmt.where(table.c[column] == value)
        async with session_factory() as session:
            return await session.scalar(stmt)

    return _count


@pytest_asyncio.fixture
async def sample_data(user_service, availability_service) -> SimpleNamespace:
    """
    Doctors Alice (1) and Bob (2), patient Charlie (3), three specializations
    and six slots (ids 1-6; slot 2 is Bob's, the rest are Alice's).
    """
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

    cardiology = await user_service.create_specialization("Cardiology")
    dermatology = await user_service.create_specialization("Dermatology")
    general = await user_service.create_specialization("General Medicine")
    await user_service.assign_specialization(alice.user_id, cardiology.specialization_id)
    await user_service.assign_specialization(bob.user_id, dermatology.specialization_id)
    await user_service.assign_specialization(alice.user_id, general.specialization_id)

    intervals = [
        (alice, datetime(2025, 6, 23, 10), datetime(2025, 6, 23, 11)),
        (bob, datetime(2025, 6, 23, 14), datetime(2025, 6, 23, 15)),
        (alice, datetime(2025, 6, 24, 9), datetime(2025, 6, 24, 10)),
        (alice, datetime(2025, 6, 24, 10), datetime(2025, 6, 24, 11)),
        (alice, datetime(2025, 6, 24, 11), datetime(2025, 6, 24, 12)),
        (alice, datetime(2025, 6, 25, 9), datetime(2025, 6, 25, 10)),
    ]
    slots = [
        await availability_service.add_availability(
            AvailabilityCreate(doctor_id=doctor.user_id, start_time=start, end_time=end)
        )
        for doctor, start, end in intervals
    ]

    return SimpleNamespace(
        alice=alice,
        bob=bob,
        charlie=charlie,
        cardiology=cardiology,
        dermatology=dermatology,
        general=general,
        slots=slots,
    )


@pytest_asyncio.fixture
async def second_patient(user_service, sample_data):
    """Another active patient, Dana (4)."""
    return await user_service.create_user(
        UserCreate(
            user_type=UserType.PATIENT,
            first_name="Dana",
            last_name="White",
            email="dana.white@telehealth.com",
            password_hash="hashed_pass_dana",
            date_of_birth=date(1988, 2, 14),
            gender=Gender.FEMALE,
        )
    )


@pytest_asyncio.fixture
async def booked(booking_service, sample_data):
    """Charlie booked with Alice in slot 1 (appointment 1)."""
    return await booking_service.book_appointment(
        patient_id=sample_data.charlie.user_id,
        doctor_id=sample_data.alice.user_id,
        availability_id=sample_data.slots[0].availability_id,
        link_prefix="https://meet.telehealth.com/",
        expires_at=datetime(2025, 6, 23, 11),
        log_detail="Patient Charlie Brown booked appointment with Dr. Alice Smith.",
    )
