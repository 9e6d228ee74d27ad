"""User service: users, specializations and doctor specializations."""

import structlog
from sqlalchemy import delete, func, insert, or_, select, update
from sqlalchemy.engine import RowMapping
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import (
    DuplicateEntityError,
    EntityNotFoundError,
    ReferentialIntegrityError,
    UserNotFoundError,
    ValidationError,
)
from app.core.validators import parse_enum
from app.database import transaction
from app.models.appointments import appointments
from app.models.recurring_appointments import recurring_appointments
from app.models.users import doctor_specializations, specializations, users
from app.schemas.users import (
    SpecializationResponse,
    UserCreate,
    UserResponse,
    UserStatus,
    UserType,
)

logger = structlog.get_logger(__name__)


class UserService:
    """Service for user and specialization operations."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        """Initialize service with an optional session factory."""
        self.session_factory = session_factory

    @staticmethod
    async def fetch_user(session: AsyncSession, user_id: int, lock: bool = False) -> RowMapping:
        """
        Load a user row inside an open transaction.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        stmt = select(users).where(users.c.user_id == user_id)
        if lock:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        user = result.mappings().first()
        if not user:
            raise UserNotFoundError(user_id)
        return user

    @staticmethod
    def require_type(user: RowMapping, user_type: UserType) -> None:
        """Raise ValidationError unless the user has the given role."""
        if user["user_type"] != user_type.value:
            raise ValidationError(
                f"User {user['user_id']} is a {user['user_type']}, not a {user_type.value}",
                field="user_type",
                value=user["user_type"],
            )

    async def create_user(self, data: UserCreate) -> UserResponse:
        """
        Create a new user.

        Raises:
            DuplicateEntityError: If the email is already registered
        """
        values = data.model_dump()
        for field in ("user_type", "gender", "status"):
            if values[field] is not None:
                values[field] = values[field].value

        async with transaction(self.session_factory) as session:
            existing = await session.execute(
                select(users.c.user_id).where(users.c.email == data.email)
            )
            if existing.first():
                raise DuplicateEntityError("User", email=data.email)

            try:
                result = await session.execute(insert(users).values(**values).returning(users))
            except IntegrityError:
                raise DuplicateEntityError("User", email=data.email) from None
            user = UserResponse.model_validate(dict(result.mappings().one()))

        logger.info("user_created", user_id=user.user_id, user_type=user.user_type.value)
        return user

    async def get_user(self, user_id: int) -> UserResponse:
        """Get user by ID."""
        async with transaction(self.session_factory) as session:
            user = await self.fetch_user(session, user_id)
            return UserResponse.model_validate(dict(user))

    async def get_user_by_email(self, email: str) -> UserResponse | None:
        """Get user by email."""
        async with transaction(self.session_factory) as session:
            result = await session.execute(select(users).where(users.c.email == email))
            user = result.mappings().first()
            return UserResponse.model_validate(dict(user)) if user else None

    async def update_user_status(self, user_id: int, status: UserStatus | str) -> UserResponse:
        """Change a user's lifecycle status."""
        new_status = parse_enum(UserStatus, status, "status")

        async with transaction(self.session_factory) as session:
            await self.fetch_user(session, user_id, lock=True)
            result = await session.execute(
                update(users)
                .where(users.c.user_id == user_id)
                .values(status=new_status.value)
                .returning(users)
            )
            user = UserResponse.model_validate(dict(result.mappings().one()))

        logger.info("user_status_updated", user_id=user_id, status=new_status.value)
        return user

    async def delete_user(self, user_id: int) -> None:
        """
        Delete a user.

        Availability, doctor specializations, notifications and waitlist
        entries go with the user; audit entries stay with their user
        reference cleared.

        Raises:
            UserNotFoundError: If the user does not exist
            ReferentialIntegrityError: If appointments or recurring patterns
                still reference the user
        """
        async with transaction(self.session_factory) as session:
            await self.fetch_user(session, user_id, lock=True)

            appointment_count = await session.scalar(
                select(func.count())
                .select_from(appointments)
                .where(
                    or_(
                        appointments.c.patient_id == user_id,
                        appointments.c.doctor_id == user_id,
                    )
                )
            )
            recurring_count = await session.scalar(
                select(func.count())
                .select_from(recurring_appointments)
                .where(
                    or_(
                        recurring_appointments.c.patient_id == user_id,
                        recurring_appointments.c.doctor_id == user_id,
                    )
                )
            )
            dependents = {
                name: count
                for name, count in (
                    ("appointments", appointment_count),
                    ("recurring_appointments", recurring_count),
                )
                if count
            }
            if dependents:
                logger.warning("user_delete_blocked", user_id=user_id, dependents=dependents)
                raise ReferentialIntegrityError("User", user_id, dependents)

            await session.execute(delete(users).where(users.c.user_id == user_id))

        logger.info("user_deleted", user_id=user_id)

    async def create_specialization(self, name: str) -> SpecializationResponse:
        """Create a specialization with a unique name."""
        name = name.strip()
        if not name:
            raise ValidationError("Specialization name must not be empty", field="name", value=name)

        async with transaction(self.session_factory) as session:
            existing = await session.execute(
                select(specializations.c.specialization_id).where(specializations.c.name == name)
            )
            if existing.first():
                raise DuplicateEntityError("Specialization", name=name)

            result = await session.execute(
                insert(specializations).values(name=name).returning(specializations)
            )
            return SpecializationResponse.model_validate(dict(result.mappings().one()))

    async def list_specializations(self) -> list[SpecializationResponse]:
        """List all specializations by name."""
        async with transaction(self.session_factory) as session:
            result = await session.execute(select(specializations).order_by(specializations.c.name))
            return [SpecializationResponse.model_validate(dict(row)) for row in result.mappings()]

    async def delete_specialization(self, specialization_id: int) -> None:
        """Delete a specialization; doctor links go with it, other references are cleared."""
        async with transaction(self.session_factory) as session:
            result = await session.execute(
                delete(specializations)
                .where(specializations.c.specialization_id == specialization_id)
                .returning(specializations.c.specialization_id)
            )
            if result.first() is None:
                raise EntityNotFoundError("Specialization", specialization_id)

        logger.info("specialization_deleted", specialization_id=specialization_id)

    async def assign_specialization(self, doctor_id: int, specialization_id: int) -> None:
        """
        Link a doctor to a specialization.

        Raises:
            ValidationError: If the user is not a doctor
            DuplicateEntityError: If the link already exists
        """
        async with transaction(self.session_factory) as session:
            doctor = await self.fetch_user(session, doctor_id)
            self.require_type(doctor, UserType.DOCTOR)

            specialization = await session.execute(
                select(specializations.c.specialization_id).where(
                    specializations.c.specialization_id == specialization_id
                )
            )
            if specialization.first() is None:
                raise EntityNotFoundError("Specialization", specialization_id)

            existing = await session.execute(
                select(doctor_specializations).where(
                    doctor_specializations.c.doctor_id == doctor_id,
                    doctor_specializations.c.specialization_id == specialization_id,
                )
            )
            if existing.first():
                raise DuplicateEntityError(
                    "DoctorSpecialization",
                    doctor_id=doctor_id,
                    specialization_id=specialization_id,
                )

            await session.execute(
                insert(doctor_specializations).values(
                    doctor_id=doctor_id,
                    specialization_id=specialization_id,
                )
            )

    async def list_doctor_specializations(self, doctor_id: int) -> list[SpecializationResponse]:
        """List the specializations of a doctor."""
        stmt = (
            select(specializations)
            .join(
                doctor_specializations,
                doctor_specializations.c.specialization_id
                == specializations.c.specialization_id,
            )
            .where(doctor_specializations.c.doctor_id == doctor_id)
            .order_by(specializations.c.name)
        )
        async with transaction(self.session_factory) as session:
            result = await session.execute(stmt)
            return [SpecializationResponse.model_validate(dict(row)) for row in result.mappings()]
