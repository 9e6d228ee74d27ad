"""Users, specializations and the doctor-specialization junction table."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    func,
)

from app.models.metadata import metadata

# Patients and doctors share one table, told apart by user_type
users = Table(
    "users",
    metadata,
    Column("user_id", Integer, primary_key=True, autoincrement=True),
    Column("user_type", String(10), nullable=False),
    Column("first_name", String(50), nullable=False),
    Column("last_name", String(50), nullable=False),
    Column("email", String(100), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("phone", String(20)),
    # Nullable for doctors
    Column("date_of_birth", Date),
    Column("gender", String(10)),
    Column("status", String(10), nullable=False, server_default="active"),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("user_type IN ('patient', 'doctor')", name="users_user_type_check"),
    CheckConstraint(
        "gender IS NULL OR gender IN ('male', 'female', 'other')",
        name="users_gender_check",
    ),
    CheckConstraint(
        "status IN ('active', 'inactive', 'suspended')",
        name="users_status_check",
    ),
    Index("idx_users_email", "email"),
)

specializations = Table(
    "specializations",
    metadata,
    Column("specialization_id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, unique=True),
)

doctor_specializations = Table(
    "doctor_specializations",
    metadata,
    Column(
        "doctor_id",
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "specialization_id",
        Integer,
        ForeignKey("specializations.specialization_id", ondelete="CASCADE"),
        primary_key=True,
    ),
)
