"""User and specialization schemas."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, EmailStr, Field, model_validator


class UserType(str, Enum):
    """User role enumeration."""

    PATIENT = "patient"
    DOCTOR = "doctor"


class UserStatus(str, Enum):
    """User lifecycle status enumeration."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class Gender(str, Enum):
    """Gender enumeration."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class UserBase(BaseModel):
    """Base user schema with common fields."""

    user_type: UserType
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone: str | None = Field(None, max_length=20)
    date_of_birth: date | None = None
    gender: Gender | None = None


class UserCreate(UserBase):
    """Schema for creating a new user.

    ``password_hash`` is stored as given; producing it belongs to the
    authentication layer.
    """

    password_hash: str = Field(..., min_length=1, max_length=255)
    status: UserStatus = UserStatus.ACTIVE

    @model_validator(mode="after")
    def patients_have_birth_date(self) -> "UserCreate":
        """Patients must carry a date of birth; doctors may omit it."""
        if self.user_type == UserType.PATIENT and self.date_of_birth is None:
            raise ValueError("date_of_birth is required for patients")
        return self


class UserResponse(UserBase):
    """User schema for responses (never exposes the password hash)."""

    user_id: int
    status: UserStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class SpecializationResponse(BaseModel):
    """Specialization response schema."""

    specialization_id: int
    name: str

    model_config = {"from_attributes": True}
