"""Custom application exceptions.

Every booking operation surfaces failures as one of these types. The
``status_code`` is a hint for whatever presentation layer translates the
error; ``context`` carries the ids involved.
"""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    retryable = False

    def __init__(self, message: str, status_code: int = 500, **context: Any):
        """Initialize exception with message, status code and context ids."""
        self.message = message
        self.status_code = status_code
        self.context = context
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found", **context: Any):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404, **context)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict", **context: Any):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409, **context)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error", **context: Any):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422, **context)


class EntityNotFoundError(NotFoundException):
    """A referenced row does not exist."""

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found", entity=entity, entity_id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class AppointmentNotFoundError(EntityNotFoundError):
    """Appointment does not exist."""

    def __init__(self, appointment_id: int):
        super().__init__("Appointment", appointment_id)
        self.appointment_id = appointment_id


class AvailabilityNotFoundError(EntityNotFoundError):
    """Availability slot does not exist."""

    def __init__(self, availability_id: int):
        super().__init__("Availability", availability_id)
        self.availability_id = availability_id


class UserNotFoundError(EntityNotFoundError):
    """User does not exist."""

    def __init__(self, user_id: int):
        super().__init__("User", user_id)
        self.user_id = user_id


class SlotConflictError(ConflictException):
    """The availability slot is already claimed by an appointment.

    Retrying the same slot cannot succeed; callers should re-poll the
    doctor's available slots and pick another one.
    """

    def __init__(self, availability_id: int, claimed_by: int | None = None):
        super().__init__(
            f"Availability slot {availability_id} is already booked; "
            "please choose another slot",
            availability_id=availability_id,
            claimed_by=claimed_by,
        )
        self.availability_id = availability_id
        self.claimed_by = claimed_by


class InvalidStateTransitionError(ConflictException):
    """Requested status change is not an edge of the entity's state machine."""

    def __init__(
        self,
        entity_id: int,
        current_status: str,
        action: str,
        entity: str = "appointment",
    ):
        super().__init__(
            f"Cannot {action} {entity} {entity_id}: it is already {current_status}",
            entity=entity,
            entity_id=entity_id,
            current_status=current_status,
            action=action,
        )
        self.entity = entity
        self.entity_id = entity_id
        self.current_status = current_status
        self.action = action


class ReferentialIntegrityError(ConflictException):
    """Delete blocked because dependent rows still reference the entity."""

    def __init__(self, entity: str, entity_id: Any, dependents: dict[str, int]):
        blocking = ", ".join(f"{count} {name}" for name, count in dependents.items())
        super().__init__(
            f"Cannot delete {entity} {entity_id}: referenced by {blocking}",
            entity=entity,
            entity_id=entity_id,
            dependents=dependents,
        )
        self.entity = entity
        self.entity_id = entity_id
        self.dependents = dependents


class DuplicateEntityError(ConflictException):
    """A uniqueness constraint would be violated."""

    def __init__(self, entity: str, **key: Any):
        described = ", ".join(f"{name}={value!r}" for name, value in key.items())
        super().__init__(f"{entity} with {described} already exists", entity=entity, **key)
        self.entity = entity


class ValidationError(ValidationException):
    """Enum membership or range violation."""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        super().__init__(message, field=field, value=value)
        self.field = field
        self.value = value


class LockTimeoutError(AppException):
    """Waiting for a row lock exceeded the configured bound."""

    retryable = True

    def __init__(self, message: str = "Timed out waiting for a row lock"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)
