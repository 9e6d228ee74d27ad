"""Booking service: transactional appointment operations.

Appointment status forms a small state machine::

    scheduled ──► rescheduled ──► rescheduled
        │              │
        ├──────────────┴──► cancelled   (terminal)
        └──────────────────► completed  (terminal)

Every operation runs in a single transaction. The appointment row is locked
first, then (when a slot is being claimed) the target slot row, so two
callers can never both pass the "is it free" check for the same slot or
interleave transitions of the same appointment.
"""

import uuid
from datetime import datetime

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import RowMapping
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.core.exceptions import (
    AppointmentNotFoundError,
    DuplicateEntityError,
    EntityNotFoundError,
    InvalidStateTransitionError,
    ValidationError,
)
from app.core.validators import to_wall_clock
from app.database import transaction
from app.models.appointments import appointments, consultations, virtual_links
from app.models.availability import availability
from app.models.users import users
from app.schemas.appointments import (
    AppointmentResponse,
    AppointmentStatus,
    ConsultationResponse,
    OperationResult,
    PatientAppointmentView,
    VirtualLinkResponse,
)
from app.schemas.audit import AuditAction
from app.schemas.notifications import NotificationType
from app.schemas.users import UserStatus, UserType
from app.services.audit_service import AuditLogger
from app.services.notification_service import NotificationService
from app.services.slot_ledger import SlotLedger
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)

APPOINTMENTS_TABLE = "Appointments"
CONSULTATIONS_TABLE = "Consultations"


class BookingService:
    """Service for booking, rescheduling, cancelling and completing appointments."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        """Initialize service with an optional session factory."""
        self.session_factory = session_factory

    @staticmethod
    def _meeting_url(prefix: str) -> str:
        return f"{prefix}{uuid.uuid4().hex}"

    @staticmethod
    async def _lock_appointment(session: AsyncSession, appointment_id: int) -> RowMapping:
        result = await session.execute(
            select(appointments)
            .where(appointments.c.appointment_id == appointment_id)
            .with_for_update()
        )
        appointment = result.mappings().first()
        if not appointment:
            raise AppointmentNotFoundError(appointment_id)
        return appointment

    @staticmethod
    def _check_transition(
        appointment: RowMapping,
        target: AppointmentStatus,
        action: str,
    ) -> None:
        current = AppointmentStatus(appointment["status"])
        if not current.can_transition_to(target):
            logger.warning(
                "invalid_state_transition",
                appointment_id=appointment["appointment_id"],
                current_status=current.value,
                target_status=target.value,
            )
            raise InvalidStateTransitionError(appointment["appointment_id"], current.value, action)

    @staticmethod
    def _require_active(user: RowMapping) -> None:
        if user["status"] != UserStatus.ACTIVE.value:
            raise ValidationError(
                f"User {user['user_id']} is {user['status']} and cannot take part in bookings",
                field="status",
                value=user["status"],
            )

    @staticmethod
    def _require_slot_owner(slot: RowMapping, doctor_id: int) -> None:
        if slot["doctor_id"] != doctor_id:
            raise ValidationError(
                f"Availability slot {slot['availability_id']} belongs to doctor "
                f"{slot['doctor_id']}, not doctor {doctor_id}",
                field="availability_id",
                value=slot["availability_id"],
            )

    async def book_appointment(
        self,
        patient_id: int,
        doctor_id: int,
        availability_id: int,
        link_prefix: str | None = None,
        expires_at: datetime | None = None,
        log_detail: str | None = None,
    ) -> OperationResult:
        """
        Book a slot for a patient.

        Creates the appointment, its virtual meeting link, an audit entry and
        a pending confirmation notification.

        Args:
            patient_id: Patient booking the slot
            doctor_id: Doctor who owns the slot
            availability_id: Slot to claim
            link_prefix: Meeting URL prefix, defaults to the configured one
            expires_at: Link expiry, defaults to the slot's end time; a value with
                a UTC offset is stored as wall-clock time in the slot's timezone
            log_detail: Audit detail text

        Returns:
            Result carrying the new appointment ID

        Raises:
            SlotConflictError: If the slot is already claimed; pick another slot
            AvailabilityNotFoundError: If the slot does not exist
            UserNotFoundError: If the patient or doctor does not exist
            ValidationError: If roles, statuses or slot ownership do not match
        """
        async with transaction(self.session_factory) as session:
            patient = await UserService.fetch_user(session, patient_id)
            UserService.require_type(patient, UserType.PATIENT)
            self._require_active(patient)
            doctor = await UserService.fetch_user(session, doctor_id)
            UserService.require_type(doctor, UserType.DOCTOR)
            self._require_active(doctor)

            ledger = SlotLedger(session)
            slot = await ledger.lock_slot(availability_id)
            self._require_slot_owner(slot, doctor_id)
            link_expiry = (
                to_wall_clock(expires_at, slot["timezone"], "expires_at")
                if expires_at is not None
                else slot["end_time"]
            )

            appointment_id = await ledger.claim_new(
                availability_id,
                patient_id=patient_id,
                doctor_id=doctor_id,
                status=AppointmentStatus.SCHEDULED.value,
            )

            await session.execute(
                insert(virtual_links).values(
                    appointment_id=appointment_id,
                    meeting_url=self._meeting_url(link_prefix or settings.meeting_url_prefix),
                    expires_at=link_expiry,
                )
            )
            await AuditLogger.record(
                session,
                patient_id,
                AuditAction.CREATE,
                APPOINTMENTS_TABLE,
                appointment_id,
                log_detail or f"Patient {patient_id} booked appointment with doctor {doctor_id}",
            )
            await NotificationService.enqueue(
                session, patient_id, appointment_id, NotificationType.CONFIRMATION
            )

        logger.info(
            "appointment_booked",
            appointment_id=appointment_id,
            patient_id=patient_id,
            doctor_id=doctor_id,
            availability_id=availability_id,
        )
        return OperationResult(
            message="Appointment booked successfully.",
            appointment_id=appointment_id,
        )

    async def reschedule_appointment(
        self,
        appointment_id: int,
        new_availability_id: int,
        acting_user_id: int | None,
        log_detail: str | None = None,
    ) -> OperationResult:
        """
        Move an appointment to another slot of the same doctor.

        The virtual link is regenerated in place and expires at the new
        slot's end time. The slot left behind becomes bookable again.

        Raises:
            AppointmentNotFoundError: If the appointment does not exist
            InvalidStateTransitionError: If the appointment is completed or cancelled
            SlotConflictError: If the new slot is already claimed
            AvailabilityNotFoundError: If the new slot does not exist
            ValidationError: If the new slot belongs to another doctor
        """
        async with transaction(self.session_factory) as session:
            appointment = await self._lock_appointment(session, appointment_id)
            self._check_transition(appointment, AppointmentStatus.RESCHEDULED, "reschedule")
            if acting_user_id is not None:
                await UserService.fetch_user(session, acting_user_id)

            ledger = SlotLedger(session)
            slot = await ledger.lock_slot(new_availability_id)
            self._require_slot_owner(slot, appointment["doctor_id"])
            await ledger.claim(new_availability_id, appointment_id)

            await session.execute(
                update(appointments)
                .where(appointments.c.appointment_id == appointment_id)
                .values(status=AppointmentStatus.RESCHEDULED.value, updated_at=func.now())
            )

            link_values = {
                "meeting_url": self._meeting_url(settings.meeting_url_prefix),
                "expires_at": slot["end_time"],
            }
            link_update = await session.execute(
                update(virtual_links)
                .where(virtual_links.c.appointment_id == appointment_id)
                .values(**link_values)
            )
            if link_update.rowcount == 0:
                await session.execute(
                    insert(virtual_links).values(appointment_id=appointment_id, **link_values)
                )

            await AuditLogger.record(
                session,
                acting_user_id,
                AuditAction.RESCHEDULE,
                APPOINTMENTS_TABLE,
                appointment_id,
                log_detail
                or f"Appointment {appointment_id} moved to availability slot {new_availability_id}",
            )
            await NotificationService.enqueue(
                session,
                appointment["patient_id"],
                appointment_id,
                NotificationType.RESCHEDULE_CONFIRM,
            )

        logger.info(
            "appointment_rescheduled",
            appointment_id=appointment_id,
            from_availability_id=appointment["availability_id"],
            to_availability_id=new_availability_id,
        )
        return OperationResult(
            message="Appointment rescheduled successfully.",
            appointment_id=appointment_id,
        )

    async def cancel_appointment(
        self,
        appointment_id: int,
        acting_user_id: int | None,
        log_detail: str | None = None,
    ) -> OperationResult:
        """
        Cancel a scheduled or rescheduled appointment.

        The slot stays bound to the cancelled appointment and is not offered
        for booking again.

        Raises:
            AppointmentNotFoundError: If the appointment does not exist
            InvalidStateTransitionError: If the appointment is completed or cancelled
        """
        async with transaction(self.session_factory) as session:
            appointment = await self._lock_appointment(session, appointment_id)
            self._check_transition(appointment, AppointmentStatus.CANCELLED, "cancel")
            if acting_user_id is not None:
                await UserService.fetch_user(session, acting_user_id)

            await session.execute(
                update(appointments)
                .where(appointments.c.appointment_id == appointment_id)
                .values(status=AppointmentStatus.CANCELLED.value, updated_at=func.now())
            )
            await AuditLogger.record(
                session,
                acting_user_id,
                AuditAction.CANCEL,
                APPOINTMENTS_TABLE,
                appointment_id,
                log_detail or f"Appointment {appointment_id} cancelled",
            )
            await NotificationService.enqueue(
                session,
                appointment["patient_id"],
                appointment_id,
                NotificationType.CANCELLATION,
            )

        logger.info("appointment_cancelled", appointment_id=appointment_id)
        return OperationResult(
            message="Appointment cancelled successfully.",
            appointment_id=appointment_id,
        )

    async def record_consultation(
        self,
        appointment_id: int,
        notes: str | None,
        prescription: str | None,
        outcome: str | None,
        recording_user_id: int | None,
    ) -> OperationResult:
        """
        Record the consultation for an appointment and mark it completed.

        Raises:
            AppointmentNotFoundError: If the appointment does not exist
            InvalidStateTransitionError: If the appointment is completed or cancelled
        """
        async with transaction(self.session_factory) as session:
            appointment = await self._lock_appointment(session, appointment_id)
            self._check_transition(
                appointment, AppointmentStatus.COMPLETED, "record a consultation for"
            )
            if recording_user_id is not None:
                await UserService.fetch_user(session, recording_user_id)

            try:
                result = await session.execute(
                    insert(consultations)
                    .values(
                        appointment_id=appointment_id,
                        notes=notes,
                        prescription=prescription,
                        outcome=outcome,
                    )
                    .returning(consultations.c.consultation_id)
                )
            except IntegrityError:
                raise DuplicateEntityError("Consultation", appointment_id=appointment_id) from None
            consultation_id = result.scalar_one()

            await AuditLogger.record(
                session,
                recording_user_id,
                AuditAction.CREATE,
                CONSULTATIONS_TABLE,
                consultation_id,
                f"Consultation recorded for appointment {appointment_id}",
            )
            await session.execute(
                update(appointments)
                .where(appointments.c.appointment_id == appointment_id)
                .values(status=AppointmentStatus.COMPLETED.value, updated_at=func.now())
            )

        logger.info(
            "consultation_recorded",
            appointment_id=appointment_id,
            consultation_id=consultation_id,
        )
        return OperationResult(
            message="Consultation recorded successfully.",
            appointment_id=appointment_id,
            consultation_id=consultation_id,
        )

    async def get_appointment(self, appointment_id: int) -> AppointmentResponse:
        """Get appointment by ID."""
        async with transaction(self.session_factory) as session:
            result = await session.execute(
                select(appointments).where(appointments.c.appointment_id == appointment_id)
            )
            row = result.mappings().first()
            if not row:
                raise AppointmentNotFoundError(appointment_id)
            return AppointmentResponse.model_validate(dict(row))

    async def get_virtual_link(self, appointment_id: int) -> VirtualLinkResponse:
        """Get the meeting link of an appointment."""
        async with transaction(self.session_factory) as session:
            result = await session.execute(
                select(virtual_links).where(virtual_links.c.appointment_id == appointment_id)
            )
            row = result.mappings().first()
            if not row:
                raise EntityNotFoundError("VirtualLink", appointment_id)
            return VirtualLinkResponse.model_validate(dict(row))

    async def get_consultation(self, appointment_id: int) -> ConsultationResponse:
        """Get the consultation recorded for an appointment."""
        async with transaction(self.session_factory) as session:
            result = await session.execute(
                select(consultations).where(consultations.c.appointment_id == appointment_id)
            )
            row = result.mappings().first()
            if not row:
                raise EntityNotFoundError("Consultation", appointment_id)
            return ConsultationResponse.model_validate(dict(row))

    async def list_patient_appointments(self, patient_id: int) -> list[PatientAppointmentView]:
        """
        List a patient's appointments with doctor name, slot times and meeting link.

        Args:
            patient_id: Patient whose appointments to list

        Returns:
            Appointments ordered by slot start time
        """
        stmt = (
            select(
                appointments.c.appointment_id,
                appointments.c.patient_id,
                appointments.c.doctor_id,
                appointments.c.status,
                appointments.c.created_at,
                appointments.c.updated_at,
                users.c.first_name.label("doctor_first_name"),
                users.c.last_name.label("doctor_last_name"),
                availability.c.start_time.label("appointment_start_time"),
                availability.c.end_time.label("appointment_end_time"),
                availability.c.timezone,
                virtual_links.c.meeting_url,
            )
            .join(users, users.c.user_id == appointments.c.doctor_id)
            .join(
                availability,
                availability.c.availability_id == appointments.c.availability_id,
            )
            .outerjoin(
                virtual_links,
                virtual_links.c.appointment_id == appointments.c.appointment_id,
            )
            .where(appointments.c.patient_id == patient_id)
            .order_by(availability.c.start_time)
        )

        async with transaction(self.session_factory) as session:
            result = await session.execute(stmt)
            return [PatientAppointmentView.model_validate(dict(row)) for row in result.mappings()]
