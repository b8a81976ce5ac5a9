"""
Booking engine: conflict-free, capacity-bounded appointment creation.

A booking runs every precondition check and the insert inside one
transaction:

1. The specialty row is read with ``SELECT ... FOR UPDATE``. Competing
   bookings (and reschedules) for the same specialty queue behind this lock,
   so the capacity count read afterwards cannot be stale when the insert
   commits.
2. The doctor-time pair is checked against active appointments, and the
   partial unique index ``uq_appointments_active_slot`` backs that check at
   the storage layer: a racing double-book surfaces as IntegrityError and is
   reported as SlotConflict.
3. Transient aborts (deadlock, serialization failure, SQLite busy) roll the
   whole attempt back and retry with bounded backoff.

Either the appointment is committed in full or nothing is written.
"""

import logging
from datetime import date as date_type, time
from typing import Optional, Union

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduling.core.config import BOOKING_MAX_RETRIES, BOOKING_RETRY_BASE_DELAY_SECONDS
from clinic_scheduling.core.constants import STATUS_CONFIRMED, STATUS_PENDING, BOOKED_BY_SELF
from clinic_scheduling.core.database import begin_write
from clinic_scheduling.core.exceptions import (
    SchedulingError, SpecialtyNotFound, DoctorNotFound, SlotNotOffered, SlotConflict,
    CapacityExceeded, Forbidden,
)
from clinic_scheduling.models import Appointment, Specialty, DoctorSpecialty
from clinic_scheduling.services.availability_catalog import AvailabilityCatalog
from clinic_scheduling.services.capacity_service import CapacityGuard
from clinic_scheduling.services.event_port import EventPort, LoggingEventPort, emit_safely
from clinic_scheduling.services.slot_service import SlotGenerator
from clinic_scheduling.shared_types.actor import Actor
from clinic_scheduling.shared_types.events import AppointmentEvent, AppointmentEventType
from clinic_scheduling.shared_types.requests import BookingRequest, parse_request
from clinic_scheduling.utils.transaction_utils import is_transient_failure, retry_on_transient_failure

logger = logging.getLogger(__name__)


class BookingEngine:
    """
    Creates appointments for patients (self-service) or on their behalf (staff).

    Contains the precondition checks shared with LifecycleManager's reschedule.
    """

    def __init__(self, event_port: Optional[EventPort] = None):
        self.event_port: EventPort = event_port or LoggingEventPort()

    @retry_on_transient_failure(max_retries=BOOKING_MAX_RETRIES, base_delay=BOOKING_RETRY_BASE_DELAY_SECONDS)
    def book(
        self,
        db: Session,
        actor: Actor,
        patient_id: str,
        doctor_id: str,
        specialty_id: str,
        appointment_date: Union[date_type, str],
        appointment_time: Union[time, str],
        reason: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Appointment:
        """
        Book an appointment.

        Args:
            db: Database session
            actor: Authenticated caller
            patient_id: Patient the appointment is for
            doctor_id: Doctor to book with
            specialty_id: Specialty the appointment counts against
            appointment_date: Calendar date (date or YYYY-MM-DD string)
            appointment_time: Slot start time (time or HH:MM[:SS] string)
            reason: Optional patient-provided reason
            notes: Optional booking notes

        Returns:
            The committed Appointment, 'confirmed' when the actor's role
            auto-confirms, otherwise 'pending'

        Raises:
            ValidationError: If input is malformed
            Forbidden: If a patient books for someone else
            SpecialtyNotFound: If the specialty does not exist or is inactive
            DoctorNotFound: If the doctor does not practise the specialty
            SlotNotOffered: If the time is not a slot of the doctor's availability
            SlotConflict: If an active appointment already holds the slot
            CapacityExceeded: If the specialty's daily limit is reached
        """
        request = parse_request(
            BookingRequest,
            patient_id=patient_id,
            doctor_id=doctor_id,
            specialty_id=specialty_id,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            reason=reason,
            notes=notes,
        )

        self_booking = actor.is_patient(request.patient_id)
        if not self_booking and not actor.capabilities.books_for_others:
            raise Forbidden("Patients can only book appointments for themselves")

        try:
            begin_write(db)
            specialty = BookingEngine.lock_specialty(db, request.specialty_id)
            BookingEngine.ensure_doctor_in_specialty(db, request.doctor_id, specialty.id)
            BookingEngine.ensure_slot_bookable(
                db, specialty, request.doctor_id, request.appointment_date, request.appointment_time
            )

            appointment = Appointment(
                patient_id=request.patient_id,
                doctor_id=request.doctor_id,
                specialty_id=specialty.id,
                appointment_date=request.appointment_date,
                appointment_time=request.appointment_time,
                duration_minutes=specialty.average_consultation_duration,
                status=STATUS_CONFIRMED if actor.capabilities.can_auto_confirm else STATUS_PENDING,
                reason=request.reason,
                notes=request.notes,
                booked_by=BOOKED_BY_SELF if self_booking else actor.actor_id,
            )
            db.add(appointment)
            db.commit()

        except SchedulingError:
            db.rollback()
            raise
        except IntegrityError as e:
            logger.warning(f"Appointment booking conflict: {e}")
            db.rollback()
            raise SlotConflict(
                doctor_id=request.doctor_id,
                date=request.appointment_date.isoformat(),
                time=request.appointment_time.isoformat(),
            )
        except OperationalError as e:
            # Transient lock conflicts are retried by the decorator
            if not is_transient_failure(e):
                logger.exception(f"Failed to create appointment: {e}")
            db.rollback()
            raise
        except SQLAlchemyError as e:
            logger.exception(f"Failed to create appointment: {e}")
            db.rollback()
            raise

        logger.info(
            f"Created appointment {appointment.id} ({appointment.status}) for patient "
            f"{appointment.patient_id} with doctor {appointment.doctor_id} by {actor.actor_id}"
        )
        emit_safely(
            self.event_port,
            AppointmentEvent.from_appointment(
                AppointmentEventType.CREATED, appointment, actor.actor_id, reason=appointment.reason
            )
        )
        return appointment

    @staticmethod
    def lock_specialty(db: Session, specialty_id: str, require_active: bool = True) -> Specialty:
        """
        Load a specialty and lock its row until the transaction ends.

        Args:
            db: Database session
            specialty_id: Specialty ID
            require_active: Treat an inactive specialty as missing

        Returns:
            The locked Specialty

        Raises:
            SpecialtyNotFound: If the specialty is missing (or inactive when required)
        """
        specialty = db.query(Specialty).filter(
            Specialty.id == specialty_id
        ).with_for_update().populate_existing().first()

        if not specialty or (require_active and not specialty.is_active):
            raise SpecialtyNotFound(specialty_id=specialty_id)
        return specialty

    @staticmethod
    def ensure_doctor_in_specialty(db: Session, doctor_id: str, specialty_id: str) -> None:
        """
        Check that the doctor practises the specialty.

        Raises:
            DoctorNotFound: If no doctor-specialty association exists
        """
        association = db.query(DoctorSpecialty).filter(
            DoctorSpecialty.doctor_id == doctor_id,
            DoctorSpecialty.specialty_id == specialty_id
        ).first()
        if not association:
            raise DoctorNotFound(doctor_id=doctor_id, specialty_id=specialty_id)

    @staticmethod
    def ensure_slot_bookable(
        db: Session,
        specialty: Specialty,
        doctor_id: str,
        appointment_date: date_type,
        appointment_time: time,
        exclude_appointment_id: Optional[str] = None
    ) -> None:
        """
        Run the slot-offered, slot-conflict and capacity checks, in that order.

        Must be called after lock_specialty in the same transaction for the
        capacity result to be authoritative.

        Args:
            db: Database session
            specialty: Locked specialty
            doctor_id: Doctor identity
            appointment_date: Requested date
            appointment_time: Requested start time
            exclude_appointment_id: Appointment being moved (ignored by the
                conflict and capacity checks)

        Raises:
            SlotNotOffered: If the time is off the doctor's slot grid that day
            SlotConflict: If another active appointment holds the slot
            CapacityExceeded: If the specialty's daily limit is reached
        """
        windows = AvailabilityCatalog.windows_for(db, doctor_id, appointment_date.weekday())
        if not SlotGenerator.is_slot_offered(windows, appointment_time):
            raise SlotNotOffered(
                doctor_id=doctor_id,
                date=appointment_date.isoformat(),
                time=appointment_time.isoformat(),
            )

        occupied = SlotGenerator.occupied_times(
            db, doctor_id, appointment_date, exclude_appointment_id=exclude_appointment_id
        )
        if appointment_time in occupied:
            raise SlotConflict(
                doctor_id=doctor_id,
                date=appointment_date.isoformat(),
                time=appointment_time.isoformat(),
            )

        if not CapacityGuard.has_capacity(
            db, specialty, appointment_date, exclude_appointment_id=exclude_appointment_id
        ):
            raise CapacityExceeded(
                f"Daily appointment limit reached for this specialty "
                f"({specialty.daily_appointment_limit}/day)",
                specialty_id=specialty.id,
                date=appointment_date.isoformat(),
                limit=specialty.daily_appointment_limit,
            )
