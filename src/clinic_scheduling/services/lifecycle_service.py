"""
Appointment lifecycle: the state machine over pending, confirmed, completed
and cancelled.

    pending   --confirm-->     confirmed
    pending   --cancel-->      cancelled
    confirmed --cancel-->      cancelled
    confirmed --complete-->    completed
    pending   --reschedule-->  pending
    confirmed --reschedule-->  pending

completed and cancelled are terminal. Every transition locks the appointment
row, so two concurrent transitions on the same appointment serialize and the
loser re-validates against the winner's committed status.
"""

import logging
from datetime import date as date_type, time
from enum import Enum
from typing import Callable, Dict, FrozenSet, Optional, Set, Tuple, Union

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduling.core.config import BOOKING_MAX_RETRIES, BOOKING_RETRY_BASE_DELAY_SECONDS
from clinic_scheduling.core.constants import (
    STATUS_PENDING, STATUS_CONFIRMED, STATUS_COMPLETED, STATUS_CANCELLED,
)
from clinic_scheduling.core.database import begin_write
from clinic_scheduling.core.exceptions import (
    SchedulingError, AppointmentNotFound, InvalidTransition, Forbidden, SlotConflict,
)
from clinic_scheduling.models import Appointment
from clinic_scheduling.services.booking_service import BookingEngine
from clinic_scheduling.services.event_port import EventPort, LoggingEventPort, emit_safely
from clinic_scheduling.shared_types.actor import Actor
from clinic_scheduling.shared_types.events import AppointmentEvent, AppointmentEventType
from clinic_scheduling.shared_types.requests import RescheduleRequest, parse_request
from clinic_scheduling.utils.datetime_utils import utc_now
from clinic_scheduling.utils.transaction_utils import is_transient_failure, retry_on_transient_failure

logger = logging.getLogger(__name__)


class Transition(str, Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"
    COMPLETE = "complete"
    RESCHEDULE = "reschedule"


# transition -> (statuses it may start from, resulting status)
TRANSITIONS: Dict[Transition, Tuple[FrozenSet[str], str]] = {
    Transition.CONFIRM: (frozenset({STATUS_PENDING}), STATUS_CONFIRMED),
    Transition.CANCEL: (frozenset({STATUS_PENDING, STATUS_CONFIRMED}), STATUS_CANCELLED),
    Transition.COMPLETE: (frozenset({STATUS_CONFIRMED}), STATUS_COMPLETED),
    Transition.RESCHEDULE: (frozenset({STATUS_PENDING, STATUS_CONFIRMED}), STATUS_PENDING),
}

# Parties an actor can be to an appointment
PARTY_STAFF = "staff"
PARTY_DOCTOR = "doctor"
PARTY_PATIENT = "patient"

# transition -> parties allowed to perform it
TRANSITION_PARTIES: Dict[Transition, FrozenSet[str]] = {
    Transition.CONFIRM: frozenset({PARTY_STAFF, PARTY_DOCTOR}),
    Transition.CANCEL: frozenset({PARTY_STAFF, PARTY_DOCTOR, PARTY_PATIENT}),
    Transition.COMPLETE: frozenset({PARTY_DOCTOR}),
    Transition.RESCHEDULE: frozenset({PARTY_STAFF, PARTY_PATIENT}),
}

TRANSITION_EVENTS: Dict[Transition, AppointmentEventType] = {
    Transition.CONFIRM: AppointmentEventType.CONFIRMED,
    Transition.CANCEL: AppointmentEventType.CANCELLED,
    Transition.COMPLETE: AppointmentEventType.COMPLETED,
    Transition.RESCHEDULE: AppointmentEventType.RESCHEDULED,
}


def actor_parties(actor: Actor, appointment: Appointment) -> Set[str]:
    """Return the roles the actor plays with respect to one appointment."""
    parties: Set[str] = set()
    if actor.capabilities.is_staff:
        parties.add(PARTY_STAFF)
    if actor.is_doctor(appointment.doctor_id):
        parties.add(PARTY_DOCTOR)
    if actor.is_patient(appointment.patient_id):
        parties.add(PARTY_PATIENT)
    return parties


def can_perform(actor: Actor, appointment: Appointment, transition: Transition) -> bool:
    """Check if the actor has standing to apply a transition to an appointment."""
    return bool(actor_parties(actor, appointment) & TRANSITION_PARTIES[transition])


class LifecycleManager:
    """
    Applies status transitions to existing appointments.

    Each operation checks, in order: the appointment exists, the actor has
    standing, the current status permits the transition. A failed check
    leaves the appointment untouched.
    """

    def __init__(self, event_port: Optional[EventPort] = None):
        self.event_port: EventPort = event_port or LoggingEventPort()

    @retry_on_transient_failure(max_retries=BOOKING_MAX_RETRIES, base_delay=BOOKING_RETRY_BASE_DELAY_SECONDS)
    def confirm(self, db: Session, actor: Actor, appointment_id: str) -> Appointment:
        """
        Confirm a pending appointment.

        Raises:
            AppointmentNotFound: If the appointment does not exist
            Forbidden: If the actor is neither staff nor the appointment's doctor
            InvalidTransition: If the appointment is not pending
        """
        return self._apply(db, actor, appointment_id, Transition.CONFIRM)

    @retry_on_transient_failure(max_retries=BOOKING_MAX_RETRIES, base_delay=BOOKING_RETRY_BASE_DELAY_SECONDS)
    def cancel(
        self,
        db: Session,
        actor: Actor,
        appointment_id: str,
        reason: Optional[str] = None
    ) -> Appointment:
        """
        Cancel a pending or confirmed appointment.

        Records who cancelled, when, and why. The slot and the specialty's
        capacity for that day are released as soon as this commits.

        Args:
            db: Database session
            actor: Caller (staff, the appointment's doctor, or its patient)
            appointment_id: Appointment ID
            reason: Optional cancellation reason

        Raises:
            AppointmentNotFound: If the appointment does not exist
            Forbidden: If the actor has no standing on the appointment
            InvalidTransition: If the appointment is completed or cancelled
        """
        def record_cancellation(appointment: Appointment) -> None:
            appointment.cancellation_reason = reason
            appointment.cancelled_by = actor.actor_id
            appointment.cancelled_at = utc_now()

        return self._apply(
            db, actor, appointment_id, Transition.CANCEL, record_cancellation, event_reason=reason
        )

    @retry_on_transient_failure(max_retries=BOOKING_MAX_RETRIES, base_delay=BOOKING_RETRY_BASE_DELAY_SECONDS)
    def complete(
        self,
        db: Session,
        actor: Actor,
        appointment_id: str,
        notes: Optional[str] = None
    ) -> Appointment:
        """
        Mark a confirmed appointment as completed.

        Only the appointment's own doctor may complete it. When notes are
        given they replace the appointment's notes.

        Raises:
            AppointmentNotFound: If the appointment does not exist
            Forbidden: If the actor is not the appointment's doctor
            InvalidTransition: If the appointment is not confirmed
        """
        def record_notes(appointment: Appointment) -> None:
            if notes is not None:
                appointment.notes = notes

        return self._apply(db, actor, appointment_id, Transition.COMPLETE, record_notes)

    @retry_on_transient_failure(max_retries=BOOKING_MAX_RETRIES, base_delay=BOOKING_RETRY_BASE_DELAY_SECONDS)
    def reschedule(
        self,
        db: Session,
        actor: Actor,
        appointment_id: str,
        new_date: Union[date_type, str],
        new_time: Union[time, str],
        reason: Optional[str] = None
    ) -> Appointment:
        """
        Move an appointment to a new date and time.

        The new slot goes through the same offered, conflict and capacity
        checks as a new booking, with the appointment itself excluded from
        the conflict and capacity counts. A rescheduled appointment always
        returns to pending and needs confirming again.

        Args:
            db: Database session
            actor: Caller (staff or the appointment's patient)
            appointment_id: Appointment ID
            new_date: New calendar date
            new_time: New start time
            reason: Optional new reason; keeps the current one when omitted

        Raises:
            ValidationError: If new_date or new_time is malformed
            AppointmentNotFound: If the appointment does not exist
            Forbidden: If the actor is neither staff nor the appointment's patient
            InvalidTransition: If the appointment is completed or cancelled
            SlotNotOffered: If the new time is not on the doctor's slot grid
            SlotConflict: If another active appointment holds the new slot
            CapacityExceeded: If the specialty is full on the new date
        """
        request = parse_request(RescheduleRequest, new_date=new_date, new_time=new_time, reason=reason)

        try:
            begin_write(db)
            # Unlocked read to find the specialty; lock order is specialty row, then appointment row
            current = db.query(Appointment).filter(Appointment.id == appointment_id).first()
            if not current:
                raise AppointmentNotFound(appointment_id=appointment_id)

            specialty = BookingEngine.lock_specialty(db, current.specialty_id, require_active=False)
            appointment = self._lock_appointment(db, appointment_id)
            self._authorize(actor, appointment, Transition.RESCHEDULE)
            previous_status = self._check_transition(appointment, Transition.RESCHEDULE)
            previous_date = appointment.appointment_date
            previous_time = appointment.appointment_time

            BookingEngine.ensure_slot_bookable(
                db,
                specialty,
                appointment.doctor_id,
                request.new_date,
                request.new_time,
                exclude_appointment_id=appointment.id,
            )

            appointment.appointment_date = request.new_date
            appointment.appointment_time = request.new_time
            if request.reason is not None:
                appointment.reason = request.reason
            appointment.status = STATUS_PENDING
            db.commit()

        except SchedulingError:
            db.rollback()
            raise
        except IntegrityError as e:
            logger.warning(f"Reschedule conflict for appointment {appointment_id}: {e}")
            db.rollback()
            raise SlotConflict(
                date=request.new_date.isoformat(),
                time=request.new_time.isoformat(),
            )
        except OperationalError as e:
            if not is_transient_failure(e):
                logger.exception(f"Failed to reschedule appointment {appointment_id}: {e}")
            db.rollback()
            raise
        except SQLAlchemyError as e:
            logger.exception(f"Failed to reschedule appointment {appointment_id}: {e}")
            db.rollback()
            raise

        logger.info(
            f"Rescheduled appointment {appointment.id} from {previous_date} {previous_time} "
            f"to {appointment.appointment_date} {appointment.appointment_time} by {actor.actor_id}"
        )
        emit_safely(
            self.event_port,
            AppointmentEvent.from_appointment(
                AppointmentEventType.RESCHEDULED,
                appointment,
                actor.actor_id,
                previous_status=previous_status,
                previous_date=previous_date,
                previous_time=previous_time,
                reason=request.reason,
            )
        )
        return appointment

    def _apply(
        self,
        db: Session,
        actor: Actor,
        appointment_id: str,
        transition: Transition,
        mutate: Optional[Callable[[Appointment], None]] = None,
        event_reason: Optional[str] = None
    ) -> Appointment:
        """Run a status-only transition in its own transaction and emit its event."""
        _, target_status = TRANSITIONS[transition]
        try:
            begin_write(db)
            appointment = self._lock_appointment(db, appointment_id)
            self._authorize(actor, appointment, transition)
            previous_status = self._check_transition(appointment, transition)

            if mutate is not None:
                mutate(appointment)
            appointment.status = target_status
            db.commit()

        except SchedulingError:
            db.rollback()
            raise
        except OperationalError as e:
            if not is_transient_failure(e):
                logger.exception(f"Failed to {transition.value} appointment {appointment_id}: {e}")
            db.rollback()
            raise
        except SQLAlchemyError as e:
            logger.exception(f"Failed to {transition.value} appointment {appointment_id}: {e}")
            db.rollback()
            raise

        logger.info(
            f"Appointment {appointment.id}: {previous_status} -> {appointment.status} "
            f"({transition.value} by {actor.actor_id})"
        )
        emit_safely(
            self.event_port,
            AppointmentEvent.from_appointment(
                TRANSITION_EVENTS[transition],
                appointment,
                actor.actor_id,
                previous_status=previous_status,
                reason=event_reason,
            )
        )
        return appointment

    @staticmethod
    def _lock_appointment(db: Session, appointment_id: str) -> Appointment:
        """Load an appointment with a row lock, refreshing any cached state."""
        appointment = db.query(Appointment).filter(
            Appointment.id == appointment_id
        ).with_for_update().populate_existing().first()
        if not appointment:
            raise AppointmentNotFound(appointment_id=appointment_id)
        return appointment

    @staticmethod
    def _authorize(actor: Actor, appointment: Appointment, transition: Transition) -> None:
        if not can_perform(actor, appointment, transition):
            raise Forbidden(
                f"Not allowed to {transition.value} this appointment",
                appointment_id=appointment.id,
                actor_id=actor.actor_id,
            )

    @staticmethod
    def _check_transition(appointment: Appointment, transition: Transition) -> str:
        """Validate the current status against the transition table; return it."""
        allowed_from, target_status = TRANSITIONS[transition]
        if appointment.status not in allowed_from:
            raise InvalidTransition(
                f"Cannot {transition.value} an appointment that is {appointment.status}",
                appointment_id=appointment.id,
                current_status=appointment.status,
                target_status=target_status,
            )
        return appointment.status
