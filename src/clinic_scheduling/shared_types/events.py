"""
Domain events emitted by the booking engine and lifecycle manager.

Events carry enough identifiers (doctor, patient, specialty, old and new
date/time) for an external notifier to decide whom to address. The engine
makes no assumption about delivery.
"""

from dataclasses import dataclass, field
from datetime import date as date_type, datetime, time as time_type
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from clinic_scheduling.utils.datetime_utils import utc_now, format_time

if TYPE_CHECKING:
    from clinic_scheduling.models.appointment import Appointment


class AppointmentEventType(str, Enum):
    CREATED = "AppointmentCreated"
    CONFIRMED = "AppointmentConfirmed"
    CANCELLED = "AppointmentCancelled"
    COMPLETED = "AppointmentCompleted"
    RESCHEDULED = "AppointmentRescheduled"


@dataclass(frozen=True)
class AppointmentEvent:
    event_type: AppointmentEventType
    appointment_id: str
    doctor_id: str
    patient_id: str
    specialty_id: str
    date: date_type
    time: time_type
    status: str
    actor_id: str
    previous_status: Optional[str] = None
    previous_date: Optional[date_type] = None
    previous_time: Optional[time_type] = None
    reason: Optional[str] = None
    """Booking reason for AppointmentCreated, cancellation reason for AppointmentCancelled."""
    occurred_at: datetime = field(default_factory=utc_now)

    @classmethod
    def from_appointment(
        cls,
        event_type: AppointmentEventType,
        appointment: "Appointment",
        actor_id: str,
        **extra: Any
    ) -> "AppointmentEvent":
        """Build an event from the appointment's current (post-transition) state."""
        return cls(
            event_type=event_type,
            appointment_id=appointment.id,
            doctor_id=appointment.doctor_id,
            patient_id=appointment.patient_id,
            specialty_id=appointment.specialty_id,
            date=appointment.appointment_date,
            time=appointment.appointment_time,
            status=appointment.status,
            actor_id=actor_id,
            **extra
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "eventType": self.event_type.value,
            "appointmentId": self.appointment_id,
            "doctorId": self.doctor_id,
            "patientId": self.patient_id,
            "specialtyId": self.specialty_id,
            "date": self.date.isoformat(),
            "time": format_time(self.time),
            "status": self.status,
            "previousStatus": self.previous_status,
            "previousDate": self.previous_date.isoformat() if self.previous_date else None,
            "previousTime": format_time(self.previous_time) if self.previous_time else None,
            "actorId": self.actor_id,
            "reason": self.reason,
            "occurredAt": self.occurred_at.isoformat(),
        }
