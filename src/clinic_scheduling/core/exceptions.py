"""
Typed scheduling errors.

Every expected business outcome of the scheduling engine (missing reference
data, an unavailable slot, a full day, an illegal lifecycle step, an actor
without standing) is raised as a subclass of SchedulingError. Callers catch
SchedulingError and map ``code`` to their own user-facing messaging; anything
else escaping a service (SQLAlchemy errors after exhausted retries) is an
unexpected storage fault.
"""

from typing import Any, Dict, Optional


class SchedulingError(Exception):
    """Base class for expected, recoverable scheduling outcomes."""

    code = "scheduling_error"
    default_message = "Scheduling operation failed"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details: Dict[str, Any] = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format for transport layers."""
        return {"error": self.code, "message": self.message, **self.details}


class SpecialtyNotFound(SchedulingError):
    code = "specialty_not_found"
    default_message = "Specialty not found"


class DoctorNotFound(SchedulingError):
    code = "doctor_not_found"
    default_message = "Doctor not found for this specialty"


class AppointmentNotFound(SchedulingError):
    code = "appointment_not_found"
    default_message = "Appointment not found"


class SlotNotOffered(SchedulingError):
    """Requested time is not a slot boundary of any active availability window."""

    code = "slot_not_offered"
    default_message = "The doctor does not offer this time slot"


class SlotConflict(SchedulingError):
    """Another active appointment already holds the doctor/date/time."""

    code = "slot_conflict"
    default_message = "This time slot is no longer available"


class CapacityExceeded(SchedulingError):
    """The specialty's daily appointment limit has been reached."""

    code = "capacity_exceeded"
    default_message = "Daily appointment limit reached for this specialty"


class InvalidTransition(SchedulingError):
    code = "invalid_transition"
    default_message = "This operation is not allowed in the appointment's current status"


class Forbidden(SchedulingError):
    code = "forbidden"
    default_message = "Not allowed to perform this operation on this appointment"


class ValidationError(SchedulingError):
    code = "validation_error"
    default_message = "Invalid input"
