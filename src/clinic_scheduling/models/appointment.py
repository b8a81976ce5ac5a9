"""
Appointment model representing a booked consultation between a patient and a doctor.

Appointments are created by the booking engine and mutated only through
lifecycle transitions afterwards; they are never deleted. Cancellation and
completion are terminal statuses.

Two guarantees are enforced by the schema itself:
- At most one active (pending or confirmed) appointment per doctor, date and
  time, via a partial unique index.
- duration_minutes and the cancellation audit fields are write-once.
"""

from datetime import date as date_type, datetime, time, timedelta
from typing import Any, Optional

from sqlalchemy import String, Text, Integer, Date, Time, TIMESTAMP, ForeignKey, Index, CheckConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from clinic_scheduling.core.database import Base
from clinic_scheduling.core.constants import (
    ID_LENGTH, ACTIVE_STATUSES, TERMINAL_STATUSES, APPOINTMENT_STATUSES, STATUS_PENDING,
)
from clinic_scheduling.utils.id_utils import new_id

ACTIVE_STATUS_SQL = "status IN ({})".format(", ".join(f"'{s}'" for s in ACTIVE_STATUSES))


class Appointment(Base):
    """
    Appointment entity for one patient, one doctor, one specialty and one slot.

    The status field follows the lifecycle:
    pending -> confirmed -> completed, with cancelled reachable from pending
    or confirmed, and rescheduling returning an active appointment to pending.
    """

    __tablename__ = "appointments"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True, default=new_id)
    """Unique identifier for the appointment."""

    patient_id: Mapped[str] = mapped_column(String(ID_LENGTH))
    """Identity of the patient in the external user store."""

    doctor_id: Mapped[str] = mapped_column(String(ID_LENGTH))
    """Identity of the doctor in the external user store."""

    specialty_id: Mapped[str] = mapped_column(ForeignKey("specialties.id"))
    """Specialty the appointment is booked under; its daily capacity applies."""

    appointment_date: Mapped[date_type] = mapped_column(Date)
    """Calendar date of the appointment."""

    appointment_time: Mapped[time] = mapped_column(Time)
    """Start time of the appointment (second precision), a slot boundary."""

    duration_minutes: Mapped[int] = mapped_column(Integer)
    """Consultation length snapshotted from the specialty at booking time. Never recomputed."""

    status: Mapped[str] = mapped_column(String(20), default=STATUS_PENDING)
    """Current status: 'pending', 'confirmed', 'completed' or 'cancelled'."""

    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Patient-provided reason for the visit."""

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Consultation notes, typically recorded by the doctor on completion."""

    booked_by: Mapped[str] = mapped_column(String(ID_LENGTH))
    """'self' for patient self-service bookings, otherwise the booking actor's id."""

    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancelled_by: Mapped[Optional[str]] = mapped_column(String(ID_LENGTH), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    specialty = relationship("Specialty", back_populates="appointments")

    __table_args__ = (
        CheckConstraint(
            "status IN ({})".format(", ".join(f"'{s}'" for s in APPOINTMENT_STATUSES)),
            name='check_appointment_status'
        ),
        # Active slot exclusivity: one pending/confirmed appointment per doctor-time pair
        Index(
            'uq_appointments_active_slot',
            'doctor_id', 'appointment_date', 'appointment_time',
            unique=True,
            postgresql_where=text(ACTIVE_STATUS_SQL),
            sqlite_where=text(ACTIVE_STATUS_SQL),
        ),
        # Capacity counting per specialty and day
        Index('idx_appointments_specialty_date_status', 'specialty_id', 'appointment_date', 'status'),
        Index('idx_appointments_doctor_date', 'doctor_id', 'appointment_date'),
        Index('idx_appointments_patient', 'patient_id'),
    )

    @validates('duration_minutes', 'cancellation_reason', 'cancelled_by', 'cancelled_at')
    def _validate_write_once(self, key: str, value: Any) -> Any:
        current = getattr(self, key, None)
        if current is not None and value != current:
            raise ValueError(f"Appointment.{key} is write-once and already set")
        return value

    @property
    def is_active(self) -> bool:
        """Active appointments count toward slot exclusivity and daily capacity."""
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.appointment_date, self.appointment_time)

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.duration_minutes)

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, doctor_id={self.doctor_id}, "
            f"{self.appointment_date} {self.appointment_time}, status={self.status})>"
        )
