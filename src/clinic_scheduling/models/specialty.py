"""
Specialty model representing a medical specialty offered by the clinic.

A specialty carries the two values the scheduling engine enforces: the daily
appointment limit (capacity across all of its doctors on one calendar date)
and the average consultation duration that is snapshotted onto every
appointment booked under it. Specialties are maintained by administrators;
the scheduling engine only reads them.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, Boolean, Integer, TIMESTAMP, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_scheduling.core.database import Base
from clinic_scheduling.core.constants import (
    MAX_STRING_LENGTH, ID_LENGTH,
    MIN_DAILY_APPOINTMENT_LIMIT, MAX_DAILY_APPOINTMENT_LIMIT,
    MIN_CONSULTATION_DURATION_MINUTES, MAX_CONSULTATION_DURATION_MINUTES,
    DEFAULT_DAILY_APPOINTMENT_LIMIT, DEFAULT_CONSULTATION_DURATION_MINUTES,
)
from clinic_scheduling.utils.id_utils import new_id


class Specialty(Base):
    """Medical specialty with its daily capacity and consultation length."""

    __tablename__ = "specialties"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True, default=new_id)
    """Unique identifier for the specialty."""

    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH), unique=True)
    """Display name, e.g. 'Cardiology'."""

    code: Mapped[str] = mapped_column(String(20), unique=True)
    """Short unique code, e.g. 'CARDIO'."""

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    daily_appointment_limit: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_DAILY_APPOINTMENT_LIMIT, nullable=False
    )
    """Maximum number of active (pending or confirmed) appointments per calendar date."""

    average_consultation_duration: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_CONSULTATION_DURATION_MINUTES, nullable=False
    )
    """Consultation length in minutes, copied onto appointments at booking time."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """Inactive specialties cannot be booked."""

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    doctors = relationship("DoctorSpecialty", back_populates="specialty")
    """Doctors practising this specialty."""

    appointments = relationship("Appointment", back_populates="specialty")

    __table_args__ = (
        CheckConstraint(
            f"daily_appointment_limit BETWEEN {MIN_DAILY_APPOINTMENT_LIMIT} AND {MAX_DAILY_APPOINTMENT_LIMIT}",
            name='check_specialty_daily_limit_range'
        ),
        CheckConstraint(
            f"average_consultation_duration BETWEEN {MIN_CONSULTATION_DURATION_MINUTES} "
            f"AND {MAX_CONSULTATION_DURATION_MINUTES}",
            name='check_specialty_duration_range'
        ),
    )

    def __repr__(self) -> str:
        return f"<Specialty(id={self.id}, code={self.code}, limit={self.daily_appointment_limit})>"
