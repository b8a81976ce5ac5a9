"""
Availability window model for a doctor's recurring weekly schedule.

Each record is one working period on one day of the week, subdivided into
fixed-length slots. Doctors can have multiple windows per day (e.g.
09:00-12:00 and 14:00-18:00) to cover morning and afternoon sessions.
"""

from datetime import time, datetime
from typing import Optional

from sqlalchemy import String, Integer, Boolean, Time, TIMESTAMP, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from clinic_scheduling.core.database import Base
from clinic_scheduling.core.constants import ID_LENGTH, DAY_NAMES, DEFAULT_SLOT_DURATION_MINUTES
from clinic_scheduling.utils.id_utils import new_id


class AvailabilityWindow(Base):
    """
    A recurring weekly interval during which a doctor accepts appointments.

    The model supports:
    - Multiple working periods per day (no unique constraint per day)
    - Per-window slot granularity
    - Deactivation without deletion (is_active)
    """

    __tablename__ = "availability_windows"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True, default=new_id)
    """Unique identifier for the availability record."""

    doctor_id: Mapped[str] = mapped_column(String(ID_LENGTH))
    """Identity of the doctor in the external user store."""

    day_of_week: Mapped[int] = mapped_column(Integer)
    """
    Day of the week (0=Monday, 1=Tuesday, ..., 6=Sunday), the same numbering
    as date.weekday().
    """

    start_time: Mapped[time] = mapped_column(Time)
    """Start time of the working period; the first slot starts here."""

    end_time: Mapped[time] = mapped_column(Time)
    """End time of the working period; no slot may end after it."""

    slot_duration_minutes: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_SLOT_DURATION_MINUTES, nullable=False
    )
    """Length of each slot in minutes."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """Inactive windows produce no slots."""

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint('start_time < end_time', name='check_window_time_range'),
        CheckConstraint('day_of_week BETWEEN 0 AND 6', name='check_window_day_of_week'),
        Index('idx_availability_windows_doctor_day', 'doctor_id', 'day_of_week'),
        Index('idx_availability_windows_doctor_day_time', 'doctor_id', 'day_of_week', 'start_time'),
    )

    @property
    def day_name(self) -> str:
        """Get the day name for display."""
        return DAY_NAMES[self.day_of_week]

    @property
    def duration_minutes(self) -> int:
        """Get the length of this window in minutes."""
        start_minutes = self.start_time.hour * 60 + self.start_time.minute
        end_minutes = self.end_time.hour * 60 + self.end_time.minute
        return end_minutes - start_minutes

    def __repr__(self) -> str:
        return (
            f"<AvailabilityWindow(doctor_id={self.doctor_id}, day={self.day_name}, "
            f"{self.start_time}-{self.end_time}, every {self.slot_duration_minutes}min)>"
        )
