"""
Daily capacity per specialty.

The checks here are point-in-time reads. They are only authoritative when
run inside the booking transaction, after the specialty row lock has been
taken (see BookingEngine); on their own they are suitable for display only.
"""

import logging
from datetime import date as date_type
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic_scheduling.core.constants import ACTIVE_STATUSES
from clinic_scheduling.models import Appointment, Specialty

logger = logging.getLogger(__name__)


class CapacityGuard:
    """Service class for specialty/day capacity checks."""

    @staticmethod
    def active_count(
        db: Session,
        specialty_id: str,
        target_date: date_type,
        exclude_appointment_id: Optional[str] = None
    ) -> int:
        """
        Count pending and confirmed appointments for a specialty on a date.

        Args:
            db: Database session
            specialty_id: Specialty ID
            target_date: Calendar date
            exclude_appointment_id: Appointment to leave out of the count
                (the one being rescheduled)

        Returns:
            Number of active appointments
        """
        query = db.query(func.count(Appointment.id)).filter(
            Appointment.specialty_id == specialty_id,
            Appointment.appointment_date == target_date,
            Appointment.status.in_(ACTIVE_STATUSES)
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)
        return query.scalar() or 0

    @staticmethod
    def has_capacity(
        db: Session,
        specialty: Specialty,
        target_date: date_type,
        exclude_appointment_id: Optional[str] = None
    ) -> bool:
        """
        Check if one more active appointment fits the specialty's daily limit.

        Args:
            db: Database session
            specialty: Specialty with its daily_appointment_limit
            target_date: Calendar date
            exclude_appointment_id: Appointment to leave out of the count

        Returns:
            True if active_count < daily_appointment_limit
        """
        count = CapacityGuard.active_count(db, specialty.id, target_date, exclude_appointment_id)
        return count < specialty.daily_appointment_limit

    @staticmethod
    def remaining_capacity(db: Session, specialty: Specialty, target_date: date_type) -> int:
        """Number of further active appointments the specialty accepts on a date."""
        count = CapacityGuard.active_count(db, specialty.id, target_date)
        return max(specialty.daily_appointment_limit - count, 0)
