"""
Availability catalog: read-only access to doctors' recurring weekly windows.
"""

import logging
from typing import Dict, List

from sqlalchemy.orm import Session

from clinic_scheduling.models import AvailabilityWindow

logger = logging.getLogger(__name__)


class AvailabilityCatalog:
    """
    Service class for reading availability windows.

    Availability windows are reference data maintained elsewhere; this class
    never writes them.
    """

    @staticmethod
    def windows_for(
        db: Session,
        doctor_id: str,
        day_of_week: int
    ) -> List[AvailabilityWindow]:
        """
        Get a doctor's active availability windows for one day of the week.

        Args:
            db: Database session
            doctor_id: Doctor identity
            day_of_week: 0=Monday ... 6=Sunday

        Returns:
            Active windows ordered by start time; empty if the doctor does not
            work that day
        """
        return db.query(AvailabilityWindow).filter(
            AvailabilityWindow.doctor_id == doctor_id,
            AvailabilityWindow.day_of_week == day_of_week,
            AvailabilityWindow.is_active == True
        ).order_by(AvailabilityWindow.start_time, AvailabilityWindow.end_time).all()

    @staticmethod
    def weekly_schedule(
        db: Session,
        doctor_id: str
    ) -> Dict[int, List[AvailabilityWindow]]:
        """
        Get a doctor's full active weekly schedule grouped by day of week.

        Args:
            db: Database session
            doctor_id: Doctor identity

        Returns:
            Dict mapping day_of_week to that day's windows (ordered by start
            time); days without windows are omitted
        """
        windows = db.query(AvailabilityWindow).filter(
            AvailabilityWindow.doctor_id == doctor_id,
            AvailabilityWindow.is_active == True
        ).order_by(AvailabilityWindow.day_of_week, AvailabilityWindow.start_time).all()

        schedule: Dict[int, List[AvailabilityWindow]] = {}
        for window in windows:
            if window.day_of_week not in schedule:
                schedule[window.day_of_week] = []
            schedule[window.day_of_week].append(window)
        return schedule
