"""
Slot generation from recurring availability windows.

Turns a doctor's weekly availability into the concrete, ordered list of slot
start times for one calendar date, and marks the times already held by
active appointments. The same slot arithmetic decides whether a requested
booking time is "offered", so suggested slots and the booking-time check
can never disagree about the grid.
"""

import logging
from datetime import date as date_type, time
from typing import List, Optional, Sequence, Set, Union

from sqlalchemy.orm import Session

from clinic_scheduling.core.constants import ACTIVE_STATUSES
from clinic_scheduling.core.exceptions import ValidationError
from clinic_scheduling.models import Appointment, AvailabilityWindow
from clinic_scheduling.services.availability_catalog import AvailabilityCatalog
from clinic_scheduling.shared_types.scheduling import Slot
from clinic_scheduling.utils.datetime_utils import coerce_date, time_to_seconds, seconds_to_time

logger = logging.getLogger(__name__)


class SlotGenerator:
    """
    Service class for slot generation.

    All methods are read-only; generate_slots performs the reads it needs and
    nothing else.
    """

    @staticmethod
    def generate_slots(
        db: Session,
        doctor_id: str,
        target_date: Union[date_type, str]
    ) -> List[Slot]:
        """
        Generate the ordered slots for a doctor on a date.

        Algorithm:
        1. Resolve day_of_week from the date (0=Monday).
        2. Walk each active window from start_time in slot_duration steps,
           dropping a trailing partial slot.
        3. Merge duplicate times from overlapping windows.
        4. Mark a time unavailable when an active appointment holds it.

        Args:
            db: Database session
            doctor_id: Doctor identity
            target_date: Calendar date (date or YYYY-MM-DD string)

        Returns:
            Slots sorted ascending by time; empty when the doctor has no
            windows that day

        Raises:
            ValidationError: If target_date is malformed
        """
        try:
            requested_date = coerce_date(target_date)
        except ValueError as e:
            raise ValidationError(str(e), field="target_date")

        windows = AvailabilityCatalog.windows_for(db, doctor_id, requested_date.weekday())
        if not windows:
            return []

        occupied = SlotGenerator.occupied_times(db, doctor_id, requested_date)
        return [
            Slot(time=slot_time, available=slot_time not in occupied)
            for slot_time in SlotGenerator.candidate_times(windows)
        ]

    @staticmethod
    def candidate_times(windows: Sequence[AvailabilityWindow]) -> List[time]:
        """
        Collect the distinct slot start times of several windows.

        Pure function - no database queries.

        Args:
            windows: Availability windows for one doctor and day

        Returns:
            Distinct start times sorted ascending
        """
        times: Set[time] = set()
        for window in windows:
            times.update(SlotGenerator._window_slot_times(window))
        return sorted(times)

    @staticmethod
    def is_slot_offered(windows: Sequence[AvailabilityWindow], slot_time: time) -> bool:
        """
        Check if a time is a slot boundary of at least one window.

        Pure function - no database queries. Equivalent to
        ``slot_time in candidate_times(windows)`` without building the list.

        Args:
            windows: Availability windows for one doctor and day
            slot_time: Requested start time

        Returns:
            True if some window emits a slot starting exactly at slot_time
        """
        requested = time_to_seconds(slot_time)
        if slot_time.microsecond:
            return False
        for window in windows:
            step = SlotGenerator._step_seconds(window)
            if step is None:
                continue
            start = time_to_seconds(window.start_time)
            end = time_to_seconds(window.end_time)
            if start <= requested and requested + step <= end and (requested - start) % step == 0:
                return True
        return False

    @staticmethod
    def occupied_times(
        db: Session,
        doctor_id: str,
        target_date: date_type,
        exclude_appointment_id: Optional[str] = None
    ) -> Set[time]:
        """
        Get the start times held by active appointments for a doctor on a date.

        Args:
            db: Database session
            doctor_id: Doctor identity
            target_date: Calendar date
            exclude_appointment_id: Appointment to ignore (the one being rescheduled)

        Returns:
            Set of occupied start times
        """
        query = db.query(Appointment.appointment_time).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date == target_date,
            Appointment.status.in_(ACTIVE_STATUSES)
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)
        return {row.appointment_time for row in query.all()}

    @staticmethod
    def _step_seconds(window: AvailabilityWindow) -> Optional[int]:
        """Slot length in seconds, or None for windows that yield no slots."""
        # is_active is None on windows not yet flushed; only an explicit False disables
        if window.is_active is False:
            return None
        if window.slot_duration_minutes is None or window.slot_duration_minutes <= 0:
            logger.warning(
                f"Ignoring availability window {window.id} for doctor {window.doctor_id}: "
                f"invalid slot duration {window.slot_duration_minutes}"
            )
            return None
        return window.slot_duration_minutes * 60

    @staticmethod
    def _window_slot_times(window: AvailabilityWindow) -> List[time]:
        """
        Generate the slot start times of one window.

        The last slot must end no later than the window's end_time; a
        trailing remainder shorter than one slot is dropped.
        """
        step = SlotGenerator._step_seconds(window)
        if step is None:
            return []

        start = time_to_seconds(window.start_time)
        end = time_to_seconds(window.end_time)

        slot_times: List[time] = []
        current = start
        while current + step <= end:
            slot_times.append(seconds_to_time(current))
            current += step
        return slot_times
