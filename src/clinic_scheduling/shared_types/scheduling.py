"""
Shared types for slot-related functionality.

This module contains shared data classes used across the slot and booking
services to ensure type safety and consistency.
"""

from dataclasses import dataclass
from datetime import time as time_type

from clinic_scheduling.utils.datetime_utils import format_time


@dataclass(frozen=True)
class Slot:
    """
    One candidate time slot for a doctor on a date.

    ``available`` is False when an active appointment already holds the time.
    """
    time: time_type
    available: bool

    def to_dict(self) -> dict[str, str | bool]:
        """Convert to dictionary format."""
        return {
            "time": format_time(self.time),
            "available": self.available,
        }
