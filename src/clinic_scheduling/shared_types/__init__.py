"""
Shared types for the scheduling engine.

This module contains shared data classes and types used across services
to ensure type safety and consistency.
"""

from .actor import Actor, Role, RoleCapabilities, ROLE_CAPABILITIES
from .scheduling import Slot
from .events import AppointmentEvent, AppointmentEventType

__all__ = [
    "Actor",
    "Role",
    "RoleCapabilities",
    "ROLE_CAPABILITIES",
    "Slot",
    "AppointmentEvent",
    "AppointmentEventType",
]
