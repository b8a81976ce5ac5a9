"""
Services package for scheduling business logic.

This package contains the service classes that read availability, generate
slots, enforce capacity, book appointments and drive their lifecycle.
"""

from .availability_catalog import AvailabilityCatalog
from .slot_service import SlotGenerator
from .capacity_service import CapacityGuard
from .booking_service import BookingEngine
from .lifecycle_service import LifecycleManager
from .appointment_query_service import AppointmentQueryService
from .event_port import EventPort, LoggingEventPort, RecordingEventPort, CompositeEventPort

__all__ = [
    "AvailabilityCatalog",
    "SlotGenerator",
    "CapacityGuard",
    "BookingEngine",
    "LifecycleManager",
    "AppointmentQueryService",
    "EventPort",
    "LoggingEventPort",
    "RecordingEventPort",
    "CompositeEventPort",
]
