"""
Outbound port for appointment domain events.

BookingEngine and LifecycleManager hand every successful state change to an
EventPort after the transaction has committed. The notification subsystem
implements the port; the implementations here cover logging, in-memory
collection and fan-out.
"""

import logging
from typing import Iterable, List, Protocol, runtime_checkable

from clinic_scheduling.shared_types.events import AppointmentEvent, AppointmentEventType

logger = logging.getLogger(__name__)


@runtime_checkable
class EventPort(Protocol):
    """Anything that accepts appointment events."""

    def emit(self, event: AppointmentEvent) -> None:
        ...


class LoggingEventPort:
    """Default port: writes each event to the application log."""

    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logger

    def emit(self, event: AppointmentEvent) -> None:
        self._log.info(
            f"{event.event_type.value}: appointment {event.appointment_id} "
            f"(doctor {event.doctor_id}, patient {event.patient_id}, "
            f"{event.date} {event.time}, status {event.status}) by {event.actor_id}"
        )


class RecordingEventPort:
    """Keeps emitted events in memory, in emission order."""

    def __init__(self) -> None:
        self.events: List[AppointmentEvent] = []

    def emit(self, event: AppointmentEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: AppointmentEventType) -> List[AppointmentEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def clear(self) -> None:
        self.events.clear()


class CompositeEventPort:
    """
    Fans each event out to several ports.

    A failing port is logged and skipped so that the remaining ports still
    receive the event.
    """

    def __init__(self, ports: Iterable[EventPort]):
        self.ports = list(ports)

    def emit(self, event: AppointmentEvent) -> None:
        for port in self.ports:
            try:
                port.emit(event)
            except Exception as e:
                logger.warning(f"Event port {type(port).__name__} failed for {event.event_type.value}: {e}")


def emit_safely(port: EventPort, event: AppointmentEvent) -> None:
    """
    Emit an event after commit without letting delivery problems leak out.

    The state change has already been committed; a notifier failure must not
    turn a successful booking or transition into an error for the caller.
    """
    try:
        port.emit(event)
    except Exception as e:
        # Log but don't fail - event delivery failure shouldn't undo a committed change
        logger.warning(f"Failed to emit {event.event_type.value} for appointment {event.appointment_id}: {e}")
