"""
Integration tests for LifecycleManager confirm, cancel and complete.
"""

import pytest
from datetime import time

from sqlalchemy.exc import OperationalError

from clinic_scheduling.core.exceptions import AppointmentNotFound, Forbidden, InvalidTransition
from clinic_scheduling.models import Appointment
from clinic_scheduling.services.lifecycle_service import LifecycleManager
from clinic_scheduling.shared_types.events import AppointmentEventType
from tests.factories import (
    MONDAY, DOCTOR_ID, PATIENT_ID, PATIENT, OTHER_PATIENT, DOCTOR, OTHER_DOCTOR, ASSISTANT, ADMIN,
)


@pytest.fixture
def pending(db_session, cardio, booking_engine, event_port) -> Appointment:
    appointment = booking_engine.book(db_session, PATIENT, PATIENT_ID, DOCTOR_ID, cardio.id, MONDAY, time(9, 0))
    event_port.clear()
    return appointment


@pytest.fixture
def confirmed(db_session, cardio, booking_engine, event_port) -> Appointment:
    appointment = booking_engine.book(db_session, ASSISTANT, PATIENT_ID, DOCTOR_ID, cardio.id, MONDAY, time(10, 0))
    event_port.clear()
    return appointment


def _reload(db_session, appointment_id: str) -> Appointment:
    db_session.expire_all()
    return db_session.get(Appointment, appointment_id)


class TestConfirm:
    """Test pending -> confirmed."""

    def test_assistant_confirms(self, db_session, lifecycle, pending, event_port):
        result = lifecycle.confirm(db_session, ASSISTANT, pending.id)

        assert result.status == "confirmed"
        assert _reload(db_session, pending.id).status == "confirmed"

        event = event_port.events[-1]
        assert event.event_type == AppointmentEventType.CONFIRMED
        assert event.previous_status == "pending"
        assert event.actor_id == ASSISTANT.actor_id

    def test_own_doctor_confirms(self, db_session, lifecycle, pending):
        assert lifecycle.confirm(db_session, DOCTOR, pending.id).status == "confirmed"

    def test_other_doctor_cannot_confirm(self, db_session, lifecycle, pending):
        with pytest.raises(Forbidden):
            lifecycle.confirm(db_session, OTHER_DOCTOR, pending.id)
        assert _reload(db_session, pending.id).status == "pending"

    def test_patient_cannot_confirm(self, db_session, lifecycle, pending):
        with pytest.raises(Forbidden):
            lifecycle.confirm(db_session, PATIENT, pending.id)

    def test_confirming_confirmed_is_invalid(self, db_session, lifecycle, confirmed, event_port):
        with pytest.raises(InvalidTransition) as exc_info:
            lifecycle.confirm(db_session, ASSISTANT, confirmed.id)

        assert exc_info.value.details["current_status"] == "confirmed"
        assert event_port.events == []

    def test_unknown_appointment(self, db_session, lifecycle):
        with pytest.raises(AppointmentNotFound):
            lifecycle.confirm(db_session, ADMIN, "missing")


class TestCancel:
    """Test pending/confirmed -> cancelled."""

    def test_patient_cancels_own_appointment(self, db_session, lifecycle, pending, event_port):
        result = lifecycle.cancel(db_session, PATIENT, pending.id, reason="Feeling better")

        assert result.status == "cancelled"
        stored = _reload(db_session, pending.id)
        assert stored.cancellation_reason == "Feeling better"
        assert stored.cancelled_by == PATIENT_ID
        assert stored.cancelled_at is not None

        event = event_port.events[-1]
        assert event.event_type == AppointmentEventType.CANCELLED
        assert event.reason == "Feeling better"

    def test_staff_cancels_confirmed(self, db_session, lifecycle, confirmed):
        result = lifecycle.cancel(db_session, ADMIN, confirmed.id)
        assert result.status == "cancelled"
        assert result.cancelled_by == ADMIN.actor_id
        assert result.cancellation_reason is None

    def test_doctor_cancels(self, db_session, lifecycle, confirmed):
        assert lifecycle.cancel(db_session, DOCTOR, confirmed.id, reason="Doctor ill").status == "cancelled"

    def test_other_patient_cannot_cancel(self, db_session, lifecycle, pending):
        with pytest.raises(Forbidden):
            lifecycle.cancel(db_session, OTHER_PATIENT, pending.id)
        stored = _reload(db_session, pending.id)
        assert stored.status == "pending"
        assert stored.cancelled_by is None

    def test_cancelled_is_terminal(self, db_session, lifecycle, pending):
        lifecycle.cancel(db_session, PATIENT, pending.id, reason="First")

        with pytest.raises(InvalidTransition):
            lifecycle.cancel(db_session, ADMIN, pending.id, reason="Second")
        with pytest.raises(InvalidTransition):
            lifecycle.confirm(db_session, ADMIN, pending.id)

        stored = _reload(db_session, pending.id)
        assert stored.cancellation_reason == "First"
        assert stored.cancelled_by == PATIENT_ID

    def test_standing_is_checked_before_status(self, db_session, lifecycle, pending):
        """An actor without standing learns nothing about the appointment's status."""
        lifecycle.cancel(db_session, PATIENT, pending.id)
        with pytest.raises(Forbidden):
            lifecycle.cancel(db_session, OTHER_PATIENT, pending.id)


class TestComplete:
    """Test confirmed -> completed."""

    def test_doctor_completes_with_notes(self, db_session, lifecycle, confirmed, event_port):
        result = lifecycle.complete(db_session, DOCTOR, confirmed.id, notes="BP normal")

        assert result.status == "completed"
        assert _reload(db_session, confirmed.id).notes == "BP normal"
        assert event_port.events[-1].event_type == AppointmentEventType.COMPLETED
        assert event_port.events[-1].previous_status == "confirmed"

    def test_complete_without_notes_keeps_existing(self, db_session, lifecycle, booking_engine, cardio):
        appointment = booking_engine.book(
            db_session, ASSISTANT, PATIENT_ID, DOCTOR_ID, cardio.id, MONDAY, time(11, 0), notes="Bring ECG"
        )
        lifecycle.complete(db_session, DOCTOR, appointment.id)
        assert _reload(db_session, appointment.id).notes == "Bring ECG"

    def test_pending_cannot_be_completed(self, db_session, lifecycle, pending):
        with pytest.raises(InvalidTransition):
            lifecycle.complete(db_session, DOCTOR, pending.id)

    @pytest.mark.parametrize("actor", [ASSISTANT, ADMIN, PATIENT, OTHER_DOCTOR])
    def test_only_own_doctor_completes(self, db_session, lifecycle, confirmed, actor):
        with pytest.raises(Forbidden):
            lifecycle.complete(db_session, actor, confirmed.id)
        assert _reload(db_session, confirmed.id).status == "confirmed"

    def test_completed_is_terminal(self, db_session, lifecycle, confirmed):
        lifecycle.complete(db_session, DOCTOR, confirmed.id)

        with pytest.raises(InvalidTransition):
            lifecycle.cancel(db_session, DOCTOR, confirmed.id)
        with pytest.raises(InvalidTransition):
            lifecycle.reschedule(db_session, PATIENT, confirmed.id, MONDAY, time(11, 30))
        assert _reload(db_session, confirmed.id).status == "completed"

    def test_storage_failure_is_logged(self, db_session, lifecycle, confirmed, monkeypatch, caplog):
        def lose_connection(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("server closed the connection unexpectedly"))

        monkeypatch.setattr(LifecycleManager, "_lock_appointment", staticmethod(lose_connection))

        with caplog.at_level("ERROR"):
            with pytest.raises(OperationalError):
                lifecycle.complete(db_session, DOCTOR, confirmed.id)

        assert f"Failed to complete appointment {confirmed.id}" in caplog.text
        assert _reload(db_session, confirmed.id).status == "confirmed"


def test_full_lifecycle_event_sequence(db_session, cardio, booking_engine, lifecycle, event_port):
    appointment = booking_engine.book(db_session, PATIENT, PATIENT_ID, DOCTOR_ID, cardio.id, MONDAY, time(9, 30))
    lifecycle.confirm(db_session, DOCTOR, appointment.id)
    lifecycle.complete(db_session, DOCTOR, appointment.id, notes="Done")

    assert [e.event_type for e in event_port.events] == [
        AppointmentEventType.CREATED,
        AppointmentEventType.CONFIRMED,
        AppointmentEventType.COMPLETED,
    ]
