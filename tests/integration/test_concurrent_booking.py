"""
Concurrency tests: competing bookings and transitions from separate sessions.

Each worker thread uses its own session (and so its own connection), the way
independent requests would. The reference data is committed by the test's
own session first, which then stays idle while the workers run.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import time
from threading import Barrier
from typing import Callable, List

from clinic_scheduling.core.exceptions import SchedulingError, SlotConflict, CapacityExceeded, InvalidTransition
from clinic_scheduling.models import Appointment
from clinic_scheduling.services.appointment_query_service import AppointmentQueryService
from clinic_scheduling.services.booking_service import BookingEngine
from clinic_scheduling.services.capacity_service import CapacityGuard
from clinic_scheduling.services.lifecycle_service import LifecycleManager
from clinic_scheduling.services.event_port import RecordingEventPort
from clinic_scheduling.services.slot_service import SlotGenerator
from clinic_scheduling.shared_types.actor import Actor, Role
from tests.factories import create_specialty, add_doctor, add_window, MONDAY, DOCTOR_ID, ASSISTANT, ADMIN


def run_concurrently(session_factory, tasks: List[Callable]) -> List[object]:
    """
    Run each task in its own thread with its own session, released together.

    Returns each task's result, or the SchedulingError it raised.
    """
    barrier = Barrier(len(tasks))

    def worker(task):
        session = session_factory()
        try:
            barrier.wait()
            return task(session)
        except SchedulingError as e:
            return e
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=len(tasks)) as pool:
        return list(pool.map(worker, tasks))


def _booking(engine: BookingEngine, patient_id: str, specialty_id: str, slot_time: time) -> Callable:
    actor = Actor(patient_id, Role.PATIENT)
    return lambda session: engine.book(session, actor, patient_id, DOCTOR_ID, specialty_id, MONDAY, slot_time)


def _active_count(db_session) -> int:
    db_session.expire_all()
    return db_session.query(Appointment).filter(Appointment.status.in_(("pending", "confirmed"))).count()


class TestConcurrentBooking:
    """Test that competing bookings never break exclusivity or capacity."""

    def test_same_slot_has_exactly_one_winner(self, db_session, session_factory):
        specialty = create_specialty(db_session, code="CARDIO", daily_appointment_limit=20)
        add_doctor(db_session, specialty, DOCTOR_ID)
        add_window(db_session, DOCTOR_ID, 0, time(9, 0), time(12, 0))
        specialty_id = specialty.id
        db_session.commit()

        port = RecordingEventPort()
        engine = BookingEngine(event_port=port)
        tasks = [_booking(engine, f"patient-{i}", specialty_id, time(9, 0)) for i in range(6)]

        results = run_concurrently(session_factory, tasks)

        winners = [r for r in results if isinstance(r, Appointment)]
        losers = [r for r in results if isinstance(r, SchedulingError)]
        assert len(winners) == 1
        assert len(losers) == 5
        assert all(isinstance(e, SlotConflict) for e in losers)
        assert _active_count(db_session) == 1
        assert len(port.events) == 1

    def test_capacity_is_never_exceeded(self, db_session, session_factory):
        specialty = create_specialty(db_session, code="CARDIO", daily_appointment_limit=3)
        add_doctor(db_session, specialty, DOCTOR_ID)
        add_window(db_session, DOCTOR_ID, 0, time(9, 0), time(12, 0))
        specialty_id = specialty.id
        db_session.commit()

        engine = BookingEngine(event_port=RecordingEventPort())
        slot_times = [time(9, 0), time(9, 30), time(10, 0), time(10, 30), time(11, 0), time(11, 30)]
        tasks = [_booking(engine, f"patient-{i}", specialty_id, t) for i, t in enumerate(slot_times)]

        results = run_concurrently(session_factory, tasks)

        assert sum(isinstance(r, Appointment) for r in results) == 3
        assert sum(isinstance(r, CapacityExceeded) for r in results) == 3
        assert _active_count(db_session) == 3


class TestConcurrentTransitions:
    def test_double_confirm_applies_once(self, db_session, session_factory):
        specialty = create_specialty(db_session, code="CARDIO")
        add_doctor(db_session, specialty, DOCTOR_ID)
        add_window(db_session, DOCTOR_ID, 0, time(9, 0), time(12, 0))
        patient = Actor("patient-1", Role.PATIENT)
        appointment = BookingEngine(event_port=RecordingEventPort()).book(
            db_session, patient, "patient-1", DOCTOR_ID, specialty.id, MONDAY, time(9, 0)
        )
        appointment_id = appointment.id
        db_session.commit()

        port = RecordingEventPort()
        manager = LifecycleManager(event_port=port)
        results = run_concurrently(session_factory, [
            lambda session: manager.confirm(session, ASSISTANT, appointment_id),
            lambda session: manager.confirm(session, ADMIN, appointment_id),
        ])

        assert sum(isinstance(r, Appointment) for r in results) == 1
        assert sum(isinstance(r, InvalidTransition) for r in results) == 1
        assert len(port.events) == 1

    def test_cancel_racing_complete_ends_in_one_terminal_state(self, db_session, session_factory):
        specialty = create_specialty(db_session, code="CARDIO")
        add_doctor(db_session, specialty, DOCTOR_ID)
        add_window(db_session, DOCTOR_ID, 0, time(9, 0), time(12, 0))
        appointment = BookingEngine(event_port=RecordingEventPort()).book(
            db_session, ASSISTANT, "patient-1", DOCTOR_ID, specialty.id, MONDAY, time(9, 0)
        )
        appointment_id = appointment.id
        db_session.commit()

        doctor = Actor(DOCTOR_ID, Role.DOCTOR)
        manager = LifecycleManager(event_port=RecordingEventPort())
        results = run_concurrently(session_factory, [
            lambda session: manager.cancel(session, ADMIN, appointment_id, reason="Clinic closed"),
            lambda session: manager.complete(session, doctor, appointment_id),
        ])

        winners = [r for r in results if isinstance(r, Appointment)]
        assert len(winners) == 1
        assert sum(isinstance(r, InvalidTransition) for r in results) == 1

        db_session.expire_all()
        stored = db_session.get(Appointment, appointment_id)
        assert stored.status == winners[0].status


class TestReadersDoNotBlockWriters:
    """An idle session that has only read must not hold up bookings or transitions."""

    def _seed(self, db_session) -> str:
        specialty = create_specialty(db_session, code="CARDIO")
        add_doctor(db_session, specialty, DOCTOR_ID)
        add_window(db_session, DOCTOR_ID, 0, time(9, 0), time(12, 0))
        specialty_id = specialty.id
        db_session.commit()
        return specialty_id

    def test_booking_while_slot_listing_stays_open(self, db_session, session_factory):
        specialty_id = self._seed(db_session)

        reader = session_factory()
        writer = session_factory()
        try:
            slots = SlotGenerator.generate_slots(reader, DOCTOR_ID, MONDAY)
            assert all(slot.available for slot in slots)
            assert reader.in_transaction()

            appointment = BookingEngine(event_port=RecordingEventPort()).book(
                writer, ASSISTANT, "patient-1", DOCTOR_ID, specialty_id, MONDAY, time(9, 30)
            )
            assert appointment.status == "confirmed"
        finally:
            reader.close()
            writer.close()

        assert _active_count(db_session) == 1

    def test_transition_while_listing_stays_open(self, db_session, session_factory):
        specialty_id = self._seed(db_session)
        appointment = BookingEngine(event_port=RecordingEventPort()).book(
            db_session, Actor("patient-1", Role.PATIENT), "patient-1", DOCTOR_ID, specialty_id, MONDAY, time(9, 0)
        )
        appointment_id = appointment.id
        db_session.commit()

        reader = session_factory()
        writer = session_factory()
        try:
            assert len(AppointmentQueryService.list_for_doctor(reader, DOCTOR_ID)) == 1
            assert CapacityGuard.active_count(reader, specialty_id, MONDAY) == 1

            confirmed = LifecycleManager(event_port=RecordingEventPort()).confirm(writer, ADMIN, appointment_id)
            assert confirmed.status == "confirmed"
        finally:
            reader.close()
            writer.close()
