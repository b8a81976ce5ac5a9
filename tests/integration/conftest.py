"""
Shared reference data for integration tests.
"""

from datetime import time

import pytest

from clinic_scheduling.models import Specialty
from tests.factories import create_specialty, add_doctor, add_window, DOCTOR_ID


@pytest.fixture
def cardio(db_session) -> Specialty:
    """
    Cardiology with doctor-1 working Mondays 09:00-12:00 in 30-minute slots.

    Daily limit 5, consultations of 45 minutes.
    """
    specialty = create_specialty(
        db_session,
        code="CARDIO",
        name="Cardiology",
        daily_appointment_limit=5,
        average_consultation_duration=45,
    )
    add_doctor(db_session, specialty, DOCTOR_ID, is_primary=True)
    add_window(db_session, DOCTOR_ID, 0, time(9, 0), time(12, 0), slot_duration_minutes=30)
    return specialty
