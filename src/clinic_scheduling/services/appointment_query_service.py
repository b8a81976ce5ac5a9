"""
Read-only appointment and reference-data listings for patients, doctors and staff.
"""

import logging
from datetime import date as date_type
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from clinic_scheduling.core.constants import APPOINTMENT_STATUSES
from clinic_scheduling.core.exceptions import AppointmentNotFound, ValidationError
from clinic_scheduling.models import Appointment, DoctorSpecialty, Specialty
from clinic_scheduling.utils.datetime_utils import coerce_date

logger = logging.getLogger(__name__)


class AppointmentQueryService:
    """Service class for appointment listings."""

    @staticmethod
    def get_appointment(db: Session, appointment_id: str) -> Appointment:
        """
        Get an appointment by ID.

        Raises:
            AppointmentNotFound: If the appointment does not exist
        """
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if not appointment:
            raise AppointmentNotFound(appointment_id=appointment_id)
        return appointment

    @staticmethod
    def list_for_patient(
        db: Session,
        patient_id: str,
        status: Optional[str] = None,
        upcoming: bool = False,
        today: Optional[date_type] = None
    ) -> List[Appointment]:
        """
        List a patient's appointments, newest first.

        Args:
            db: Database session
            patient_id: Patient identity
            status: Optional status filter
            upcoming: Only appointments dated today or later
            today: Reference date for upcoming (defaults to date.today())

        Returns:
            Appointments ordered by date and time descending
        """
        query = db.query(Appointment).filter(Appointment.patient_id == patient_id)
        if status is not None:
            query = query.filter(Appointment.status == AppointmentQueryService._check_status(status))
        if upcoming:
            query = query.filter(Appointment.appointment_date >= (today or date_type.today()))

        return query.order_by(
            Appointment.appointment_date.desc(),
            Appointment.appointment_time.desc()
        ).all()

    @staticmethod
    def list_for_doctor(
        db: Session,
        doctor_id: str,
        target_date: Optional[Union[date_type, str]] = None,
        status: Optional[str] = None
    ) -> List[Appointment]:
        """List a doctor's appointments in chronological order, optionally for one date and status."""
        query = db.query(Appointment).filter(Appointment.doctor_id == doctor_id)
        return AppointmentQueryService._chronological(query, target_date, status)

    @staticmethod
    def list_all(
        db: Session,
        target_date: Optional[Union[date_type, str]] = None,
        status: Optional[str] = None,
        doctor_id: Optional[str] = None
    ) -> List[Appointment]:
        """
        List appointments across all doctors for staff, in chronological order.

        Args:
            db: Database session
            target_date: Optional date filter
            status: Optional status filter
            doctor_id: Optional doctor filter
        """
        query = db.query(Appointment)
        if doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)
        return AppointmentQueryService._chronological(query, target_date, status)

    @staticmethod
    def doctors_for_specialty(db: Session, specialty_id: str) -> List[str]:
        """
        Get the IDs of doctors practising a specialty.

        Returns:
            Doctor IDs, primary practitioners first
        """
        rows = db.query(DoctorSpecialty.doctor_id).filter(
            DoctorSpecialty.specialty_id == specialty_id
        ).order_by(DoctorSpecialty.is_primary.desc(), DoctorSpecialty.doctor_id).all()
        return [row.doctor_id for row in rows]

    @staticmethod
    def active_specialties(db: Session) -> List[Specialty]:
        """Get bookable specialties ordered by name."""
        return db.query(Specialty).filter(
            Specialty.is_active == True
        ).order_by(Specialty.name).all()

    @staticmethod
    def _chronological(query, target_date, status):
        if target_date is not None:
            try:
                query = query.filter(Appointment.appointment_date == coerce_date(target_date))
            except ValueError as e:
                raise ValidationError(str(e), field="target_date")
        if status is not None:
            query = query.filter(Appointment.status == AppointmentQueryService._check_status(status))
        return query.order_by(
            Appointment.appointment_date,
            Appointment.appointment_time
        ).all()

    @staticmethod
    def _check_status(status: str) -> str:
        if status not in APPOINTMENT_STATUSES:
            raise ValidationError(f"Unknown appointment status: {status}", field="status")
        return status
