"""
Doctor-specialty association.

Records which doctors practise which specialty. Doctor identities live in the
external user store; this table is the scheduling engine's only view of
whether a doctor id is bookable under a specialty.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Boolean, ForeignKey, TIMESTAMP, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_scheduling.core.database import Base
from clinic_scheduling.core.constants import ID_LENGTH
from clinic_scheduling.utils.id_utils import new_id


class DoctorSpecialty(Base):
    """A doctor practising a specialty."""

    __tablename__ = "doctor_specialties"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True, default=new_id)

    doctor_id: Mapped[str] = mapped_column(String(ID_LENGTH))
    """Identity of the doctor in the external user store."""

    specialty_id: Mapped[str] = mapped_column(ForeignKey("specialties.id"))

    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    """Whether this is the doctor's main specialty."""

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    specialty = relationship("Specialty", back_populates="doctors")

    __table_args__ = (
        UniqueConstraint('doctor_id', 'specialty_id', name='uq_doctor_specialty'),
        Index('idx_doctor_specialties_specialty', 'specialty_id'),
    )

    def __repr__(self) -> str:
        return f"<DoctorSpecialty(doctor_id={self.doctor_id}, specialty_id={self.specialty_id})>"
