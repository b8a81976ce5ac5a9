# Package initialization
# Import all models to ensure relationships are properly established
from .specialty import Specialty
from .doctor_specialty import DoctorSpecialty
from .availability_window import AvailabilityWindow
from .appointment import Appointment

__all__ = [
    "Specialty",
    "DoctorSpecialty",
    "AvailabilityWindow",
    "Appointment",
]
