"""Scheduling constants and configuration values."""

# Database field lengths
MAX_STRING_LENGTH = 255
ID_LENGTH = 36  # UUID text form

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# Appointment statuses
STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

APPOINTMENT_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_COMPLETED, STATUS_CANCELLED)

# Active appointments count toward slot exclusivity and daily capacity
ACTIVE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

# Value stored in Appointment.booked_by when the patient booked for themselves
BOOKED_BY_SELF = "self"

# Specialty reference data ranges
MIN_DAILY_APPOINTMENT_LIMIT = 1
MAX_DAILY_APPOINTMENT_LIMIT = 100
MIN_CONSULTATION_DURATION_MINUTES = 10
MAX_CONSULTATION_DURATION_MINUTES = 120

# Defaults taken when reference data is created without explicit values
DEFAULT_DAILY_APPOINTMENT_LIMIT = 20
DEFAULT_CONSULTATION_DURATION_MINUTES = 30
DEFAULT_SLOT_DURATION_MINUTES = 30

# Day of week follows date.weekday(): 0=Monday, ..., 6=Sunday
DAY_NAMES = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']
