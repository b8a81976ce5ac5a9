"""baseline scheduling schema

Revision ID: 20250601000000
Revises:
Create Date: 2025-06-01 00:00:00.000000

Creates specialties, doctor_specialties, availability_windows and
appointments, including the partial unique index that keeps at most one
active appointment per doctor, date and time.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20250601000000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_STATUS_SQL = "status IN ('pending', 'confirmed')"


def upgrade() -> None:
    op.create_table(
        'specialties',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False, unique=True),
        sa.Column('code', sa.String(20), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('daily_appointment_limit', sa.Integer(), nullable=False, server_default='20'),
        sa.Column('average_consultation_duration', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            'daily_appointment_limit BETWEEN 1 AND 100',
            name='check_specialty_daily_limit_range'
        ),
        sa.CheckConstraint(
            'average_consultation_duration BETWEEN 10 AND 120',
            name='check_specialty_duration_range'
        ),
    )

    op.create_table(
        'doctor_specialties',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('doctor_id', sa.String(36), nullable=False),
        sa.Column('specialty_id', sa.String(36), sa.ForeignKey('specialties.id'), nullable=False),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint('doctor_id', 'specialty_id', name='uq_doctor_specialty'),
    )
    op.create_index('idx_doctor_specialties_specialty', 'doctor_specialties', ['specialty_id'])

    op.create_table(
        'availability_windows',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('doctor_id', sa.String(36), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),  # 0=Monday ... 6=Sunday
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('slot_duration_minutes', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint('start_time < end_time', name='check_window_time_range'),
        sa.CheckConstraint('day_of_week BETWEEN 0 AND 6', name='check_window_day_of_week'),
    )
    op.create_index(
        'idx_availability_windows_doctor_day', 'availability_windows', ['doctor_id', 'day_of_week']
    )
    op.create_index(
        'idx_availability_windows_doctor_day_time',
        'availability_windows',
        ['doctor_id', 'day_of_week', 'start_time']
    )

    op.create_table(
        'appointments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('patient_id', sa.String(36), nullable=False),
        sa.Column('doctor_id', sa.String(36), nullable=False),
        sa.Column('specialty_id', sa.String(36), sa.ForeignKey('specialties.id'), nullable=False),
        sa.Column('appointment_date', sa.Date(), nullable=False),
        sa.Column('appointment_time', sa.Time(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('booked_by', sa.String(36), nullable=False),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_by', sa.String(36), nullable=True),
        sa.Column('cancelled_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name='check_appointment_status'
        ),
    )

    # At most one active appointment per doctor-time pair
    op.create_index(
        'uq_appointments_active_slot',
        'appointments',
        ['doctor_id', 'appointment_date', 'appointment_time'],
        unique=True,
        postgresql_where=sa.text(ACTIVE_STATUS_SQL),
        sqlite_where=sa.text(ACTIVE_STATUS_SQL),
    )
    op.create_index(
        'idx_appointments_specialty_date_status',
        'appointments',
        ['specialty_id', 'appointment_date', 'status']
    )
    op.create_index('idx_appointments_doctor_date', 'appointments', ['doctor_id', 'appointment_date'])
    op.create_index('idx_appointments_patient', 'appointments', ['patient_id'])


def downgrade() -> None:
    op.drop_index('idx_appointments_patient', table_name='appointments')
    op.drop_index('idx_appointments_doctor_date', table_name='appointments')
    op.drop_index('idx_appointments_specialty_date_status', table_name='appointments')
    op.drop_index('uq_appointments_active_slot', table_name='appointments')
    op.drop_table('appointments')

    op.drop_index('idx_availability_windows_doctor_day_time', table_name='availability_windows')
    op.drop_index('idx_availability_windows_doctor_day', table_name='availability_windows')
    op.drop_table('availability_windows')

    op.drop_index('idx_doctor_specialties_specialty', table_name='doctor_specialties')
    op.drop_table('doctor_specialties')

    op.drop_table('specialties')
