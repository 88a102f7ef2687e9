"""initial scheduling schema

Revision ID: 0001
Revises:
Create Date: 2025-05-20 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

APPOINTMENT_STATUS = ('Pending', 'Confirmed', 'Completed', 'Cancelled')
PERSON_TYPE = ('Patient', 'Doctor')
ACTIVE_SLOT_WHERE = sa.text("status IN ('Pending', 'Confirmed')")


def upgrade():
    op.create_table(
        'patients',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('blood_group', sa.String(10), nullable=True),
        sa.Column('dob', sa.Date(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('phone', sa.String(10), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_patients_id', 'patients', ['id'])
    op.create_index('ix_patients_email', 'patients', ['email'], unique=True)
    op.create_index('idx_patients_name', 'patients', ['name'])

    op.create_table(
        'doctors',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(10), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('expertise', sa.String(100), nullable=True),
        sa.Column('experience', sa.Integer(), nullable=True),
        sa.Column('gender', sa.String(10), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_doctors_id', 'doctors', ['id'])
    op.create_index('idx_doctors_expertise', 'doctors', ['expertise'])

    op.create_table(
        'admins',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_admins_id', 'admins', ['id'])
    op.create_index('ix_admins_username', 'admins', ['username'], unique=True)

    op.create_table(
        'appointments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('patient_id', sa.Integer(), sa.ForeignKey('patients.id'), nullable=False),
        sa.Column('doctor_id', sa.Integer(), sa.ForeignKey('doctors.id'), nullable=False),
        sa.Column('specialization', sa.String(100), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time', sa.Time(), nullable=False),
        sa.Column('status', sa.Enum(*APPOINTMENT_STATUS, name='appointment_status'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_appointments_id', 'appointments', ['id'])
    op.create_index('ix_appointments_status', 'appointments', ['status'])
    op.create_index('idx_appointments_doctor_slot', 'appointments', ['doctor_id', 'date', 'time'])
    op.create_index('idx_appointments_patient_date', 'appointments', ['patient_id', 'date'])
    # One Pending/Confirmed booking per (doctor, date, time)
    op.create_index(
        'uq_appointments_active_slot', 'appointments', ['doctor_id', 'date', 'time'],
        unique=True,
        sqlite_where=ACTIVE_SLOT_WHERE,
        postgresql_where=ACTIVE_SLOT_WHERE,
    )

    op.create_table(
        'schedules',
        sa.Column('appointment_id', sa.Integer(), sa.ForeignKey('appointments.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('patient_id', sa.Integer(), sa.ForeignKey('patients.id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table(
        'feedback',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('appointment_id', sa.Integer(), sa.ForeignKey('appointments.id'), nullable=False),
        sa.Column('given_by', sa.Enum(*PERSON_TYPE, name='person_type'), nullable=False),
        sa.Column('given_by_id', sa.Integer(), nullable=False),
        sa.Column('receiver_id', sa.Integer(), nullable=False),
        sa.Column('receiver_type', sa.Enum(*PERSON_TYPE, name='receiver_person_type'), nullable=False),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('appointment_id', 'given_by', 'given_by_id', name='uq_feedback_appointment_giver'),
    )
    op.create_index('ix_feedback_id', 'feedback', ['id'])
    op.create_index('idx_feedback_receiver', 'feedback', ['receiver_type', 'receiver_id'])


def downgrade():
    op.drop_table('feedback')
    op.drop_table('schedules')
    op.drop_index('uq_appointments_active_slot', table_name='appointments')
    op.drop_table('appointments')
    op.drop_table('admins')
    op.drop_table('doctors')
    op.drop_table('patients')
    sa.Enum(name='receiver_person_type').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='person_type').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='appointment_status').drop(op.get_bind(), checkfirst=True)
