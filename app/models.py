# app/models.py
import enum

from sqlalchemy import (
    Column, Integer, String, DateTime, Time, ForeignKey, Text, Date,
    Enum as SQLAlchemyEnum, Index, UniqueConstraint, text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class AppointmentStatus(str, enum.Enum):
    pending = "Pending"
    confirmed = "Confirmed"
    completed = "Completed"
    cancelled = "Cancelled"

    @property
    def is_active(self) -> bool:
        """Active appointments occupy their (doctor, date, time) slot."""
        return self in ACTIVE_STATUSES


ACTIVE_STATUSES = (AppointmentStatus.pending, AppointmentStatus.confirmed)


class PersonType(str, enum.Enum):
    patient = "Patient"
    doctor = "Doctor"


def _enum_values(enum_cls):
    # Persist the display values ("Pending"), not the member names
    return [member.value for member in enum_cls]


_ACTIVE_SLOT_WHERE = text("status IN ('Pending', 'Confirmed')")


class Patient(Base):
    __tablename__ = "patients"
    __table_args__ = (
        Index('idx_patients_name', 'name'),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    blood_group = Column(String(10), nullable=True)
    dob = Column(Date, nullable=True)
    address = Column(Text, nullable=True)
    phone = Column(String(10), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=True)
    password_hash = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # No delete cascade: a patient with appointments cannot be removed
    appointments = relationship("Appointment", back_populates="patient")
    schedules = relationship("Schedule", back_populates="patient")


class Doctor(Base):
    __tablename__ = "doctors"
    __table_args__ = (
        Index('idx_doctors_expertise', 'expertise'),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(10), nullable=True)
    address = Column(Text, nullable=True)
    expertise = Column(String(100), nullable=True)
    experience = Column(Integer, nullable=True)
    gender = Column(String(10), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    appointments = relationship("Appointment", back_populates="doctor")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index('idx_appointments_doctor_slot', 'doctor_id', 'date', 'time'),
        Index('idx_appointments_patient_date', 'patient_id', 'date'),
        # Active-slot invariant: one Pending/Confirmed booking per (doctor, date, time)
        Index(
            'uq_appointments_active_slot', 'doctor_id', 'date', 'time',
            unique=True,
            sqlite_where=_ACTIVE_SLOT_WHERE,
            postgresql_where=_ACTIVE_SLOT_WHERE,
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    # Snapshot of the doctor's expertise at booking time
    specialization = Column(String(100), nullable=True)
    date = Column(Date, nullable=False)
    time = Column(Time, nullable=False)
    status = Column(
        SQLAlchemyEnum(AppointmentStatus, name='appointment_status', values_callable=_enum_values),
        default=AppointmentStatus.pending,
        nullable=False,
        index=True,
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")
    schedules = relationship("Schedule", back_populates="appointment")
    feedback = relationship("Feedback", back_populates="appointment")


class Schedule(Base):
    """Projection row linking a Confirmed appointment to its patient."""
    __tablename__ = "schedules"

    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="CASCADE"), primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), primary_key=True)

    appointment = relationship("Appointment", back_populates="schedules")
    patient = relationship("Patient", back_populates="schedules")


class Feedback(Base):
    __tablename__ = "feedback"
    __table_args__ = (
        UniqueConstraint('appointment_id', 'given_by', 'given_by_id', name='uq_feedback_appointment_giver'),
        Index('idx_feedback_receiver', 'receiver_type', 'receiver_id'),
    )

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False)
    given_by = Column(SQLAlchemyEnum(PersonType, name='person_type', values_callable=_enum_values), nullable=False)
    given_by_id = Column(Integer, nullable=False)
    receiver_id = Column(Integer, nullable=False)
    receiver_type = Column(SQLAlchemyEnum(PersonType, name='receiver_person_type', values_callable=_enum_values), nullable=False)
    comments = Column(Text, nullable=True)
    rating = Column(Integer, nullable=False)
    date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    appointment = relationship("Appointment", back_populates="feedback")


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
