# app/schemas.py
import datetime as dt
import re
from datetime import datetime, date, time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, EmailStr, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .models import AppointmentStatus, PersonType

PHONE_PATTERN = re.compile(r"^[0-9]{10}$")


# --- Base Schemas ---
class BaseSchema(BaseModel):
    # camelCase on the wire, snake_case accepted on input too
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, alias_generator=to_camel)


def _check_phone(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return None
    if not PHONE_PATTERN.match(v):
        raise ValueError("Phone must be a 10-digit number")
    return v


def _check_required(v, field_name: str):
    # Omit a field to leave it unchanged; an explicit null would clear a NOT NULL column
    if v is None:
        raise ValueError(f"{field_name} cannot be null")
    return v


# --- Patient Schemas ---
class PatientBase(BaseSchema):
    name: str = Field(..., min_length=2, max_length=255)
    blood_group: Optional[str] = Field(None, max_length=10)
    dob: Optional[date] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return _check_phone(v)

    @field_validator('email', mode='before')
    @classmethod
    def empty_str_to_none(cls, v):
        if v == "":
            return None
        return v


class PatientCreate(PatientBase):
    password: Optional[str] = Field(None, min_length=6)


class PatientRegister(PatientBase):
    email: EmailStr
    password: str = Field(..., min_length=6)


class PatientUpdate(BaseSchema):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    blood_group: Optional[str] = Field(None, max_length=10)
    dob: Optional[date] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)

    @field_validator('name')
    @classmethod
    def name_not_null(cls, v):
        return _check_required(v, "name")

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return _check_phone(v)


class PatientResponse(PatientBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PatientSummary(BaseSchema):
    id: int
    name: str
    blood_group: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


# --- Doctor Schemas ---
class DoctorBase(BaseSchema):
    name: str = Field(..., min_length=2, max_length=255)
    phone: Optional[str] = None
    address: Optional[str] = None
    expertise: str = Field(..., min_length=2, max_length=100)
    experience: Optional[int] = Field(None, ge=0)
    gender: Optional[str] = Field(None, max_length=10)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return _check_phone(v)


class DoctorCreate(DoctorBase):
    pass


class DoctorUpdate(BaseSchema):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    phone: Optional[str] = None
    address: Optional[str] = None
    expertise: Optional[str] = Field(None, min_length=2, max_length=100)
    experience: Optional[int] = Field(None, ge=0)
    gender: Optional[str] = Field(None, max_length=10)

    @field_validator('name', 'expertise')
    @classmethod
    def required_not_null(cls, v, info):
        return _check_required(v, info.field_name)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return _check_phone(v)


class DoctorResponse(DoctorBase):
    id: int
    expertise: Optional[str] = None


class DoctorSummary(BaseSchema):
    id: int
    name: str
    expertise: Optional[str] = None
    phone: Optional[str] = None


class TopRatedDoctor(DoctorResponse):
    avg_rating: float = 0.0
    review_count: int = 0


# --- Appointment Schemas ---
class AppointmentCreate(BaseSchema):
    patient_id: int
    doctor_id: int
    specialization: Optional[str] = Field(None, max_length=100)
    date: date
    time: time
    status: AppointmentStatus = AppointmentStatus.pending


class PatientAppointmentCreate(BaseSchema):
    """Portal booking: the patient is the caller and the status is always Pending."""
    doctor_id: int
    specialization: Optional[str] = Field(None, max_length=100)
    date: date
    time: time


class AppointmentUpdate(BaseSchema):
    patient_id: Optional[int] = None
    doctor_id: Optional[int] = None
    specialization: Optional[str] = Field(None, max_length=100)
    # Module-qualified: the field names shadow the types inside the class body
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None
    status: Optional[AppointmentStatus] = None

    @property
    def is_status_only(self) -> bool:
        return self.model_fields_set == {"status"} and self.status is not None


class AppointmentStatusUpdate(BaseSchema):
    status: AppointmentStatus


class AppointmentResponse(BaseSchema):
    id: int
    patient_id: int
    doctor_id: int
    specialization: Optional[str] = None
    date: date
    time: time
    status: AppointmentStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Nested summaries
    patient: Optional[PatientSummary] = None
    doctor: Optional[DoctorSummary] = None


# --- Feedback Schemas ---
class FeedbackCreate(BaseSchema):
    appointment_id: int
    given_by: PersonType
    given_by_id: int
    receiver_id: int
    receiver_type: PersonType
    # Range is enforced by the feedback gate so that it answers 400, not 422
    rating: int
    comments: Optional[str] = None


class PatientFeedbackCreate(BaseSchema):
    appointment_id: int
    receiver_id: Optional[int] = None
    receiver_type: PersonType = PersonType.doctor
    rating: int
    comments: Optional[str] = None


class FeedbackUpdate(BaseSchema):
    rating: Optional[int] = None
    comments: Optional[str] = None

    @model_validator(mode='after')
    def check_not_empty(self):
        if not self.model_fields_set:
            raise ValueError('No fields to update')
        return self


class FeedbackResponse(BaseSchema):
    id: int
    appointment_id: int
    given_by: PersonType
    given_by_id: int
    receiver_id: int
    receiver_type: PersonType
    comments: Optional[str] = None
    rating: int
    date: Optional[datetime] = None

    appointment: Optional[AppointmentResponse] = None


# --- Admin / Auth Schemas ---
class AdminCreate(BaseSchema):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6)


class AdminResponse(BaseSchema):
    id: int
    username: str


class PrincipalResponse(BaseSchema):
    id: int
    role: str
    username: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: PrincipalResponse


# --- Dashboard Schemas ---
class DashboardStatsResponse(BaseSchema):
    total_patients: int
    total_doctors: int
    today_appointments: int
    upcoming_appointments: int
    average_rating: float


# --- Health Schemas ---
class ScheduleInconsistency(BaseSchema):
    appointment_id: int
    patient_id: Optional[int] = None
    status: Optional[AppointmentStatus] = None
    issue: str


class SlotCollision(BaseSchema):
    doctor_id: int
    date: date
    time: time
    appointment_ids: List[int]


class ConsistencyReport(BaseSchema):
    checked_at: datetime
    confirmed_without_schedule: List[ScheduleInconsistency] = []
    schedule_without_confirmed: List[ScheduleInconsistency] = []
    active_slot_collisions: List[SlotCollision] = []

    @property
    def is_consistent(self) -> bool:
        return not (self.confirmed_without_schedule or self.schedule_without_confirmed or self.active_slot_collisions)


class HealthResponse(BaseSchema):
    status: str
    database: str
    version: str
