# app/routers/patient_portal.py
# Self-service routes for logged-in patients. Everything is scoped to the caller.
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..database import get_db
from ..errors import Forbidden, NotFound
from ..limiter import limiter, booking_limit
from ..security import Principal
from ..services.appointment_service import AppointmentLifecycleManager
from ..services.feedback_service import FeedbackGate
from .appointments import get_lifecycle_manager
from .feedback import get_feedback_gate

router = APIRouter(
    prefix="/patient",
    tags=["Patient Portal"],
    dependencies=[Depends(security.require_patient)],
)


@router.get("/profile", response_model=schemas.PatientResponse)
def read_profile(patient: Principal = Depends(security.require_patient), db: Session = Depends(get_db)):
    return crud.get_patient(db, patient.id)


@router.put("/profile", response_model=schemas.PatientResponse)
def update_profile(
    profile: schemas.PatientUpdate,
    patient: Principal = Depends(security.require_patient),
    db: Session = Depends(get_db),
):
    password_hash = security.get_password_hash(profile.password) if profile.password else None
    return crud.update_patient(db, patient.id, profile, password_hash=password_hash)


@router.get("/appointments", response_model=List[schemas.AppointmentResponse])
def read_my_appointments(
    status: Optional[models.AppointmentStatus] = None,
    search: Optional[str] = None,
    patient: Principal = Depends(security.require_patient),
    db: Session = Depends(get_db),
):
    """The caller's appointments; ``search`` matches doctor name or specialization."""
    return crud.get_appointments(db, limit=1000, status=status, patient_id=patient.id, search=search)


@router.get("/appointments/{appointment_id}", response_model=schemas.AppointmentResponse)
def read_my_appointment(
    appointment_id: int,
    patient: Principal = Depends(security.require_patient),
    db: Session = Depends(get_db),
):
    db_appointment = crud.get_appointment(db, appointment_id)
    if db_appointment is None:
        raise NotFound("Appointment not found")
    if db_appointment.patient_id != patient.id:
        raise Forbidden("You can only view your own appointments")
    return db_appointment


@router.post("/appointments", response_model=schemas.AppointmentResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(booking_limit)
def request_appointment(
    request: Request,
    appointment: schemas.PatientAppointmentCreate,
    patient: Principal = Depends(security.require_patient),
    manager: AppointmentLifecycleManager = Depends(get_lifecycle_manager),
):
    """Request an appointment for the caller. It always starts as Pending."""
    return manager.create(
        patient_id=patient.id,
        doctor_id=appointment.doctor_id,
        on_date=appointment.date,
        at_time=appointment.time,
        specialization=appointment.specialization,
        status=models.AppointmentStatus.pending,
        actor=patient,
    )


@router.patch("/appointments/{appointment_id}/status", response_model=schemas.AppointmentResponse)
def update_my_appointment_status(
    appointment_id: int,
    status_update: schemas.AppointmentStatusUpdate,
    patient: Principal = Depends(security.require_patient),
    manager: AppointmentLifecycleManager = Depends(get_lifecycle_manager),
):
    """Cancel an appointment or mark it completed."""
    return manager.update_status(appointment_id, status_update.status, actor=patient)


@router.get("/feedback", response_model=List[schemas.FeedbackResponse])
def read_my_feedback(patient: Principal = Depends(security.require_patient), db: Session = Depends(get_db)):
    return crud.get_feedback_given_by_patient(db, patient.id)


@router.post("/feedback", response_model=schemas.FeedbackResponse, status_code=status.HTTP_201_CREATED)
def submit_my_feedback(
    feedback: schemas.PatientFeedbackCreate,
    patient: Principal = Depends(security.require_patient),
    gate: FeedbackGate = Depends(get_feedback_gate),
):
    return gate.submit(
        appointment_id=feedback.appointment_id,
        given_by=models.PersonType.patient,
        given_by_id=patient.id,
        receiver_id=feedback.receiver_id,
        receiver_type=feedback.receiver_type,
        rating=feedback.rating,
        comments=feedback.comments,
        actor=patient,
    )
