# app/routers/appointments.py
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app import crud, schemas, security
from app.database import get_db
from app.errors import NotFound
from app.limiter import limiter, booking_limit
from app.models import AppointmentStatus
from app.services.appointment_service import AppointmentLifecycleManager

router = APIRouter(
    prefix="/appointments",
    tags=["Appointments"],
    dependencies=[Depends(security.require_admin)],
    responses={404: {"description": "Not found"}},
)


def get_lifecycle_manager(db: Session = Depends(get_db)) -> AppointmentLifecycleManager:
    return AppointmentLifecycleManager(db)


@router.get("", response_model=List[schemas.AppointmentResponse])
def read_appointments(
    skip: int = 0,
    limit: int = 200,
    status: Optional[AppointmentStatus] = None,
    patient_id: Optional[int] = None,
    doctor_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
):
    """Retrieve appointments, newest first, with optional filters."""
    return crud.get_appointments(
        db, skip=skip, limit=limit, status=status,
        patient_id=patient_id, doctor_id=doctor_id,
        start_date=start_date, end_date=end_date,
    )


@router.get("/upcoming", response_model=List[schemas.AppointmentResponse])
def read_upcoming_appointments(limit: int = 5, db: Session = Depends(get_db)):
    return crud.get_upcoming_appointments(db, today=date.today(), limit=limit)


@router.get("/patient/{patient_id}", response_model=List[schemas.AppointmentResponse])
def read_patient_appointments(patient_id: int, db: Session = Depends(get_db)):
    if crud.get_patient(db, patient_id) is None:
        raise NotFound("Patient not found")
    return crud.get_appointments(db, patient_id=patient_id, limit=1000)


@router.get("/doctor/{doctor_id}", response_model=List[schemas.AppointmentResponse])
def read_doctor_appointments(doctor_id: int, db: Session = Depends(get_db)):
    if crud.get_doctor(db, doctor_id) is None:
        raise NotFound("Doctor not found")
    return crud.get_appointments(db, doctor_id=doctor_id, limit=1000)


@router.get("/{appointment_id}", response_model=schemas.AppointmentResponse)
def read_appointment(appointment_id: int, db: Session = Depends(get_db)):
    db_appointment = crud.get_appointment(db, appointment_id)
    if db_appointment is None:
        raise NotFound("Appointment not found")
    return db_appointment


@router.post("", response_model=schemas.AppointmentResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(booking_limit)
def create_new_appointment(
    request: Request,
    appointment: schemas.AppointmentCreate,
    manager: AppointmentLifecycleManager = Depends(get_lifecycle_manager),
    current_admin: security.Principal = Depends(security.require_admin),
):
    """Book an appointment. Admins may create it directly as Confirmed."""
    return manager.create(
        patient_id=appointment.patient_id,
        doctor_id=appointment.doctor_id,
        on_date=appointment.date,
        at_time=appointment.time,
        specialization=appointment.specialization,
        status=appointment.status,
        actor=current_admin,
    )


@router.put("/{appointment_id}", response_model=schemas.AppointmentResponse)
def update_appointment(
    appointment_id: int,
    appointment_update: schemas.AppointmentUpdate,
    manager: AppointmentLifecycleManager = Depends(get_lifecycle_manager),
    current_admin: security.Principal = Depends(security.require_admin),
):
    """Edit an appointment. A body holding only ``status`` is a plain status change."""
    return manager.update(appointment_id, appointment_update, actor=current_admin)


@router.patch("/{appointment_id}/status", response_model=schemas.AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    status_update: schemas.AppointmentStatusUpdate,
    manager: AppointmentLifecycleManager = Depends(get_lifecycle_manager),
    current_admin: security.Principal = Depends(security.require_admin),
):
    return manager.update_status(appointment_id, status_update.status, actor=current_admin)


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: int,
    manager: AppointmentLifecycleManager = Depends(get_lifecycle_manager),
    current_admin: security.Principal = Depends(security.require_admin),
):
    """Delete an appointment. Refused with 400 while feedback references it."""
    manager.delete(appointment_id, actor=current_admin)
    return None
