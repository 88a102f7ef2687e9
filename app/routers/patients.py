# app/routers/patients.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import crud, schemas, security
from ..database import get_db
from ..errors import NotFound

router = APIRouter(
    tags=["Patients"],
    dependencies=[Depends(security.require_admin)],
    responses={404: {"description": "Not found"}},
)


@router.post("/patients", response_model=schemas.PatientResponse, status_code=status.HTTP_201_CREATED)
def create_new_patient(patient: schemas.PatientCreate, db: Session = Depends(get_db)):
    """
    Create a new patient record. A password enables portal login for the patient.
    """
    password_hash = security.get_password_hash(patient.password) if patient.password else None
    return crud.create_patient(db=db, patient=patient, password_hash=password_hash)


@router.get("/patients", response_model=List[schemas.PatientResponse])
def read_all_patients(
    skip: int = 0,
    limit: int = 200,
    search: Optional[str] = None,
    blood_group: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return crud.get_patients(db, skip=skip, limit=limit, search=search, blood_group=blood_group)


@router.get("/patients/{patient_id}", response_model=schemas.PatientResponse)
def read_patient(patient_id: int, db: Session = Depends(get_db)):
    db_patient = crud.get_patient(db, patient_id=patient_id)
    if db_patient is None:
        raise NotFound("Patient not found")
    return db_patient


@router.put("/patients/{patient_id}", response_model=schemas.PatientResponse)
def update_existing_patient(patient_id: int, patient: schemas.PatientUpdate, db: Session = Depends(get_db)):
    password_hash = security.get_password_hash(patient.password) if patient.password else None
    db_patient = crud.update_patient(db, patient_id=patient_id, patient_update=patient, password_hash=password_hash)
    if db_patient is None:
        raise NotFound("Patient not found")
    return db_patient


@router.delete("/patients/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_existing_patient(patient_id: int, db: Session = Depends(get_db)):
    """Refused with 400 while appointments reference the patient."""
    if not crud.delete_patient(db, patient_id=patient_id):
        raise NotFound("Patient not found")
    return None
