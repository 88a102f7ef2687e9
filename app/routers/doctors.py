# app/routers/doctors.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import crud, schemas, security
from ..database import get_db
from ..errors import NotFound

# Any logged-in principal may browse doctors (patients need them to book); writes are admin-only
router = APIRouter(
    prefix="/doctors",
    tags=["Doctors"],
    dependencies=[Depends(security.get_current_principal)],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=List[schemas.DoctorResponse])
def read_doctors(
    skip: int = 0,
    limit: int = 200,
    search: Optional[str] = None,
    expertise: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return crud.get_doctors(db, skip=skip, limit=limit, search=search, expertise=expertise)


@router.get("/top-rated", response_model=List[schemas.TopRatedDoctor])
def read_top_rated_doctors(limit: int = 5, db: Session = Depends(get_db)):
    """Doctors ordered by average received rating, then by number of reviews."""
    results = []
    for doctor, avg_rating, review_count in crud.get_top_rated_doctors(db, limit=limit):
        entry = schemas.TopRatedDoctor.model_validate(doctor)
        entry.avg_rating = avg_rating
        entry.review_count = review_count
        results.append(entry)
    return results


@router.get("/{doctor_id}", response_model=schemas.DoctorResponse)
def read_doctor(doctor_id: int, db: Session = Depends(get_db)):
    db_doctor = crud.get_doctor(db, doctor_id)
    if db_doctor is None:
        raise NotFound("Doctor not found")
    return db_doctor


@router.post("", response_model=schemas.DoctorResponse, status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(security.require_admin)])
def create_doctor(doctor: schemas.DoctorCreate, db: Session = Depends(get_db)):
    return crud.create_doctor(db, doctor)


@router.put("/{doctor_id}", response_model=schemas.DoctorResponse, dependencies=[Depends(security.require_admin)])
def update_doctor(doctor_id: int, doctor: schemas.DoctorUpdate, db: Session = Depends(get_db)):
    db_doctor = crud.update_doctor(db, doctor_id, doctor)
    if db_doctor is None:
        raise NotFound("Doctor not found")
    return db_doctor


@router.delete("/{doctor_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(security.require_admin)])
def delete_doctor(doctor_id: int, db: Session = Depends(get_db)):
    if not crud.delete_doctor(db, doctor_id):
        raise NotFound("Doctor not found")
    return None
