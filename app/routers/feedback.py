# app/routers/feedback.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from .. import crud, schemas, security
from ..database import get_db
from ..errors import NotFound
from ..services.feedback_service import FeedbackGate

router = APIRouter(
    prefix="/feedback",
    tags=["Feedback"],
    dependencies=[Depends(security.require_admin)],
    responses={404: {"description": "Not found"}},
)


def get_feedback_gate(db: Session = Depends(get_db)) -> FeedbackGate:
    return FeedbackGate(db)


@router.get("", response_model=List[schemas.FeedbackResponse])
def read_feedback(skip: int = 0, limit: int = 200, db: Session = Depends(get_db)):
    return crud.get_feedback_list(db, skip=skip, limit=limit)


@router.get("/recent", response_model=List[schemas.FeedbackResponse])
def read_recent_feedback(limit: int = 5, db: Session = Depends(get_db)):
    return crud.get_recent_feedback(db, limit=limit)


@router.get("/appointment/{appointment_id}", response_model=List[schemas.FeedbackResponse])
def read_feedback_for_appointment(appointment_id: int, db: Session = Depends(get_db)):
    if crud.get_appointment(db, appointment_id) is None:
        raise NotFound("Appointment not found")
    return crud.get_feedback_for_appointment(db, appointment_id)


@router.get("/patient/{patient_id}", response_model=List[schemas.FeedbackResponse])
def read_feedback_by_patient(patient_id: int, db: Session = Depends(get_db)):
    """Feedback the patient has given."""
    if crud.get_patient(db, patient_id) is None:
        raise NotFound("Patient not found")
    return crud.get_feedback_given_by_patient(db, patient_id)


@router.get("/{feedback_id}", response_model=schemas.FeedbackResponse)
def read_single_feedback(feedback_id: int, db: Session = Depends(get_db)):
    db_feedback = crud.get_feedback(db, feedback_id)
    if db_feedback is None:
        raise NotFound("Feedback not found")
    return db_feedback


@router.post("", response_model=schemas.FeedbackResponse, status_code=status.HTTP_201_CREATED)
def submit_feedback(
    feedback: schemas.FeedbackCreate,
    gate: FeedbackGate = Depends(get_feedback_gate),
    current_admin: security.Principal = Depends(security.require_admin),
):
    return gate.submit(
        appointment_id=feedback.appointment_id,
        given_by=feedback.given_by,
        given_by_id=feedback.given_by_id,
        receiver_id=feedback.receiver_id,
        receiver_type=feedback.receiver_type,
        rating=feedback.rating,
        comments=feedback.comments,
        actor=current_admin,
    )


@router.put("/{feedback_id}", response_model=schemas.FeedbackResponse)
def update_feedback(
    feedback_id: int,
    feedback_update: schemas.FeedbackUpdate,
    gate: FeedbackGate = Depends(get_feedback_gate),
    current_admin: security.Principal = Depends(security.require_admin),
):
    """Only rating and comments can be edited."""
    return gate.update(feedback_id, feedback_update, actor=current_admin)


@router.delete("/{feedback_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_feedback(
    feedback_id: int,
    gate: FeedbackGate = Depends(get_feedback_gate),
    current_admin: security.Principal = Depends(security.require_admin),
):
    gate.delete(feedback_id, actor=current_admin)
    return None
