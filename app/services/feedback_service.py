# app/services/feedback_service.py
# Feedback Eligibility Gate. Feedback is accepted only for Completed
# appointments, once per (appointment, giver), with an integer rating 1-5.
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..errors import (
    DuplicateFeedback, FeedbackNotAllowed, Forbidden, InvalidRating, NotAppointmentParty, NotFound,
    ReferenceNotFound,
)
from ..security import Principal

logger = structlog.get_logger(__name__)

MIN_RATING = 1
MAX_RATING = 5

ELIGIBLE_STATUSES = frozenset({models.AppointmentStatus.completed})


def validate_rating(rating) -> int:
    # bool is an int subclass; True must not pass as a rating of 1
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidRating(rating)
    return rating


def party_id(appointment: models.Appointment, person_type: models.PersonType) -> int:
    if person_type == models.PersonType.doctor:
        return appointment.doctor_id
    return appointment.patient_id


class FeedbackGate:

    def __init__(self, db: Session):
        self.db = db

    def submit(
        self,
        appointment_id: int,
        given_by: models.PersonType,
        given_by_id: int,
        receiver_type: models.PersonType,
        rating,
        receiver_id: Optional[int] = None,
        comments: Optional[str] = None,
        actor: Optional[Principal] = None,
    ) -> models.Feedback:
        """Record feedback for an appointment.

        Checks run in a fixed order: the appointment exists, the actor may
        speak for the giver, giver and receiver are parties to the
        appointment, the rating is valid, the appointment is eligible,
        and the giver has not rated it yet. ``receiver_id`` defaults to the
        appointment's doctor or patient according to ``receiver_type``.
        """
        given_by = models.PersonType(given_by)
        receiver_type = models.PersonType(receiver_type)

        try:
            appointment = crud.get_appointment(self.db, appointment_id)
            if appointment is None:
                raise ReferenceNotFound(f"Appointment {appointment_id} not found")

            if actor is not None and actor.is_patient:
                if appointment.patient_id != actor.id:
                    raise Forbidden("You can only give feedback on your own appointments")
                if given_by != models.PersonType.patient or given_by_id != actor.id:
                    raise Forbidden("Patients can only give feedback as themselves")

            if given_by_id != party_id(appointment, given_by):
                raise NotAppointmentParty("giving", given_by, given_by_id, appointment_id)
            if receiver_id is None:
                receiver_id = party_id(appointment, receiver_type)
            elif receiver_id != party_id(appointment, receiver_type):
                raise NotAppointmentParty("receiving", receiver_type, receiver_id, appointment_id)

            validate_rating(rating)

            if appointment.status not in ELIGIBLE_STATUSES:
                raise FeedbackNotAllowed(appointment_id, appointment.status)

            if crud.find_feedback_by_giver(self.db, appointment_id, given_by, given_by_id):
                raise DuplicateFeedback(appointment_id)

            feedback = crud.add_feedback(
                self.db,
                appointment_id=appointment_id,
                given_by=given_by,
                given_by_id=given_by_id,
                receiver_id=receiver_id,
                receiver_type=receiver_type,
                rating=rating,
                comments=comments,
            )
            self.db.commit()
        except IntegrityError as exc:
            # Lost a race against an identical submission
            self.db.rollback()
            raise DuplicateFeedback(appointment_id) from exc
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "feedback.submitted",
            feedback_id=feedback.id,
            appointment_id=appointment_id,
            given_by=given_by.value,
            receiver_type=receiver_type.value,
            rating=rating,
        )
        return crud.get_feedback(self.db, feedback.id)

    def update(
        self,
        feedback_id: int,
        changes: schemas.FeedbackUpdate,
        actor: Optional[Principal] = None,
    ) -> models.Feedback:
        feedback = self._get(feedback_id, actor)
        update_data = changes.model_dump(exclude_unset=True)
        if "rating" in update_data:
            validate_rating(update_data["rating"])
        crud.update_feedback(self.db, feedback, update_data)
        logger.info("feedback.updated", feedback_id=feedback_id, fields=sorted(update_data))
        return crud.get_feedback(self.db, feedback_id)

    def delete(self, feedback_id: int, actor: Optional[Principal] = None) -> None:
        feedback = self._get(feedback_id, actor)
        crud.delete_feedback(self.db, feedback)
        logger.info("feedback.deleted", feedback_id=feedback_id)

    def _get(self, feedback_id: int, actor: Optional[Principal]) -> models.Feedback:
        feedback = crud.get_feedback(self.db, feedback_id)
        if feedback is None:
            raise NotFound(f"Feedback {feedback_id} not found")
        if actor is not None and actor.is_patient and not (
            feedback.given_by == models.PersonType.patient and feedback.given_by_id == actor.id
        ):
            raise Forbidden("You can only manage your own feedback")
        return feedback
