# tests/test_feedback_service.py
import pytest

from app import crud, models, schemas
from app.errors import (
    DuplicateFeedback, FeedbackNotAllowed, Forbidden, InvalidRating, NotAppointmentParty, NotFound,
    ReferenceNotFound,
)
from app.services.feedback_service import validate_rating

from helpers import SLOT_DATE, SLOT_TIME, patient_as_principal

Status = models.AppointmentStatus
Person = models.PersonType


@pytest.fixture
def appointment(manager, patient, doctor):
    return manager.create(patient.id, doctor.id, SLOT_DATE, SLOT_TIME)


@pytest.fixture
def completed(manager, appointment):
    return manager.update_status(appointment.id, Status.completed)


def patient_feedback(gate, appointment, rating=5, **kwargs):
    return gate.submit(
        appointment.id, Person.patient, appointment.patient_id, Person.doctor, rating, **kwargs
    )


def test_feedback_lifecycle(db_session, gate, manager, appointment):
    # Pending: not eligible yet
    with pytest.raises(FeedbackNotAllowed):
        patient_feedback(gate, appointment)

    manager.update_status(appointment.id, Status.completed)
    feedback = patient_feedback(gate, appointment, rating=5, comments="Very thorough")
    assert feedback.rating == 5
    assert feedback.date is not None

    with pytest.raises(DuplicateFeedback):
        patient_feedback(gate, appointment, rating=4)
    assert len(crud.get_feedback_for_appointment(db_session, appointment.id)) == 1


def test_rating_out_of_range(gate, completed):
    with pytest.raises(InvalidRating):
        patient_feedback(gate, completed, rating=6)


@pytest.mark.parametrize("rating", [0, 6, -1, 4.5, "5", True, None])
def test_validate_rating_rejects(rating):
    with pytest.raises(InvalidRating):
        validate_rating(rating)


@pytest.mark.parametrize("rating", [1, 3, 5])
def test_validate_rating_accepts(rating):
    assert validate_rating(rating) == rating


def test_rating_is_checked_before_eligibility(gate, appointment):
    with pytest.raises(InvalidRating):
        patient_feedback(gate, appointment, rating=6)


@pytest.mark.parametrize("status", [Status.confirmed, Status.cancelled])
def test_only_completed_appointments_accept_feedback(gate, manager, appointment, status):
    manager.update_status(appointment.id, status)
    with pytest.raises(FeedbackNotAllowed) as exc_info:
        patient_feedback(gate, appointment)
    assert exc_info.value.status_code == 400


def test_unknown_appointment(gate, patient):
    with pytest.raises(ReferenceNotFound):
        gate.submit(9999, Person.patient, patient.id, Person.doctor, 5)


def test_receiver_defaults_to_appointment_party(gate, completed, doctor, patient):
    to_doctor = patient_feedback(gate, completed)
    assert to_doctor.receiver_id == doctor.id

    to_patient = gate.submit(completed.id, Person.doctor, doctor.id, Person.patient, 4)
    assert to_patient.receiver_id == patient.id


def test_receiver_must_be_appointment_party(db_session, gate, completed, make_doctor, make_patient):
    stranger = make_doctor(name="Dr. Iyer", expertise="Dermatology")
    with pytest.raises(NotAppointmentParty) as exc_info:
        patient_feedback(gate, completed, receiver_id=stranger.id)
    assert exc_info.value.status_code == 400

    other_patient = make_patient(name="Ravi Kumar")
    with pytest.raises(NotAppointmentParty):
        gate.submit(completed.id, Person.doctor, completed.doctor_id, Person.patient, 4, receiver_id=other_patient.id)

    assert crud.get_feedback_for_appointment(db_session, completed.id) == []
    assert crud.get_top_rated_doctors(db_session)[0][2] == 0


def test_giver_must_be_appointment_party(gate, completed, make_doctor, make_patient):
    outsider = make_patient(name="Ravi Kumar")
    with pytest.raises(NotAppointmentParty):
        gate.submit(completed.id, Person.patient, outsider.id, Person.doctor, 5)
    with pytest.raises(NotAppointmentParty):
        gate.submit(completed.id, Person.doctor, make_doctor(name="Dr. Iyer").id, Person.patient, 5)


def test_explicit_receiver_matching_appointment_is_accepted(gate, completed, doctor):
    feedback = patient_feedback(gate, completed, receiver_id=doctor.id)
    assert feedback.receiver_id == doctor.id


def test_each_giver_rates_once(gate, completed, doctor):
    patient_feedback(gate, completed)
    # A different giver on the same appointment is fine
    gate.submit(completed.id, Person.doctor, doctor.id, Person.patient, 3)
    with pytest.raises(DuplicateFeedback):
        gate.submit(completed.id, Person.doctor, doctor.id, Person.patient, 2)


def test_unique_constraint_backstops_duplicate(db_session, gate, completed, monkeypatch):
    patient_feedback(gate, completed)
    monkeypatch.setattr(crud, "find_feedback_by_giver", lambda *args, **kwargs: None)

    with pytest.raises(DuplicateFeedback):
        patient_feedback(gate, completed, rating=1)
    assert len(crud.get_feedback_for_appointment(db_session, completed.id)) == 1


def test_feedback_does_not_touch_appointment(db_session, gate, completed):
    patient_feedback(gate, completed)
    assert crud.get_appointment(db_session, completed.id).status == Status.completed
    assert crud.get_schedule_rows(db_session, completed.id) == []


# ---------- patient scoping ----------

def test_patient_gives_feedback_only_as_themselves(gate, completed, patient, doctor):
    actor = patient_as_principal(patient)
    with pytest.raises(Forbidden):
        gate.submit(completed.id, Person.doctor, doctor.id, Person.patient, 5, actor=actor)

    feedback = patient_feedback(gate, completed, actor=actor)
    assert feedback.given_by == Person.patient
    assert feedback.given_by_id == patient.id


def test_patient_cannot_rate_someone_elses_appointment(gate, completed, make_patient):
    intruder = make_patient(name="Ravi Kumar")
    with pytest.raises(Forbidden):
        gate.submit(
            completed.id, Person.patient, intruder.id, Person.doctor, 5,
            actor=patient_as_principal(intruder),
        )


# ---------- update / delete ----------

def test_update_changes_rating_and_comments(gate, completed):
    feedback = patient_feedback(gate, completed, rating=3)
    updated = gate.update(feedback.id, schemas.FeedbackUpdate(rating=4, comments="Better on reflection"))
    assert updated.rating == 4
    assert updated.comments == "Better on reflection"


def test_update_revalidates_rating(gate, completed):
    feedback = patient_feedback(gate, completed, rating=3)
    with pytest.raises(InvalidRating):
        gate.update(feedback.id, schemas.FeedbackUpdate(rating=9))


def test_update_requires_some_field():
    with pytest.raises(ValueError):
        schemas.FeedbackUpdate()


def test_update_by_other_patient_is_forbidden(gate, completed, make_patient):
    feedback = patient_feedback(gate, completed)
    intruder = patient_as_principal(make_patient(name="Ravi Kumar"))
    with pytest.raises(Forbidden):
        gate.update(feedback.id, schemas.FeedbackUpdate(rating=1), actor=intruder)


def test_delete_feedback_then_appointment(db_session, gate, manager, completed):
    feedback = patient_feedback(gate, completed)
    gate.delete(feedback.id)
    assert crud.get_feedback(db_session, feedback.id) is None

    manager.delete(completed.id)
    assert crud.get_appointment(db_session, completed.id) is None


def test_delete_unknown_feedback(gate):
    with pytest.raises(NotFound):
        gate.delete(777)
