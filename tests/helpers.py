# tests/helpers.py
from datetime import date, time

from app import crud, models
from app.security import Principal, ROLE_PATIENT, create_principal_token

TEST_SECRET_KEY = "test-secret-key-for-the-scheduler-suite-0123456789"

# Service tests run against a pinned calendar day
TODAY = date(2025, 6, 1)
SLOT_DATE = date(2025, 6, 10)
SLOT_TIME = time(10, 0)


def schedule_rows(session, appointment_id):
    return [(row.appointment_id, row.patient_id) for row in crud.get_schedule_rows(session, appointment_id)]


def assert_projection_consistent(session):
    """Confirmed <=> matching Schedule row, and at most one active booking per slot."""
    report = crud.run_consistency_checks(session)
    assert report["confirmed_without_schedule"] == []
    assert report["schedule_without_confirmed"] == []
    assert report["active_slot_collisions"] == []


def patient_as_principal(patient: models.Patient) -> Principal:
    return Principal(role=ROLE_PATIENT, id=patient.id, username=patient.email)


def patient_headers_for(patient: models.Patient, settings) -> dict:
    return {"Authorization": f"Bearer {create_principal_token(patient_as_principal(patient), settings)}"}
