# tests/test_crud.py
from datetime import time, timedelta

import pytest

from app import crud, models, schemas
from app.errors import DuplicateRecord, HasDependentAppointments

from helpers import SLOT_DATE, SLOT_TIME, TODAY

Status = models.AppointmentStatus
Person = models.PersonType


def test_patient_search_and_blood_group_filter(db_session, make_patient):
    make_patient(name="Asha Verma", blood_group="O+", phone="9876543210")
    make_patient(name="Ravi Kumar", blood_group="B+")

    assert [p.name for p in crud.get_patients(db_session, search="asha")] == ["Asha Verma"]
    assert [p.name for p in crud.get_patients(db_session, search="98765")] == ["Asha Verma"]
    assert [p.name for p in crud.get_patients(db_session, blood_group="B+")] == ["Ravi Kumar"]
    assert len(crud.get_patients(db_session, blood_group="all")) == 2


def test_duplicate_patient_email_is_rejected(db_session, make_patient):
    make_patient(email="asha@example.com")
    with pytest.raises(DuplicateRecord):
        make_patient(name="Someone Else", email="ASHA@example.com")


def test_update_patient_email_uniqueness(db_session, make_patient):
    make_patient(email="asha@example.com")
    ravi = make_patient(name="Ravi Kumar", email="ravi@example.com")
    with pytest.raises(DuplicateRecord):
        crud.update_patient(db_session, ravi.id, schemas.PatientUpdate(email="asha@example.com"))

    updated = crud.update_patient(db_session, ravi.id, schemas.PatientUpdate(address="12 MG Road"))
    assert updated.address == "12 MG Road"
    assert updated.email == "ravi@example.com"


def test_update_missing_patient_returns_none(db_session):
    assert crud.update_patient(db_session, 4040, schemas.PatientUpdate(name="Nobody Here")) is None


def test_phone_must_have_ten_digits():
    with pytest.raises(ValueError):
        schemas.PatientCreate(name="Asha Verma", phone="12345")
    with pytest.raises(ValueError):
        schemas.DoctorCreate(name="Dr. Rao", expertise="Cardiology", phone="98765-43210")


def test_patient_and_doctor_deletion_guarded_by_appointments(db_session, manager, patient, doctor, make_patient, make_doctor):
    manager.create(patient.id, doctor.id, SLOT_DATE, SLOT_TIME)

    with pytest.raises(HasDependentAppointments):
        crud.delete_patient(db_session, patient.id)
    with pytest.raises(HasDependentAppointments):
        crud.delete_doctor(db_session, doctor.id)

    free_patient = make_patient(name="Ravi Kumar")
    free_doctor = make_doctor(name="Dr. Iyer")
    assert crud.delete_patient(db_session, free_patient.id) is True
    assert crud.delete_doctor(db_session, free_doctor.id) is True
    assert crud.delete_patient(db_session, free_patient.id) is False


def test_doctor_filters(db_session, make_doctor):
    make_doctor(name="Dr. Rao", expertise="Cardiology", phone="9000000001")
    make_doctor(name="Dr. Iyer", expertise="Dermatology")

    assert [d.name for d in crud.get_doctors(db_session, expertise="Dermatology")] == ["Dr. Iyer"]
    assert [d.name for d in crud.get_doctors(db_session, search="9000")] == ["Dr. Rao"]


def test_appointment_listing_filters_and_order(db_session, manager, patient, doctor, make_doctor):
    other = make_doctor(name="Dr. Iyer", expertise="Dermatology")
    early = manager.create(patient.id, doctor.id, SLOT_DATE, time(9, 0))
    late = manager.create(patient.id, doctor.id, SLOT_DATE, time(16, 0))
    next_day = manager.create(patient.id, other.id, SLOT_DATE + timedelta(days=1), time(9, 0))
    manager.update_status(late.id, Status.confirmed)

    assert [a.id for a in crud.get_appointments(db_session)] == [next_day.id, late.id, early.id]
    assert [a.id for a in crud.get_appointments(db_session, doctor_id=other.id)] == [next_day.id]
    assert [a.id for a in crud.get_appointments(db_session, status=Status.confirmed)] == [late.id]
    assert [a.id for a in crud.get_appointments(db_session, search="derma")] == [next_day.id]
    assert [a.id for a in crud.get_appointments(db_session, start_date=SLOT_DATE, end_date=SLOT_DATE)] == [late.id, early.id]


def test_upcoming_appointments_are_confirmed_and_ascending(db_session, manager, patient, doctor):
    first = manager.create(patient.id, doctor.id, SLOT_DATE, time(9, 0), status=Status.confirmed)
    second = manager.create(patient.id, doctor.id, SLOT_DATE, time(11, 0), status=Status.confirmed)
    manager.create(patient.id, doctor.id, SLOT_DATE, time(12, 0))

    upcoming = crud.get_upcoming_appointments(db_session, today=TODAY)
    assert [a.id for a in upcoming] == [first.id, second.id]
    assert crud.get_upcoming_appointments(db_session, today=SLOT_DATE + timedelta(days=1)) == []


def _completed_visit(manager, patient, doctor, at_time):
    appointment = manager.create(patient.id, doctor.id, SLOT_DATE, at_time)
    return manager.update_status(appointment.id, Status.completed)


def test_top_rated_doctors(db_session, manager, gate, make_patient, make_doctor):
    rao = make_doctor(name="Dr. Rao")
    iyer = make_doctor(name="Dr. Iyer", expertise="Dermatology")
    make_doctor(name="Dr. Sen", expertise="Oncology")

    for rating, at_time in ((5, time(9, 0)), (4, time(9, 30))):
        visitor = make_patient()
        visit = _completed_visit(manager, visitor, rao, at_time)
        gate.submit(visit.id, Person.patient, visitor.id, Person.doctor, rating)
    visitor = make_patient()
    visit = _completed_visit(manager, visitor, iyer, time(10, 0))
    gate.submit(visit.id, Person.patient, visitor.id, Person.doctor, 5)

    ranking = crud.get_top_rated_doctors(db_session, limit=5)
    assert [(d.name, avg, n) for d, avg, n in ranking] == [
        ("Dr. Iyer", 5.0, 1),
        ("Dr. Rao", 4.5, 2),
        ("Dr. Sen", 0.0, 0),
    ]


def test_dashboard_stats(db_session, manager, gate, patient, doctor):
    today_visit = manager.create(patient.id, doctor.id, TODAY, time(9, 0))
    manager.update_status(today_visit.id, Status.completed)
    gate.submit(today_visit.id, Person.patient, patient.id, Person.doctor, 4)
    manager.create(patient.id, doctor.id, SLOT_DATE, SLOT_TIME, status=Status.confirmed)

    stats = crud.get_dashboard_stats(db_session, today=TODAY)
    assert stats == {
        "total_patients": 1,
        "total_doctors": 1,
        "today_appointments": 1,
        "upcoming_appointments": 1,
        "average_rating": 4.0,
    }


def test_dashboard_stats_empty(db_session):
    stats = crud.get_dashboard_stats(db_session, today=TODAY)
    assert stats["average_rating"] == 0.0
    assert stats["total_patients"] == 0


def test_consistency_report_flags_projection_drift(db_session, manager, patient, doctor):
    pending = manager.create(patient.id, doctor.id, SLOT_DATE, time(9, 0))
    confirmed = manager.create(patient.id, doctor.id, SLOT_DATE, time(9, 30), status=Status.confirmed)
    assert crud.run_consistency_checks(db_session)["confirmed_without_schedule"] == []

    # Drift introduced behind the lifecycle manager's back
    crud.remove_schedule_rows(db_session, confirmed.id)
    crud.add_schedule_row(db_session, pending.id, patient.id)
    db_session.commit()

    report = crud.run_consistency_checks(db_session)
    assert [i["appointment_id"] for i in report["confirmed_without_schedule"]] == [confirmed.id]
    assert [i["appointment_id"] for i in report["schedule_without_confirmed"]] == [pending.id]
    assert report["active_slot_collisions"] == []
