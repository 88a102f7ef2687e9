# app/crud.py - Entity Store: persistence primitives for patients, doctors,
# appointments, schedules, feedback and admins.
import logging
from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any, Tuple

from sqlalchemy import or_, and_, func
from sqlalchemy.orm import Session, joinedload

from . import models, schemas
from .errors import DuplicateRecord, HasDependentAppointments

logger = logging.getLogger(__name__)


# ==================== ADMIN OPERATIONS ====================

def get_admin_by_username(db: Session, username: str) -> Optional[models.Admin]:
    return db.query(models.Admin).filter(models.Admin.username == username).first()


def create_admin(db: Session, username: str, password_hash: str) -> models.Admin:
    if get_admin_by_username(db, username):
        raise DuplicateRecord("Username already exists")
    db_admin = models.Admin(username=username, password_hash=password_hash)
    db.add(db_admin)
    db.commit()
    db.refresh(db_admin)
    return db_admin


# ==================== PATIENT OPERATIONS ====================

def get_patient(db: Session, patient_id: int) -> Optional[models.Patient]:
    return db.get(models.Patient, patient_id)


def get_patient_by_email(db: Session, email: str) -> Optional[models.Patient]:
    return db.query(models.Patient).filter(func.lower(models.Patient.email) == email.lower()).first()


def get_patients(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    search: Optional[str] = None,
    blood_group: Optional[str] = None,
) -> List[models.Patient]:
    """Get patients with optional free-text search (name, email, phone) and blood group filter."""
    query = db.query(models.Patient)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            models.Patient.name.ilike(pattern),
            models.Patient.email.ilike(pattern),
            models.Patient.phone.ilike(pattern),
        ))
    if blood_group and blood_group != "all":
        query = query.filter(models.Patient.blood_group == blood_group)
    return query.order_by(models.Patient.id.desc()).offset(skip).limit(limit).all()


def create_patient(db: Session, patient: schemas.PatientBase, password_hash: Optional[str] = None) -> models.Patient:
    if patient.email and get_patient_by_email(db, patient.email):
        raise DuplicateRecord("A patient with this email already exists")

    data = patient.model_dump(exclude={"password"})
    db_patient = models.Patient(**data, password_hash=password_hash)
    db.add(db_patient)
    db.commit()
    db.refresh(db_patient)
    logger.info(f"Created patient {db_patient.id}")
    return db_patient


def update_patient(
    db: Session,
    patient_id: int,
    patient_update: schemas.PatientUpdate,
    password_hash: Optional[str] = None,
) -> Optional[models.Patient]:
    db_patient = get_patient(db, patient_id)
    if not db_patient:
        return None

    update_data = patient_update.model_dump(exclude_unset=True, exclude={"password"})
    new_email = update_data.get("email")
    if new_email and (db_patient.email or "").lower() != new_email.lower():
        existing = get_patient_by_email(db, new_email)
        if existing and existing.id != patient_id:
            raise DuplicateRecord("A patient with this email already exists")

    for key, value in update_data.items():
        setattr(db_patient, key, value)
    if password_hash:
        db_patient.password_hash = password_hash

    db.commit()
    db.refresh(db_patient)
    return db_patient


def delete_patient(db: Session, patient_id: int) -> bool:
    """Hard delete, refused while any appointment references the patient."""
    db_patient = get_patient(db, patient_id)
    if not db_patient:
        return False
    if count_appointments(db, patient_id=patient_id):
        raise HasDependentAppointments("patient", patient_id)
    db.delete(db_patient)
    db.commit()
    return True


# ==================== DOCTOR OPERATIONS ====================

def get_doctor(db: Session, doctor_id: int, for_update: bool = False) -> Optional[models.Doctor]:
    query = db.query(models.Doctor).filter(models.Doctor.id == doctor_id)
    if for_update:
        # Serializes concurrent bookings for the same doctor (no-op on SQLite)
        query = query.with_for_update()
    return query.first()


def get_doctors(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    search: Optional[str] = None,
    expertise: Optional[str] = None,
) -> List[models.Doctor]:
    query = db.query(models.Doctor)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(models.Doctor.name.ilike(pattern), models.Doctor.phone.ilike(pattern)))
    if expertise and expertise != "all":
        query = query.filter(models.Doctor.expertise == expertise)
    return query.order_by(models.Doctor.id.desc()).offset(skip).limit(limit).all()


def create_doctor(db: Session, doctor: schemas.DoctorCreate) -> models.Doctor:
    db_doctor = models.Doctor(**doctor.model_dump())
    db.add(db_doctor)
    db.commit()
    db.refresh(db_doctor)
    logger.info(f"Created doctor {db_doctor.id}")
    return db_doctor


def update_doctor(db: Session, doctor_id: int, doctor_update: schemas.DoctorUpdate) -> Optional[models.Doctor]:
    # Appointment.specialization is a booking-time snapshot and is left untouched here
    db_doctor = get_doctor(db, doctor_id)
    if not db_doctor:
        return None
    for key, value in doctor_update.model_dump(exclude_unset=True).items():
        setattr(db_doctor, key, value)
    db.commit()
    db.refresh(db_doctor)
    return db_doctor


def delete_doctor(db: Session, doctor_id: int) -> bool:
    db_doctor = get_doctor(db, doctor_id)
    if not db_doctor:
        return False
    if count_appointments(db, doctor_id=doctor_id):
        raise HasDependentAppointments("doctor", doctor_id)
    db.delete(db_doctor)
    db.commit()
    return True


def get_top_rated_doctors(db: Session, limit: int = 5) -> List[Tuple[models.Doctor, float, int]]:
    """Doctors with the average rating and count of feedback they received."""
    avg_rating = func.avg(models.Feedback.rating)
    review_count = func.count(models.Feedback.id)
    rows = (
        db.query(models.Doctor, avg_rating.label("avg_rating"), review_count.label("review_count"))
        .outerjoin(
            models.Feedback,
            and_(
                models.Feedback.receiver_id == models.Doctor.id,
                models.Feedback.receiver_type == models.PersonType.doctor,
            ),
        )
        .group_by(models.Doctor.id)
        .order_by(func.coalesce(avg_rating, 0).desc(), review_count.desc())
        .limit(limit)
        .all()
    )
    return [(doctor, round(float(avg or 0), 1), int(count or 0)) for doctor, avg, count in rows]


# ==================== APPOINTMENT OPERATIONS ====================

def _appointment_query(db: Session):
    return db.query(models.Appointment).options(
        joinedload(models.Appointment.patient),
        joinedload(models.Appointment.doctor),
    )


def get_appointment(db: Session, appointment_id: int) -> Optional[models.Appointment]:
    return _appointment_query(db).filter(models.Appointment.id == appointment_id).first()


def get_appointments(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    status: Optional[models.AppointmentStatus] = None,
    patient_id: Optional[int] = None,
    doctor_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
) -> List[models.Appointment]:
    query = _appointment_query(db)
    if search:
        # Matches doctor name or the booked specialization
        pattern = f"%{search}%"
        query = query.join(models.Doctor, models.Appointment.doctor_id == models.Doctor.id).filter(
            or_(models.Doctor.name.ilike(pattern), models.Appointment.specialization.ilike(pattern))
        )
    if status:
        query = query.filter(models.Appointment.status == status)
    if patient_id is not None:
        query = query.filter(models.Appointment.patient_id == patient_id)
    if doctor_id is not None:
        query = query.filter(models.Appointment.doctor_id == doctor_id)
    if start_date:
        query = query.filter(models.Appointment.date >= start_date)
    if end_date:
        query = query.filter(models.Appointment.date <= end_date)
    return (
        query.order_by(models.Appointment.date.desc(), models.Appointment.time.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_upcoming_appointments(db: Session, today: date, limit: int = 5) -> List[models.Appointment]:
    return (
        _appointment_query(db)
        .filter(
            models.Appointment.date >= today,
            models.Appointment.status == models.AppointmentStatus.confirmed,
        )
        .order_by(models.Appointment.date.asc(), models.Appointment.time.asc())
        .limit(limit)
        .all()
    )


def count_appointments(db: Session, patient_id: Optional[int] = None, doctor_id: Optional[int] = None) -> int:
    query = db.query(func.count(models.Appointment.id))
    if patient_id is not None:
        query = query.filter(models.Appointment.patient_id == patient_id)
    if doctor_id is not None:
        query = query.filter(models.Appointment.doctor_id == doctor_id)
    return query.scalar() or 0


def find_active_appointment(
    db: Session,
    doctor_id: int,
    on_date: date,
    at_time,
    exclude_appointment_id: Optional[int] = None,
) -> Optional[models.Appointment]:
    """First Pending/Confirmed appointment occupying the slot, other than the excluded one."""
    query = db.query(models.Appointment).filter(
        models.Appointment.doctor_id == doctor_id,
        models.Appointment.date == on_date,
        models.Appointment.time == at_time,
        models.Appointment.status.in_(models.ACTIVE_STATUSES),
    )
    if exclude_appointment_id is not None:
        query = query.filter(models.Appointment.id != exclude_appointment_id)
    return query.first()


# ==================== SCHEDULE PROJECTION ====================

def get_schedule_rows(db: Session, appointment_id: int) -> List[models.Schedule]:
    return db.query(models.Schedule).filter(models.Schedule.appointment_id == appointment_id).all()


def add_schedule_row(db: Session, appointment_id: int, patient_id: int) -> models.Schedule:
    """Insert-if-absent. Flushes only; the caller owns the transaction."""
    row = db.get(models.Schedule, (appointment_id, patient_id))
    if row is None:
        row = models.Schedule(appointment_id=appointment_id, patient_id=patient_id)
        db.add(row)
        db.flush()
    return row


def remove_schedule_rows(db: Session, appointment_id: int, keep_patient_id: Optional[int] = None) -> int:
    """Delete projection rows of an appointment, optionally keeping the one for keep_patient_id."""
    query = db.query(models.Schedule).filter(models.Schedule.appointment_id == appointment_id)
    if keep_patient_id is not None:
        query = query.filter(models.Schedule.patient_id != keep_patient_id)
    removed = query.delete(synchronize_session="fetch")
    db.flush()
    return removed


# ==================== FEEDBACK OPERATIONS ====================

def _feedback_query(db: Session):
    return db.query(models.Feedback).options(
        joinedload(models.Feedback.appointment).joinedload(models.Appointment.patient),
        joinedload(models.Feedback.appointment).joinedload(models.Appointment.doctor),
    )


def get_feedback(db: Session, feedback_id: int) -> Optional[models.Feedback]:
    return _feedback_query(db).filter(models.Feedback.id == feedback_id).first()


def get_feedback_list(db: Session, skip: int = 0, limit: int = 100) -> List[models.Feedback]:
    return _feedback_query(db).order_by(models.Feedback.date.desc(), models.Feedback.id.desc()).offset(skip).limit(limit).all()


def get_recent_feedback(db: Session, limit: int = 5) -> List[models.Feedback]:
    return get_feedback_list(db, limit=limit)


def get_feedback_for_appointment(db: Session, appointment_id: int) -> List[models.Feedback]:
    return (
        _feedback_query(db)
        .filter(models.Feedback.appointment_id == appointment_id)
        .order_by(models.Feedback.date.desc())
        .all()
    )


def get_feedback_given_by_patient(db: Session, patient_id: int) -> List[models.Feedback]:
    return (
        _feedback_query(db)
        .filter(
            models.Feedback.given_by == models.PersonType.patient,
            models.Feedback.given_by_id == patient_id,
        )
        .order_by(models.Feedback.date.desc())
        .all()
    )


def find_feedback_by_giver(
    db: Session, appointment_id: int, given_by: models.PersonType, given_by_id: int
) -> Optional[models.Feedback]:
    return db.query(models.Feedback).filter(
        models.Feedback.appointment_id == appointment_id,
        models.Feedback.given_by == given_by,
        models.Feedback.given_by_id == given_by_id,
    ).first()


def add_feedback(db: Session, **fields) -> models.Feedback:
    """Stage a feedback row and flush it; the caller commits."""
    db_feedback = models.Feedback(**fields)
    db.add(db_feedback)
    db.flush()
    return db_feedback


def update_feedback(db: Session, db_feedback: models.Feedback, update_data: Dict[str, Any]) -> models.Feedback:
    # Only rating and comments are editable
    for key in ("rating", "comments"):
        if key in update_data:
            setattr(db_feedback, key, update_data[key])
    db.commit()
    db.refresh(db_feedback)
    return db_feedback


def delete_feedback(db: Session, db_feedback: models.Feedback) -> None:
    db.delete(db_feedback)
    db.commit()


def count_feedback_for_appointment(db: Session, appointment_id: int) -> int:
    return db.query(func.count(models.Feedback.id)).filter(models.Feedback.appointment_id == appointment_id).scalar() or 0


# ==================== DASHBOARD ====================

def get_dashboard_stats(db: Session, today: date) -> Dict[str, Any]:
    """Counts and the average rating shown on the admin dashboard."""
    average = db.query(func.avg(models.Feedback.rating)).scalar()
    return {
        "total_patients": db.query(func.count(models.Patient.id)).scalar() or 0,
        "total_doctors": db.query(func.count(models.Doctor.id)).scalar() or 0,
        "today_appointments": db.query(func.count(models.Appointment.id)).filter(models.Appointment.date == today).scalar() or 0,
        "upcoming_appointments": db.query(func.count(models.Appointment.id)).filter(
            models.Appointment.date >= today,
            models.Appointment.status == models.AppointmentStatus.confirmed,
        ).scalar() or 0,
        "average_rating": round(float(average), 1) if average is not None else 0.0,
    }


# ==================== HEALTH CHECK FUNCTIONS ====================

def run_consistency_checks(db: Session) -> Dict[str, Any]:
    """Compares the Schedule projection and the active-slot invariant against appointment rows."""
    report = {
        "checked_at": datetime.now(timezone.utc),
        "confirmed_without_schedule": [],
        "schedule_without_confirmed": [],
        "active_slot_collisions": [],
    }

    # Check 1: Confirmed appointments missing their (appointment, patient) projection row
    missing = (
        db.query(models.Appointment)
        .outerjoin(
            models.Schedule,
            and_(
                models.Schedule.appointment_id == models.Appointment.id,
                models.Schedule.patient_id == models.Appointment.patient_id,
            ),
        )
        .filter(
            models.Appointment.status == models.AppointmentStatus.confirmed,
            models.Schedule.appointment_id.is_(None),
        )
        .all()
    )
    for appointment in missing:
        report["confirmed_without_schedule"].append({
            "appointment_id": appointment.id,
            "patient_id": appointment.patient_id,
            "status": appointment.status,
            "issue": "Appointment is 'Confirmed' but has no schedule row.",
        })

    # Check 2: projection rows that should not exist
    stale = (
        db.query(models.Schedule, models.Appointment)
        .join(models.Appointment, models.Schedule.appointment_id == models.Appointment.id)
        .filter(or_(
            models.Appointment.status != models.AppointmentStatus.confirmed,
            models.Schedule.patient_id != models.Appointment.patient_id,
        ))
        .all()
    )
    for schedule, appointment in stale:
        report["schedule_without_confirmed"].append({
            "appointment_id": schedule.appointment_id,
            "patient_id": schedule.patient_id,
            "status": appointment.status,
            "issue": "Schedule row exists for an appointment that is not 'Confirmed' for this patient.",
        })

    # Check 3: more than one active booking per (doctor, date, time)
    collisions = (
        db.query(
            models.Appointment.doctor_id,
            models.Appointment.date,
            models.Appointment.time,
            func.count(models.Appointment.id),
        )
        .filter(models.Appointment.status.in_(models.ACTIVE_STATUSES))
        .group_by(models.Appointment.doctor_id, models.Appointment.date, models.Appointment.time)
        .having(func.count(models.Appointment.id) > 1)
        .all()
    )
    for doctor_id, slot_date, slot_time, _count in collisions:
        ids = [
            row.id for row in db.query(models.Appointment.id).filter(
                models.Appointment.doctor_id == doctor_id,
                models.Appointment.date == slot_date,
                models.Appointment.time == slot_time,
                models.Appointment.status.in_(models.ACTIVE_STATUSES),
            ).order_by(models.Appointment.id)
        ]
        report["active_slot_collisions"].append({
            "doctor_id": doctor_id,
            "date": slot_date,
            "time": slot_time,
            "appointment_ids": ids,
        })

    return report
