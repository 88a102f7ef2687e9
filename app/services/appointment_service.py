# app/services/appointment_service.py
# Appointment Lifecycle Manager: booking, status transitions, rescheduling and
# deletion. Every public method is one unit of work ending in a single commit;
# the Schedule projection is written in the same transaction as the status.
from datetime import date, time
from typing import Callable, Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..errors import (
    Forbidden, HasDependentFeedback, InvalidTransition, NotFound, PastDate,
    ReferenceNotFound, SchedulingError, SlotConflict,
)
from ..security import Principal
from . import slot_service

logger = structlog.get_logger(__name__)

Status = models.AppointmentStatus

ALLOWED_TRANSITIONS = {
    Status.pending: frozenset({Status.confirmed, Status.cancelled, Status.completed}),
    Status.confirmed: frozenset({Status.completed, Status.cancelled}),
    Status.completed: frozenset(),
    Status.cancelled: frozenset(),
}

# Statuses a patient may move their own appointment into
PATIENT_TARGET_STATUSES = frozenset({Status.cancelled, Status.completed})


def can_transition(current: Status, target: Status) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class AppointmentLifecycleManager:
    """Validates and applies appointment changes against the active-slot invariant.

    ``today`` is the clock used for past-date checks; tests pin it.
    """

    def __init__(self, db: Session, today: Callable[[], date] = date.today):
        self.db = db
        self._today = today

    # ---------------- public operations ----------------

    def create(
        self,
        patient_id: int,
        doctor_id: int,
        on_date: date,
        at_time: time,
        specialization: Optional[str] = None,
        status: Status = Status.pending,
        actor: Optional[Principal] = None,
    ) -> models.Appointment:
        initial = Status(status)
        if actor is not None and actor.is_patient:
            if actor.id != patient_id:
                raise Forbidden("Patients can only book appointments for themselves")
            if initial != Status.pending:
                raise Forbidden("Patients can only request Pending appointments")
        if not initial.is_active:
            raise SchedulingError(f"New appointments must start as Pending or Confirmed, not {initial.value}")

        try:
            if crud.get_patient(self.db, patient_id) is None:
                raise ReferenceNotFound(f"Patient {patient_id} not found")
            doctor = crud.get_doctor(self.db, doctor_id, for_update=True)
            if doctor is None:
                raise ReferenceNotFound(f"Doctor {doctor_id} not found")
            self._check_not_past(on_date)
            self._check_slot(doctor, on_date, at_time)

            appointment = models.Appointment(
                patient_id=patient_id,
                doctor_id=doctor_id,
                specialization=specialization or doctor.expertise,
                date=on_date,
                time=at_time,
                status=initial,
            )
            self.db.add(appointment)
            self.db.flush()
            self._sync_schedule(appointment)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise self._constraint_conflict(doctor_id, on_date, at_time) from exc
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "appointment.created",
            appointment_id=appointment.id,
            doctor_id=doctor_id,
            patient_id=patient_id,
            status=initial.value,
        )
        return self._reload(appointment.id)

    def update_status(
        self,
        appointment_id: int,
        new_status: Status,
        actor: Optional[Principal] = None,
    ) -> models.Appointment:
        target = Status(new_status)
        try:
            appointment = self._get(appointment_id)
            self._authorize(appointment, actor)
            if actor is not None and actor.is_patient and target not in PATIENT_TARGET_STATUSES:
                raise Forbidden("Patients can only cancel or complete their appointments")

            current = appointment.status
            if not can_transition(current, target):
                raise InvalidTransition(current, target)
            if target == Status.confirmed:
                doctor = crud.get_doctor(self.db, appointment.doctor_id, for_update=True)
                self._check_slot(doctor, appointment.date, appointment.time, exclude_appointment_id=appointment.id)

            appointment.status = target
            self._sync_schedule(appointment)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise self._constraint_conflict(appointment.doctor_id, appointment.date, appointment.time) from exc
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "appointment.status_changed",
            appointment_id=appointment_id,
            from_status=current.value,
            to_status=target.value,
        )
        return self._reload(appointment_id)

    def reschedule(
        self,
        appointment_id: int,
        doctor_id: Optional[int] = None,
        on_date: Optional[date] = None,
        at_time: Optional[time] = None,
        actor: Optional[Principal] = None,
    ) -> models.Appointment:
        """Move an appointment to another doctor and/or date/time."""
        return self._edit(appointment_id, actor, doctor_id=doctor_id, on_date=on_date, at_time=at_time)

    def update(
        self,
        appointment_id: int,
        changes: schemas.AppointmentUpdate,
        actor: Optional[Principal] = None,
    ) -> models.Appointment:
        """Combined edit. A status-only payload goes through update_status."""
        if changes.is_status_only:
            return self.update_status(appointment_id, changes.status, actor=actor)
        return self._edit(
            appointment_id,
            actor,
            patient_id=changes.patient_id,
            doctor_id=changes.doctor_id,
            on_date=changes.date,
            at_time=changes.time,
            specialization=changes.specialization,
            status=changes.status,
        )

    def delete(self, appointment_id: int, actor: Optional[Principal] = None) -> None:
        try:
            appointment = self._get(appointment_id)
            self._authorize(appointment, actor)
            if crud.count_feedback_for_appointment(self.db, appointment_id):
                raise HasDependentFeedback(appointment_id)
            crud.remove_schedule_rows(self.db, appointment_id)
            self.db.delete(appointment)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("appointment.deleted", appointment_id=appointment_id)

    # ---------------- internals ----------------

    def _edit(
        self,
        appointment_id: int,
        actor: Optional[Principal],
        patient_id: Optional[int] = None,
        doctor_id: Optional[int] = None,
        on_date: Optional[date] = None,
        at_time: Optional[time] = None,
        specialization: Optional[str] = None,
        status: Optional[Status] = None,
    ) -> models.Appointment:
        try:
            appointment = self._get(appointment_id)
            self._authorize(appointment, actor)
            if actor is not None and actor.is_patient and patient_id not in (None, actor.id):
                raise Forbidden("Patients cannot reassign appointments to another patient")

            current = appointment.status
            target = current
            if status is not None and Status(status) != current:
                target = Status(status)
                if not can_transition(current, target):
                    raise InvalidTransition(current, target)
                if actor is not None and actor.is_patient and target not in PATIENT_TARGET_STATUSES:
                    raise Forbidden("Patients can only cancel or complete their appointments")

            new_patient_id = patient_id if patient_id is not None else appointment.patient_id
            if new_patient_id != appointment.patient_id and crud.get_patient(self.db, new_patient_id) is None:
                raise ReferenceNotFound(f"Patient {new_patient_id} not found")

            new_doctor_id = doctor_id if doctor_id is not None else appointment.doctor_id
            new_date = on_date if on_date is not None else appointment.date
            new_time = at_time if at_time is not None else appointment.time
            moves_slot = doctor_id is not None or on_date is not None or at_time is not None

            if moves_slot:
                self._check_not_past(new_date)
            if target.is_active:
                doctor = crud.get_doctor(self.db, new_doctor_id, for_update=True)
                if doctor is None:
                    raise ReferenceNotFound(f"Doctor {new_doctor_id} not found")
                self._check_slot(doctor, new_date, new_time, exclude_appointment_id=appointment.id)
            elif doctor_id is not None and crud.get_doctor(self.db, doctor_id) is None:
                raise ReferenceNotFound(f"Doctor {doctor_id} not found")

            appointment.patient_id = new_patient_id
            appointment.doctor_id = new_doctor_id
            appointment.date = new_date
            appointment.time = new_time
            if specialization is not None:
                appointment.specialization = specialization
            appointment.status = target
            self._sync_schedule(appointment)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise self._constraint_conflict(new_doctor_id, new_date, new_time) from exc
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "appointment.updated",
            appointment_id=appointment_id,
            doctor_id=new_doctor_id,
            moved=moves_slot,
            from_status=current.value,
            to_status=target.value,
        )
        return self._reload(appointment_id)

    def _get(self, appointment_id: int) -> models.Appointment:
        appointment = crud.get_appointment(self.db, appointment_id)
        if appointment is None:
            raise NotFound(f"Appointment {appointment_id} not found")
        return appointment

    def _reload(self, appointment_id: int) -> models.Appointment:
        return crud.get_appointment(self.db, appointment_id)

    @staticmethod
    def _authorize(appointment: models.Appointment, actor: Optional[Principal]) -> None:
        if actor is not None and actor.is_patient and appointment.patient_id != actor.id:
            raise Forbidden("You can only manage your own appointments")

    def _check_not_past(self, on_date: date) -> None:
        if on_date < self._today():
            raise PastDate(on_date)

    def _check_slot(self, doctor: models.Doctor, on_date: date, at_time: time,
                    exclude_appointment_id: Optional[int] = None) -> None:
        if not slot_service.is_slot_free(self.db, doctor.id, on_date, at_time,
                                         exclude_appointment_id=exclude_appointment_id):
            logger.info(
                "appointment.slot_conflict",
                doctor_id=doctor.id,
                date=on_date.isoformat(),
                time=at_time.strftime("%H:%M"),
            )
            raise SlotConflict(doctor.name, on_date, at_time)

    def _sync_schedule(self, appointment: models.Appointment) -> None:
        # Confirmed <=> exactly one (appointment, patient) row
        if appointment.status == Status.confirmed:
            crud.remove_schedule_rows(self.db, appointment.id, keep_patient_id=appointment.patient_id)
            crud.add_schedule_row(self.db, appointment.id, appointment.patient_id)
        else:
            crud.remove_schedule_rows(self.db, appointment.id)

    def _constraint_conflict(self, doctor_id: int, on_date: date, at_time: time) -> SlotConflict:
        """The partial unique index caught a booking that raced past the availability check."""
        logger.warning(
            "appointment.slot_conflict",
            doctor_id=doctor_id,
            date=on_date.isoformat(),
            time=at_time.strftime("%H:%M"),
            source="constraint",
        )
        doctor = crud.get_doctor(self.db, doctor_id)
        doctor_name = doctor.name if doctor else f"Doctor {doctor_id}"
        return SlotConflict(doctor_name, on_date, at_time)
