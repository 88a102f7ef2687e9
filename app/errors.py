# app/errors.py
from fastapi import status


class SchedulingError(Exception):
    """Base class for expected, user-facing outcomes. Mapped to a 4xx response."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND


class ReferenceNotFound(NotFound):
    """A record referenced from a request payload (not the path) does not exist."""
    status_code = status.HTTP_400_BAD_REQUEST


class SlotConflict(SchedulingError):
    def __init__(self, doctor_name: str, slot_date, slot_time):
        super().__init__(
            f"{doctor_name} is already booked on {slot_date.isoformat()} at "
            f"{slot_time.strftime('%H:%M')}. Please select another time slot."
        )
        self.doctor_name = doctor_name
        self.date = slot_date
        self.time = slot_time


class InvalidTransition(SchedulingError):
    def __init__(self, current, target):
        super().__init__(f"Cannot change appointment status from {current.value} to {target.value}")
        self.current = current
        self.target = target


class PastDate(SchedulingError):
    def __init__(self, requested_date):
        super().__init__(f"Cannot book an appointment on {requested_date.isoformat()}, which is in the past")
        self.date = requested_date


class InvalidRating(SchedulingError):
    def __init__(self, rating):
        super().__init__(f"Rating must be an integer between 1 and 5 (got {rating!r})")
        self.rating = rating


class DuplicateFeedback(SchedulingError):
    def __init__(self, appointment_id: int):
        super().__init__(f"Feedback already exists for appointment {appointment_id} from this reviewer")
        self.appointment_id = appointment_id


class FeedbackNotAllowed(SchedulingError):
    def __init__(self, appointment_id: int, current):
        super().__init__(
            f"Feedback can only be given for completed appointments "
            f"(appointment {appointment_id} is {current.value})"
        )
        self.appointment_id = appointment_id


class HasDependentFeedback(SchedulingError):
    def __init__(self, appointment_id: int):
        super().__init__(f"Cannot delete appointment {appointment_id} with feedback. Delete feedback first.")


class HasDependentAppointments(SchedulingError):
    def __init__(self, kind: str, record_id: int):
        super().__init__(f"Cannot delete {kind} {record_id} with existing appointments")


class DuplicateRecord(SchedulingError):
    pass


class Forbidden(SchedulingError):
    status_code = status.HTTP_403_FORBIDDEN


class InvalidCredentials(SchedulingError):
    status_code = status.HTTP_401_UNAUTHORIZED


class NotAppointmentParty(SchedulingError):
    def __init__(self, role: str, person_type, person_id: int, appointment_id: int):
        super().__init__(
            f"{person_type.value} {person_id} is not the {role} party of appointment {appointment_id}"
        )
        self.appointment_id = appointment_id
