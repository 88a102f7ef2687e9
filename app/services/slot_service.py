# app/services/slot_service.py
# Availability checker: a doctor's (date, time) slot is taken by any Pending or
# Confirmed appointment. Completed and Cancelled bookings release the slot.
from datetime import date, time
from typing import Optional

from sqlalchemy.orm import Session

from .. import crud


def is_slot_free(
    db: Session,
    doctor_id: int,
    slot_date: date,
    slot_time: time,
    exclude_appointment_id: Optional[int] = None,
) -> bool:
    """True when no active appointment other than exclude_appointment_id holds the slot.

    Pure query; callers that act on the answer must hold the doctor row lock
    (see crud.get_doctor(..., for_update=True)) inside the same transaction.
    """
    occupant = crud.find_active_appointment(
        db, doctor_id, slot_date, slot_time, exclude_appointment_id=exclude_appointment_id
    )
    return occupant is None
