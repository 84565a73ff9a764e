"""Booking operations exposed to the conversational agent.

Calls may be repeated or arrive out of order, so every operation is keyed by
(instance, contact) and safe to retry. Outcomes are Results so the agent can
tell "hold expired" from "nothing to confirm" from "try again".
"""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda_api.logging_config import conversation_logger
from agenda_api.models import Appointment
from agenda_api.services import appointment_service, availability_service
from agenda_api.services.availability_service import AvailabilityResult, BookedInterval
from agenda_api.services.errors import AgendaError, NotFoundError, StoreError
from agenda_api.services.pending_appointment_service import (
    PendingAppointmentData,
    clear_pending_appointment,
    get_pending_appointment,
    require_live_hold,
    store_pending_appointment,
)
from agenda_api.services.result import Result
from agenda_api.services.timeutils import DateLike, combine

CONFIRM_FAILED_MESSAGE = "Could not confirm the appointment, please try again"


def check_availability(db: Session, owner_user_id: str, day: DateLike) -> Result[list[BookedInterval]]:
    try:
        return Result.success(availability_service.check_availability(db, owner_user_id, day))
    except AgendaError as e:
        return Result.from_error(e)


def get_available_times(
    db: Session,
    owner_user_id: str,
    instance_id: str,
    day: DateLike,
    duration_minutes: int = 60,
    start_hour: Optional[int] = None,
    end_hour: Optional[int] = None,
) -> Result[AvailabilityResult]:
    try:
        return Result.success(
            availability_service.available_times(
                db, owner_user_id, day, duration_minutes, start_hour, end_hour, instance_id=instance_id
            )
        )
    except AgendaError as e:
        return Result.from_error(e)


def store_pending_hold(
    db: Session, instance_id: str, contact: str, owner_user_id: str, data: PendingAppointmentData
) -> Result[PendingAppointmentData]:
    try:
        return Result.success(store_pending_appointment(db, instance_id, contact, data, owner_user_id))
    except StoreError as e:
        db.rollback()
        return Result.from_error(e)
    except AgendaError as e:
        return Result.from_error(e)


def get_pending_hold(db: Session, instance_id: str, contact: str) -> Result[Optional[PendingAppointmentData]]:
    return Result.success(get_pending_appointment(db, instance_id, contact))


def confirm_pending_hold(
    db: Session, instance_id: str, contact: str, owner_user_id: Optional[str] = None
) -> Result[Appointment]:
    """Turn the contact's live hold into a pending appointment and release the conversation."""
    log = conversation_logger("booking_service", instance_id, contact)
    try:
        hold = require_live_hold(db, instance_id, contact)
    except NotFoundError as e:
        log.info(f"Nothing to confirm: {e.message}")
        return Result.from_error(e)
    except AgendaError as e:
        log.info(f"Hold cannot be confirmed: {e.message}")
        return Result.from_error(e)
    except SQLAlchemyError as e:
        db.rollback()
        log.error("Hold lookup failed during confirmation", context={"error": str(e)})
        return Result.failure(CONFIRM_FAILED_MESSAGE, "confirm_failed")

    if owner_user_id and hold.owner_user_id != owner_user_id:
        return Result.failure("There is no pending appointment to confirm", "no_pending_hold")

    description = hold.service if not hold.description else f"{hold.service} - {hold.description}"
    try:
        appointment = appointment_service.create_appointment(
            db,
            hold.owner_user_id,
            instance_id,
            hold.contact_number,
            combine(hold.date, hold.time),
            duration_minutes=hold.duration_minutes,
            description=description,
            contact_name=hold.contact_name,
        )
        clear_pending_appointment(db, instance_id, contact)
    except StoreError as e:
        db.rollback()
        log.error("Appointment confirmation failed", context={"error": e.message})
        return Result.failure(CONFIRM_FAILED_MESSAGE, "confirm_failed")
    except AgendaError as e:
        return Result.from_error(e)

    log.info("Pending appointment confirmed", context={"appointment_id": appointment.id, "hold_id": hold.id})
    return Result.success(appointment)


def cancel_pending_hold(db: Session, instance_id: str, contact: str) -> Result[bool]:
    try:
        return Result.success(clear_pending_appointment(db, instance_id, contact))
    except StoreError as e:
        db.rollback()
        return Result.from_error(e)


def get_user_appointments(
    db: Session, owner_user_id: str, instance_id: str, contact: str, include_past: bool = False
) -> Result[list[Appointment]]:
    try:
        with db.begin_nested():
            appointments = appointment_service.get_contact_appointments(
                db, owner_user_id, instance_id, contact, include_past
            )
    except SQLAlchemyError as e:
        conversation_logger("booking_service", instance_id, contact).error(
            "Failed to load contact appointments", context={"error": str(e)}
        )
        return Result.failure("Could not load appointments", "store_error")
    return Result.success(appointments)


def reschedule_appointment(
    db: Session,
    owner_user_id: str,
    appointment_id: str,
    new_date: DateLike,
    new_duration: Optional[int] = None,
) -> Result[Appointment]:
    try:
        return Result.success(
            appointment_service.reschedule_appointment(db, appointment_id, owner_user_id, new_date, new_duration)
        )
    except StoreError as e:
        db.rollback()
        return Result.from_error(e)
    except AgendaError as e:
        return Result.from_error(e)
