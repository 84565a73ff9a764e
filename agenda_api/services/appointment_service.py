"""Durable appointments.

Every mutation loads the row filtered by owner with a row lock, so the tenant
check and the write happen in the same transaction.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda_api.logging_config import get_logger
from agenda_api.models import Appointment
from agenda_api.services.errors import ConflictError, NotFoundError, StoreError, ValidationError
from agenda_api.services.phone import canonical, lookup_candidates
from agenda_api.services.slots import DEFAULT_DURATION_MINUTES
from agenda_api.services.state_machine import (
    TERMINAL_STATUSES,
    AppointmentStatus,
    cancel,
    complete,
    confirm,
    unconfirm,
)
from agenda_api.services.timeutils import DateLike, parse_datetime, utcnow

logger = get_logger("appointment_service")


def _duration_or_default(duration_minutes: Optional[int]) -> int:
    if not duration_minutes or duration_minutes <= 0:
        return DEFAULT_DURATION_MINUTES
    return duration_minutes


# Order-style completion states used by staff tooling.
COMPLETION_ALIASES = {"delivered": AppointmentStatus.COMPLETED, "picked_up": AppointmentStatus.COMPLETED}


def _parse_status(value) -> AppointmentStatus:
    if value in COMPLETION_ALIASES:
        return COMPLETION_ALIASES[value]
    try:
        return AppointmentStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown appointment status: {value!r}")


def _load_owned(db: Session, appointment_id: str, owner_user_id: str) -> Appointment:
    appointment = (
        db.query(Appointment)
        .filter(Appointment.id == appointment_id, Appointment.owner_user_id == owner_user_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if appointment is None:
        raise NotFoundError(f"Appointment {appointment_id} not found")
    return appointment


def _flush(db: Session, action: str, appointment_id: Optional[str]) -> None:
    try:
        db.flush()
    except SQLAlchemyError as e:
        logger.error(
            f"Failed to {action} appointment",
            extra={"context": {"appointment_id": appointment_id, "error": str(e)}},
        )
        raise StoreError(f"Could not {action} the appointment") from e


def create_appointment(
    db: Session,
    owner_user_id: str,
    instance_id: Optional[str],
    contact: str,
    date: DateLike,
    duration_minutes: Optional[int] = None,
    description: Optional[str] = None,
    contact_name: Optional[str] = None,
    status: AppointmentStatus = AppointmentStatus.PENDING,
) -> Appointment:
    if not owner_user_id:
        raise ValidationError("owner_user_id is required")

    start = parse_datetime(date)
    duration = _duration_or_default(duration_minutes)
    status = _parse_status(status)
    now = utcnow()

    appointment = Appointment(
        owner_user_id=owner_user_id,
        instance_id=instance_id,
        contact_number=canonical(contact),
        contact_name=contact_name,
        date=start,
        end_date=start + timedelta(minutes=duration),
        duration_minutes=duration,
        description=description,
        status=status.value,
        completed_at=now if status == AppointmentStatus.COMPLETED else None,
        created_at=now,
        updated_at=now,
    )
    db.add(appointment)
    _flush(db, "create", None)

    logger.info(
        "Appointment created",
        extra={
            "context": {
                "appointment_id": appointment.id,
                "owner_user_id": owner_user_id,
                "date": start.isoformat(),
                "duration": duration,
                "status": status.value,
            }
        },
    )
    return appointment


def get_appointment(db: Session, appointment_id: str, owner_user_id: str) -> Appointment:
    appointment = (
        db.query(Appointment)
        .filter(Appointment.id == appointment_id, Appointment.owner_user_id == owner_user_id)
        .first()
    )
    if appointment is None:
        raise NotFoundError(f"Appointment {appointment_id} not found")
    return appointment


def list_appointments(
    db: Session,
    owner_user_id: str,
    status: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> list[Appointment]:
    query = db.query(Appointment).filter(Appointment.owner_user_id == owner_user_id)
    if status and status != "all":
        query = query.filter(Appointment.status == _parse_status(status).value)
    if date_from:
        query = query.filter(Appointment.date >= date_from)
    if date_to:
        query = query.filter(Appointment.date <= date_to)
    return query.order_by(Appointment.date.asc()).all()


def get_contact_appointments(
    db: Session,
    owner_user_id: str,
    instance_id: str,
    contact: str,
    include_past: bool = False,
    now: Optional[datetime] = None,
) -> list[Appointment]:
    """A contact's appointments, upcoming only unless include_past."""
    query = db.query(Appointment).filter(
        Appointment.owner_user_id == owner_user_id,
        Appointment.instance_id == instance_id,
        Appointment.contact_number.in_(lookup_candidates(contact)),
    )
    if not include_past:
        query = query.filter(Appointment.date >= (now or datetime.now()))
    return query.order_by(Appointment.date.asc()).all()


def reschedule_appointment(
    db: Session,
    appointment_id: str,
    owner_user_id: str,
    new_date: DateLike,
    new_duration: Optional[int] = None,
) -> Appointment:
    start = parse_datetime(new_date)
    if new_duration is not None and new_duration <= 0:
        raise ValidationError("Duration must be a positive number of minutes")

    appointment = _load_owned(db, appointment_id, owner_user_id)
    if AppointmentStatus(appointment.status) in TERMINAL_STATUSES:
        raise ConflictError(f"Cannot reschedule a {appointment.status} appointment")

    duration = new_duration or _duration_or_default(appointment.duration_minutes)
    old_date = appointment.date
    appointment.date = start
    appointment.duration_minutes = duration
    appointment.end_date = start + timedelta(minutes=duration)
    appointment.updated_at = utcnow()
    _flush(db, "reschedule", appointment_id)

    logger.info(f"Appointment {appointment_id} rescheduled: {old_date.isoformat()} -> {start.isoformat()}")
    return appointment


STATUS_ACTIONS = {
    AppointmentStatus.PENDING: unconfirm,
    AppointmentStatus.CONFIRMED: confirm,
    AppointmentStatus.CANCELLED: cancel,
    AppointmentStatus.COMPLETED: complete,
}


def _apply_status_action(db: Session, appointment_id: str, owner_user_id: str, action) -> Appointment:
    appointment = _load_owned(db, appointment_id, owner_user_id)
    old_status = AppointmentStatus(appointment.status)
    target = action(old_status)

    now = utcnow()
    appointment.status = target.value
    appointment.updated_at = now
    if target == AppointmentStatus.COMPLETED:
        appointment.completed_at = now
    _flush(db, "update", appointment_id)

    logger.info(f"Appointment {appointment_id} status: {old_status.value} -> {target.value}")
    return appointment


def set_appointment_status(db: Session, appointment_id: str, owner_user_id: str, new_status) -> Appointment:
    return _apply_status_action(db, appointment_id, owner_user_id, STATUS_ACTIONS[_parse_status(new_status)])


def cancel_appointment(db: Session, appointment_id: str, owner_user_id: str) -> Appointment:
    return _apply_status_action(db, appointment_id, owner_user_id, cancel)



def delete_appointment(db: Session, appointment_id: str, owner_user_id: str) -> None:
    appointment = _load_owned(db, appointment_id, owner_user_id)
    db.delete(appointment)
    _flush(db, "delete", appointment_id)
    logger.info(f"Appointment {appointment_id} deleted by {owner_user_id}")
