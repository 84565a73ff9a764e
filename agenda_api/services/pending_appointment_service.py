"""Pending appointment holds: at most one time-boxed reservation per contact.

A booking conversation spans several messages (propose a time, then confirm),
so the proposal is persisted with a TTL instead of living in memory. Expired
holds are logically absent and are purged on read or by the periodic sweep.
"""

import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda_api.config import settings
from agenda_api.database import upsert
from agenda_api.logging_config import get_logger
from agenda_api.models import PendingAppointment
from agenda_api.services.conversation_status_service import (
    expire_pending_appointments,
    find_status_row,
    mark_pending_appointment,
    release_pending_appointment,
)
from agenda_api.services.errors import HoldExpiredError, HoldNotFoundError, StoreError, ValidationError
from agenda_api.services.phone import canonical, lookup_candidates
from agenda_api.services.state_machine import ACTIVE, ConversationStatusValue, StatusKind
from agenda_api.services.timeutils import ensure_timezone, format_date_br, parse_date, parse_time, utcnow

logger = get_logger("pending_appointment_service")

HOLD_FIELDS = [
    "id",
    "owner_user_id",
    "contact_name",
    "date",
    "time",
    "duration_minutes",
    "service",
    "description",
    "created_at",
    "expires_at",
]


@dataclass
class PendingAppointmentData:
    date: str  # DD/MM/YYYY
    time: str  # HH:MM
    service: str
    duration_minutes: Optional[int] = None
    description: Optional[str] = None
    contact_name: Optional[str] = None
    hold_id: Optional[str] = None
    owner_user_id: Optional[str] = None
    expires_at: Optional[datetime] = None

    def validated(self) -> "PendingAppointmentData":
        """Return a copy with date/time in canonical form. Raises ValidationError."""
        if not (self.service or "").strip():
            raise ValidationError("Service name is required")
        if self.duration_minutes is not None and self.duration_minutes <= 0:
            raise ValidationError("Duration must be a positive number of minutes")
        return PendingAppointmentData(
            **{
                **asdict(self),
                "date": format_date_br(parse_date(self.date)),
                "time": parse_time(self.time).strftime("%H:%M"),
                "service": self.service.strip(),
            }
        )

    @classmethod
    def from_row(cls, row: PendingAppointment) -> "PendingAppointmentData":
        return cls(
            date=row.date,
            time=row.time,
            service=row.service,
            duration_minutes=row.duration_minutes,
            description=row.description,
            contact_name=row.contact_name,
            hold_id=row.id,
            owner_user_id=row.owner_user_id,
            expires_at=ensure_timezone(row.expires_at),
        )


def _is_expired(row: PendingAppointment, now: datetime) -> bool:
    return now >= ensure_timezone(row.expires_at)


def find_hold_row(db: Session, instance_id: str, contact: str, lock: bool = False) -> Optional[PendingAppointment]:
    """Canonical key first, then the legacy formatting variants. Includes expired rows."""
    for candidate in lookup_candidates(contact):
        query = db.query(PendingAppointment).filter(
            PendingAppointment.instance_id == instance_id,
            PendingAppointment.contact_number == candidate,
        )
        if lock:
            query = query.with_for_update()
        row = query.populate_existing().first()
        if row:
            return row
    return None


def _purge(db: Session, hold_ids: list[str]) -> int:
    if not hold_ids:
        return 0
    removed = (
        db.query(PendingAppointment)
        .filter(PendingAppointment.id.in_(hold_ids))
        .delete(synchronize_session=False)
    )
    expire_pending_appointments(db, hold_ids)
    db.flush()
    return removed


def store_pending_appointment(
    db: Session,
    instance_id: str,
    contact: str,
    data: PendingAppointmentData,
    owner_user_id: str,
    ttl_minutes: Optional[int] = None,
) -> PendingAppointmentData:
    """Upsert the contact's hold and flip the conversation to pending_appointment.

    Replaces any previous hold for the same contact. Store failures propagate.
    """
    data = data.validated()
    contact_number = canonical(contact)
    now = utcnow()
    expires_at = now + timedelta(minutes=ttl_minutes or settings.pending_hold_ttl_minutes)
    hold_id = str(uuid.uuid4())

    values = {
        "id": hold_id,
        "owner_user_id": owner_user_id,
        "instance_id": instance_id,
        "contact_number": contact_number,
        "contact_name": data.contact_name,
        "date": data.date,
        "time": data.time,
        "duration_minutes": data.duration_minutes,
        "service": data.service,
        "description": data.description,
        "created_at": now,
        "expires_at": expires_at,
    }
    context = {"instance_id": instance_id, "contact": contact_number, "hold_id": hold_id}

    try:
        legacy_keys = [candidate for candidate in lookup_candidates(contact) if candidate != contact_number]
        if legacy_keys:
            db.query(PendingAppointment).filter(
                PendingAppointment.instance_id == instance_id,
                PendingAppointment.contact_number.in_(legacy_keys),
            ).delete(synchronize_session=False)

        upsert(
            db,
            PendingAppointment,
            values,
            index_elements=["instance_id", "contact_number"],
            update_fields=HOLD_FIELDS,
        )
        mark_pending_appointment(db, instance_id, contact_number, hold_id)
        db.flush()
    except SQLAlchemyError as e:
        logger.error("Failed to store pending appointment", extra={"context": {**context, "error": str(e)}})
        raise StoreError("Could not store the pending appointment") from e

    logger.info(
        "Pending appointment stored",
        extra={"context": {**context, "date": data.date, "time": data.time, "expires_at": expires_at.isoformat()}},
    )
    data.hold_id = hold_id
    data.owner_user_id = owner_user_id
    data.expires_at = expires_at
    return data


def _read_live_hold(db: Session, instance_id: str, contact: str) -> Optional[PendingAppointmentData]:
    row = find_hold_row(db, instance_id, contact)
    if row is None:
        return None

    if _is_expired(row, utcnow()):
        logger.info(
            "Pending appointment expired, removing",
            extra={"context": {"instance_id": instance_id, "hold_id": row.id, "expires_at": str(row.expires_at)}},
        )
        _purge(db, [row.id])
        return None

    return PendingAppointmentData.from_row(row)


def get_pending_appointment(db: Session, instance_id: str, contact: str) -> Optional[PendingAppointmentData]:
    """Live hold for the contact, or None. Expired holds are deleted on the way."""
    try:
        with db.begin_nested():
            return _read_live_hold(db, instance_id, contact)
    except SQLAlchemyError as e:
        logger.error(
            "Failed to read pending appointment",
            extra={"context": {"instance_id": instance_id, "contact": contact, "error": str(e)}},
        )
        return None


def require_live_hold(db: Session, instance_id: str, contact: str) -> PendingAppointment:
    """Locked live hold row for confirmation.

    Raises HoldExpiredError when the contact's last hold lapsed and
    HoldNotFoundError when there is nothing to confirm.
    """
    row = find_hold_row(db, instance_id, contact, lock=True)
    if row is not None and not _is_expired(row, utcnow()):
        return row

    if row is not None:
        _purge(db, [row.id])
        raise HoldExpiredError("The pending appointment expired before it was confirmed")

    status_row = find_status_row(db, instance_id, contact)
    if status_row is not None and (
        status_row.expired_hold_id or status_row.status == StatusKind.PENDING_APPOINTMENT.value
    ):
        raise HoldExpiredError("The pending appointment expired before it was confirmed")
    raise HoldNotFoundError("There is no pending appointment to confirm")


def clear_pending_appointment(
    db: Session,
    instance_id: str,
    contact: str,
    next_status: ConversationStatusValue = ACTIVE,
) -> bool:
    """Delete the contact's hold (if any) and move the conversation to next_status."""
    candidates = lookup_candidates(contact)
    try:
        removed = (
            db.query(PendingAppointment)
            .filter(
                PendingAppointment.instance_id == instance_id,
                PendingAppointment.contact_number.in_(candidates),
            )
            .delete(synchronize_session=False)
        )
        release_pending_appointment(db, instance_id, candidates, next_status)
        db.flush()
    except SQLAlchemyError as e:
        logger.error(
            "Failed to clear pending appointment",
            extra={"context": {"instance_id": instance_id, "contact": contact, "error": str(e)}},
        )
        raise StoreError("Could not clear the pending appointment") from e

    if removed:
        logger.info(f"Pending appointment cleared: {instance_id}-{candidates[0]} -> {next_status}")
    return bool(removed)


def sweep_expired_pending_appointments(db: Session) -> int:
    """Delete every expired hold. Returns how many were removed; store failures raise StoreError."""
    now = utcnow()
    try:
        expired_ids = [
            row[0] for row in db.query(PendingAppointment.id).filter(PendingAppointment.expires_at < now).all()
        ]
        removed = _purge(db, expired_ids)
    except SQLAlchemyError as e:
        logger.error("Expired pending appointment sweep failed", extra={"context": {"error": str(e)}})
        raise StoreError("Could not sweep expired pending appointments") from e

    logger.info(f"Removed {removed} expired pending appointments")
    return removed


def list_live_holds_for_date(
    db: Session, owner_user_id: str, instance_id: Optional[str], day: str
) -> list[PendingAppointment]:
    """Live holds on a DD/MM/YYYY day, optionally restricted to one instance."""
    query = db.query(PendingAppointment).filter(
        PendingAppointment.owner_user_id == owner_user_id,
        PendingAppointment.date == day,
        PendingAppointment.expires_at > utcnow(),
    )
    if instance_id:
        query = query.filter(PendingAppointment.instance_id == instance_id)
    return query.all()
