"""Per (instance, contact) conversation status.

A live pending-appointment hold outranks every other status: while one exists,
status writes from the conversation flow are suppressed. Only the hold store
(mark/release/expire below) moves a conversation in or out of
pending_appointment.
"""

import uuid
from datetime import datetime
from typing import Iterable, Optional, Union

from sqlalchemy import and_, case, exists, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda_api.database import insert_ignore, upsert
from agenda_api.logging_config import get_logger
from agenda_api.models import ConversationStatus, PendingAppointment
from agenda_api.services.errors import ValidationError
from agenda_api.services.phone import canonical, lookup_candidates
from agenda_api.services.state_machine import (
    ACTIVE,
    CLOSED,
    WAITING_HUMAN,
    ConversationStatusValue,
    StatusKind,
)
from agenda_api.services.timeutils import utcnow

logger = get_logger("conversation_status_service")

StatusLike = Union[ConversationStatusValue, StatusKind, str]


def _coerce(status: StatusLike) -> ConversationStatusValue:
    if isinstance(status, ConversationStatusValue):
        return status
    if isinstance(status, StatusKind):
        return ConversationStatusValue(status)
    return ConversationStatusValue.parse(status)


def _row_value(row: ConversationStatus) -> ConversationStatusValue:
    kind = StatusKind(row.status)
    return ConversationStatusValue(kind, row.hold_id if kind == StatusKind.PENDING_APPOINTMENT else None)


def _live_hold_clause(instance_id: str, contact_number: str, now: datetime):
    return exists().where(
        and_(
            PendingAppointment.instance_id == instance_id,
            PendingAppointment.contact_number == contact_number,
            PendingAppointment.expires_at > now,
        )
    )


def _find_live_hold_id(db: Session, instance_id: str, contact: str, now: datetime) -> Optional[str]:
    row = (
        db.query(PendingAppointment.id)
        .filter(
            PendingAppointment.instance_id == instance_id,
            PendingAppointment.contact_number.in_(lookup_candidates(contact)),
            PendingAppointment.expires_at > now,
        )
        .first()
    )
    return row[0] if row else None


def find_status_row(db: Session, instance_id: str, contact: str) -> Optional[ConversationStatus]:
    """Canonical key first, then legacy formatting variants."""
    for candidate in lookup_candidates(contact):
        row = (
            db.query(ConversationStatus)
            .filter(ConversationStatus.instance_id == instance_id, ConversationStatus.contact_number == candidate)
            .populate_existing()
            .first()
        )
        if row:
            return row
    return None


def ensure_conversation_status(db: Session, instance_id: str, contact: str) -> bool:
    """Create an 'active' record if none exists. Safe to call on every inbound message."""
    contact_number = canonical(contact)
    now = utcnow()
    try:
        with db.begin_nested():
            inserted = insert_ignore(
                db,
                ConversationStatus,
                {
                    "id": str(uuid.uuid4()),
                    "instance_id": instance_id,
                    "contact_number": contact_number,
                    "status": StatusKind.ACTIVE.value,
                    "created_at": now,
                    "updated_at": now,
                },
                ["instance_id", "contact_number"],
            )
    except SQLAlchemyError as e:
        logger.error(
            "Failed to ensure conversation status",
            extra={"context": {"instance_id": instance_id, "contact": contact_number, "error": str(e)}},
        )
        return False

    if inserted:
        logger.info(f"Conversation status created: {instance_id}-{contact_number} -> active")
    return inserted


def _read_status(db: Session, instance_id: str, contact: str) -> ConversationStatusValue:
    hold_id = _find_live_hold_id(db, instance_id, contact, utcnow())
    if hold_id:
        return ConversationStatusValue.pending(hold_id)

    row = find_status_row(db, instance_id, contact)
    if row is None:
        return ACTIVE

    value = _row_value(row)
    if value.is_pending_appointment:
        # Hold lapsed or was removed out of band.
        return ACTIVE
    return value


def get_conversation_status(db: Session, instance_id: str, contact: str) -> ConversationStatusValue:
    """Current status; 'active' when unknown or unreadable."""
    try:
        with db.begin_nested():
            return _read_status(db, instance_id, contact)
    except (SQLAlchemyError, ValueError, ValidationError) as e:
        logger.error(
            "Failed to read conversation status, defaulting to active",
            extra={"context": {"instance_id": instance_id, "contact": contact, "error": str(e)}},
        )
        return ACTIVE


def update_conversation_status(db: Session, instance_id: str, contact: str, new_status: StatusLike) -> bool:
    """Guarded write. Returns False when suppressed by a live hold or on store failure."""
    value = _coerce(new_status)
    if value.is_pending_appointment:
        raise ValidationError("pending_appointment is set only by storing a pending appointment")

    contact_number = canonical(contact)
    now = utcnow()
    context = {"instance_id": instance_id, "contact": contact_number, "status": value.encode()}

    # Overwriting a lapsed pending_appointment keeps the hold id, so a late
    # confirmation still reports the hold as expired.
    guarded = (
        update(ConversationStatus)
        .where(
            ConversationStatus.instance_id == instance_id,
            ConversationStatus.contact_number == contact_number,
            ~_live_hold_clause(instance_id, contact_number, now),
        )
        .values(
            status=value.kind.value,
            hold_id=None,
            expired_hold_id=case(
                (
                    ConversationStatus.status == StatusKind.PENDING_APPOINTMENT.value,
                    ConversationStatus.hold_id,
                ),
                else_=ConversationStatus.expired_hold_id,
            ),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )

    try:
        with db.begin_nested():
            if db.execute(guarded).rowcount:
                logger.info("Conversation status updated", extra={"context": context})
                return True

            if db.query(_live_hold_clause(instance_id, contact_number, now)).scalar():
                logger.warning("Pending appointment in progress, status update suppressed", extra={"context": context})
                return False

            inserted = insert_ignore(
                db,
                ConversationStatus,
                {
                    "id": str(uuid.uuid4()),
                    "instance_id": instance_id,
                    "contact_number": contact_number,
                    "status": value.kind.value,
                    "created_at": now,
                    "updated_at": now,
                },
                ["instance_id", "contact_number"],
            )
            if inserted:
                logger.info("Conversation status created", extra={"context": context})
                return True

            # A concurrent writer created the record between our statements.
            return bool(db.execute(guarded).rowcount)
    except SQLAlchemyError as e:
        logger.error("Failed to update conversation status", extra={"context": {**context, "error": str(e)}})
        return False


def request_human(db: Session, instance_id: str, contact: str) -> bool:
    return update_conversation_status(db, instance_id, contact, WAITING_HUMAN)


def close_conversation(db: Session, instance_id: str, contact: str) -> bool:
    return update_conversation_status(db, instance_id, contact, CLOSED)


def reactivate_conversation(db: Session, instance_id: str, contact: str) -> bool:
    return update_conversation_status(db, instance_id, contact, ACTIVE)


def list_conversations(db: Session, instance_id: str, kind: Optional[StatusKind] = None) -> list[ConversationStatus]:
    query = db.query(ConversationStatus).filter(ConversationStatus.instance_id == instance_id)
    if kind is not None:
        query = query.filter(ConversationStatus.status == kind.value)
    return query.order_by(ConversationStatus.updated_at.desc()).all()


def mark_pending_appointment(db: Session, instance_id: str, contact_number: str, hold_id: str) -> None:
    """Point the conversation at a freshly stored hold. Errors propagate."""
    now = utcnow()
    upsert(
        db,
        ConversationStatus,
        {
            "id": str(uuid.uuid4()),
            "instance_id": instance_id,
            "contact_number": contact_number,
            "status": StatusKind.PENDING_APPOINTMENT.value,
            "hold_id": hold_id,
            "expired_hold_id": None,
            "created_at": now,
            "updated_at": now,
        },
        index_elements=["instance_id", "contact_number"],
        update_fields=["status", "hold_id", "expired_hold_id", "updated_at"],
    )


def release_pending_appointment(
    db: Session,
    instance_id: str,
    contact_numbers: Iterable[str],
    next_status: ConversationStatusValue = ACTIVE,
) -> int:
    """Move pending_appointment records back to next_status after an explicit clear."""
    if next_status.is_pending_appointment:
        raise ValidationError("Cannot release a pending appointment into another pending appointment")

    now = utcnow()
    contact_numbers = list(contact_numbers)
    db.execute(
        update(ConversationStatus)
        .where(
            ConversationStatus.instance_id == instance_id,
            ConversationStatus.contact_number.in_(contact_numbers),
        )
        .values(expired_hold_id=None)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(
        update(ConversationStatus)
        .where(
            ConversationStatus.instance_id == instance_id,
            ConversationStatus.contact_number.in_(contact_numbers),
            ConversationStatus.status == StatusKind.PENDING_APPOINTMENT.value,
        )
        .values(status=next_status.kind.value, hold_id=None, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def expire_pending_appointments(db: Session, hold_ids: Iterable[str]) -> int:
    """Reset statuses that still reference purged holds, remembering which hold lapsed."""
    hold_ids = list(hold_ids)
    if not hold_ids:
        return 0

    now = utcnow()
    rows = (
        db.query(ConversationStatus)
        .filter(
            ConversationStatus.status == StatusKind.PENDING_APPOINTMENT.value,
            ConversationStatus.hold_id.in_(hold_ids),
        )
        .populate_existing()
        .all()
    )
    for row in rows:
        row.expired_hold_id = row.hold_id
        row.hold_id = None
        row.status = StatusKind.ACTIVE.value
        row.updated_at = now
    db.flush()
    return len(rows)
