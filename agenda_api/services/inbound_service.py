"""Normalization of inbound provider messages before the conversation flow sees them."""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda_api.logging_config import conversation_logger
from agenda_api.models import InteractiveMessage
from agenda_api.services import contact_cache
from agenda_api.services.conversation_status_service import ensure_conversation_status, get_conversation_status
from agenda_api.services.phone import canonical, lookup_candidates
from agenda_api.services.state_machine import ConversationStatusValue
from agenda_api.services.timeutils import utcnow

BUTTON_REPLY_TYPE = "interactive_button_reply"


@dataclass
class InboundMessage:
    sender: str
    to: Optional[str]
    body: Optional[str]
    message_id: Optional[str]
    timestamp_seconds: Optional[int]
    type: str = "text"
    contact_name: Optional[str] = None
    media_url: Optional[str] = None
    interactive_button_id: Optional[str] = None


@dataclass
class InboundResult:
    instance_id: str
    contact_number: str
    status: ConversationStatusValue
    contact_name: Optional[str] = None
    button_id: Optional[str] = None
    button_title: Optional[str] = None


def _last_interactive_message(db: Session, instance_id: str, contact: str) -> Optional[InteractiveMessage]:
    return (
        db.query(InteractiveMessage)
        .filter(
            InteractiveMessage.instance_id == instance_id,
            InteractiveMessage.contact_number.in_(lookup_candidates(contact)),
        )
        .order_by(InteractiveMessage.created_at.desc())
        .first()
    )


def resolve_button_reply(
    db: Session, instance_id: str, contact: str, button_id: Optional[str], text: Optional[str]
) -> tuple[Optional[str], Optional[str]]:
    """(button_id, title) for a button reply.

    The provider id is trusted when it matches a recorded button or when there
    is nothing recorded. Otherwise the reply text is matched against the
    titles of the last interactive message sent to the contact.
    """
    message = _last_interactive_message(db, instance_id, contact)
    buttons = (message.buttons or []) if message else []

    if button_id:
        for button in buttons:
            if button.get("id") == button_id:
                return button_id, button.get("title")

    if text:
        wanted = text.strip().lower()
        for button in buttons:
            if (button.get("title") or "").strip().lower() == wanted:
                return button.get("id"), button.get("title")

    return button_id, text


def record_interactive_message(
    db: Session,
    instance_id: str,
    contact: str,
    buttons: list[dict],
    body: Optional[str] = None,
    message_id: Optional[str] = None,
) -> InteractiveMessage:
    """Remember buttons sent to a contact so later replies can be resolved."""
    message = InteractiveMessage(
        instance_id=instance_id,
        contact_number=canonical(contact),
        message_id=message_id,
        body=body,
        buttons=[{"id": button["id"], "title": button["title"]} for button in buttons],
        created_at=utcnow(),
    )
    db.add(message)
    db.flush()
    return message


def handle_inbound_message(db: Session, instance_id: str, message: InboundMessage) -> InboundResult:
    contact_number = canonical(message.sender)
    log = conversation_logger("inbound_service", instance_id, contact_number)

    ensure_conversation_status(db, instance_id, contact_number)
    contact_cache.remember_contact_name(instance_id, contact_number, message.contact_name)

    result = InboundResult(
        instance_id=instance_id,
        contact_number=contact_number,
        status=get_conversation_status(db, instance_id, contact_number),
        contact_name=message.contact_name or contact_cache.get_contact_name(instance_id, contact_number),
    )

    if message.type == BUTTON_REPLY_TYPE:
        try:
            result.button_id, result.button_title = resolve_button_reply(
                db, instance_id, contact_number, message.interactive_button_id, message.body
            )
        except SQLAlchemyError as e:
            log.error("Button reply lookup failed", context={"error": str(e)})
            result.button_id, result.button_title = message.interactive_button_id, message.body

    log.info(
        "Inbound message received",
        context={"message_id": message.message_id, "type": message.type, "status": result.status.encode()},
    )
    return result
