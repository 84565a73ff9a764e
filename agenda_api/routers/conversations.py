from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agenda_api.database import get_db
from agenda_api.schemas.conversation import (
    ConversationStatusResponse,
    ConversationStatusUpdateRequest,
    ConversationStatusUpdateResponse,
    ConversationSummary,
)
from agenda_api.services.conversation_status_service import (
    get_conversation_status,
    list_conversations,
    update_conversation_status,
)
from agenda_api.services.phone import canonical
from agenda_api.services.state_machine import StatusKind

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("/{instance_id}", response_model=list[ConversationSummary])
def conversations(instance_id: str, status: Optional[StatusKind] = None, db: Session = Depends(get_db)):
    return list_conversations(db, instance_id, status)


@router.get("/{instance_id}/{contact}/status", response_model=ConversationStatusResponse)
def conversation_status(instance_id: str, contact: str, db: Session = Depends(get_db)):
    value = get_conversation_status(db, instance_id, contact)
    return ConversationStatusResponse(
        instance_id=instance_id,
        contact_number=canonical(contact),
        status=value.kind.value,
        hold_id=value.hold_id,
    )


@router.put("/{instance_id}/{contact}/status", response_model=ConversationStatusUpdateResponse)
def set_conversation_status(
    instance_id: str,
    contact: str,
    request: ConversationStatusUpdateRequest,
    db: Session = Depends(get_db),
):
    """Move the conversation to active/waiting_human/closed unless a booking is in progress."""
    updated = update_conversation_status(db, instance_id, contact, request.status)
    db.commit()

    current = get_conversation_status(db, instance_id, contact)
    return ConversationStatusUpdateResponse(
        success=True,
        updated=updated,
        status=current.kind.value,
        message=None if updated else "Status not changed: a pending appointment is in progress or the store failed",
    )
