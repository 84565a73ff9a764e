from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agenda_api.database import get_db
from agenda_api.schemas.webhook import (
    InboundMessageRequest,
    InboundMessageResponse,
    InteractiveMessageRequest,
    InteractiveMessageResponse,
)
from agenda_api.services.inbound_service import InboundMessage, handle_inbound_message, record_interactive_message

router = APIRouter(prefix="/webhook", tags=["webhook"])


@router.post("/{instance_id}/inbound", response_model=InboundMessageResponse)
def inbound_message(instance_id: str, request: InboundMessageRequest, db: Session = Depends(get_db)):
    """Normalize an inbound provider message and make sure its conversation exists."""
    result = handle_inbound_message(
        db,
        instance_id,
        InboundMessage(
            sender=request.sender,
            to=request.to,
            body=request.body,
            message_id=request.message_id,
            timestamp_seconds=request.timestamp_seconds,
            type=request.type,
            contact_name=request.contact_name,
            media_url=request.media_url,
            interactive_button_id=request.interactive_button_id,
        ),
    )
    db.commit()

    return InboundMessageResponse(
        success=True,
        instance_id=instance_id,
        contact_number=result.contact_number,
        status=result.status.encode(),
        contact_name=result.contact_name,
        button_id=result.button_id,
        button_title=result.button_title,
    )


@router.post("/{instance_id}/interactive", response_model=InteractiveMessageResponse)
def interactive_message(instance_id: str, request: InteractiveMessageRequest, db: Session = Depends(get_db)):
    """Record buttons sent to a contact."""
    message = record_interactive_message(
        db,
        instance_id,
        request.to,
        [button.model_dump() for button in request.buttons],
        body=request.body,
        message_id=request.message_id,
    )
    db.commit()
    return InteractiveMessageResponse(success=True, id=message.id, contact_number=message.contact_number)
