from agenda_api.schemas.appointment import AppointmentCreateRequest, AppointmentResponse
from agenda_api.schemas.booking import ConfirmHoldResponse, PendingHoldRequest, PendingHoldResponse
from agenda_api.schemas.conversation import ConversationStatusResponse, ConversationStatusUpdateRequest
from agenda_api.schemas.slot_config import SlotConfigRequest, SlotConfigResponse
from agenda_api.schemas.webhook import InboundMessageRequest, InboundMessageResponse

__all__ = [
    "AppointmentCreateRequest",
    "AppointmentResponse",
    "ConfirmHoldResponse",
    "ConversationStatusResponse",
    "ConversationStatusUpdateRequest",
    "InboundMessageRequest",
    "InboundMessageResponse",
    "PendingHoldRequest",
    "PendingHoldResponse",
    "SlotConfigRequest",
    "SlotConfigResponse",
]
