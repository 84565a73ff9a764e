from agenda_api.models.appointment import Appointment
from agenda_api.models.conversation_status import ConversationStatus
from agenda_api.models.interactive_message import InteractiveMessage
from agenda_api.models.pending_appointment import PendingAppointment
from agenda_api.models.slot_config import SlotConfig

__all__ = [
    "Appointment",
    "ConversationStatus",
    "InteractiveMessage",
    "PendingAppointment",
    "SlotConfig",
]
