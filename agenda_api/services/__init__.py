from agenda_api.services.conversation_status_service import (
    ensure_conversation_status,
    get_conversation_status,
    update_conversation_status,
)
from agenda_api.services.errors import (
    AgendaError,
    ConflictError,
    HoldExpiredError,
    HoldNotFoundError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from agenda_api.services.pending_appointment_service import (
    PendingAppointmentData,
    clear_pending_appointment,
    get_pending_appointment,
    store_pending_appointment,
)
from agenda_api.services.state_machine import (
    AppointmentStatus,
    ConversationStatusValue,
    InvalidTransitionError,
    StatusKind,
    can_transition,
    transition,
)
