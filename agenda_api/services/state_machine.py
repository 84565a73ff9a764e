from dataclasses import dataclass
from enum import Enum
from typing import Optional

from agenda_api.services.errors import ConflictError, ValidationError


class StatusKind(str, Enum):
    ACTIVE = "active"
    WAITING_HUMAN = "waiting_human"
    CLOSED = "closed"
    PENDING_APPOINTMENT = "pending_appointment"


PENDING_APPOINTMENT_PREFIX = f"{StatusKind.PENDING_APPOINTMENT.value}:"


@dataclass(frozen=True)
class ConversationStatusValue:
    """Tagged conversation status. Only PENDING_APPOINTMENT carries a hold id."""

    kind: StatusKind
    hold_id: Optional[str] = None

    def __post_init__(self):
        if self.kind == StatusKind.PENDING_APPOINTMENT and not self.hold_id:
            raise ValidationError("pending_appointment status requires a hold id")
        if self.kind != StatusKind.PENDING_APPOINTMENT and self.hold_id:
            raise ValidationError(f"{self.kind.value} status cannot reference a hold")

    @property
    def is_pending_appointment(self) -> bool:
        return self.kind == StatusKind.PENDING_APPOINTMENT

    def encode(self) -> str:
        if self.is_pending_appointment:
            return f"{PENDING_APPOINTMENT_PREFIX}{self.hold_id}"
        return self.kind.value

    @classmethod
    def parse(cls, raw: str) -> "ConversationStatusValue":
        if raw.startswith(PENDING_APPOINTMENT_PREFIX):
            return cls(StatusKind.PENDING_APPOINTMENT, raw[len(PENDING_APPOINTMENT_PREFIX):])
        try:
            return cls(StatusKind(raw))
        except ValueError:
            raise ValidationError(f"Unknown conversation status: {raw!r}")

    @classmethod
    def pending(cls, hold_id: str) -> "ConversationStatusValue":
        return cls(StatusKind.PENDING_APPOINTMENT, hold_id)

    def __str__(self) -> str:
        return self.encode()


ACTIVE = ConversationStatusValue(StatusKind.ACTIVE)
WAITING_HUMAN = ConversationStatusValue(StatusKind.WAITING_HUMAN)
CLOSED = ConversationStatusValue(StatusKind.CLOSED)


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


VALID_TRANSITIONS = {
    AppointmentStatus.PENDING: [
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
    ],
    AppointmentStatus.CONFIRMED: [
        AppointmentStatus.PENDING,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
    ],
    AppointmentStatus.CANCELLED: [],
    AppointmentStatus.COMPLETED: [],
}

TERMINAL_STATUSES = {AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED}
BLOCKING_STATUSES = [AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value]


class InvalidTransitionError(ConflictError):
    error_code = "invalid_transition"

    def __init__(self, from_state: AppointmentStatus, to_state: AppointmentStatus):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def can_transition(from_state: AppointmentStatus, to_state: AppointmentStatus) -> bool:
    """Check if transition is valid."""
    allowed = VALID_TRANSITIONS.get(from_state, [])
    return to_state in allowed


def transition(from_state: AppointmentStatus, to_state: AppointmentStatus) -> AppointmentStatus:
    """Perform state transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)
    return to_state


def confirm(current_state: AppointmentStatus) -> AppointmentStatus:
    """Staff confirms a pending appointment."""
    return transition(current_state, AppointmentStatus.CONFIRMED)


def unconfirm(current_state: AppointmentStatus) -> AppointmentStatus:
    """Staff moves a confirmed appointment back to pending."""
    return transition(current_state, AppointmentStatus.PENDING)


def cancel(current_state: AppointmentStatus) -> AppointmentStatus:
    return transition(current_state, AppointmentStatus.CANCELLED)


def complete(current_state: AppointmentStatus) -> AppointmentStatus:
    return transition(current_state, AppointmentStatus.COMPLETED)
