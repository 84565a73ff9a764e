from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from agenda_api.schemas.appointment import AppointmentResponse, BookedIntervalResponse


class PendingHoldRequest(BaseModel):
    date: str  # DD/MM/YYYY or YYYY-MM-DD
    time: str  # HH:MM
    service: str
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    description: Optional[str] = None
    contact_name: Optional[str] = None


class PendingHoldResponse(BaseModel):
    hold_id: str
    date: str
    time: str
    service: str
    duration_minutes: Optional[int] = None
    description: Optional[str] = None
    contact_name: Optional[str] = None
    expires_at: Optional[datetime] = None


class ToolResponse(BaseModel):
    """Envelope for agent tool calls. Failures are data, not HTTP errors."""

    success: bool
    error: Optional[str] = None
    error_code: Optional[str] = None


class PendingHoldToolResponse(ToolResponse):
    hold: Optional[PendingHoldResponse] = None


class ConfirmHoldResponse(ToolResponse):
    appointment: Optional[AppointmentResponse] = None


class CancelHoldResponse(ToolResponse):
    removed: bool = False


class AvailableTimesResponse(ToolResponse):
    date: Optional[str] = None
    available_times: list[str] = []
    occupied_times: list[str] = []
    valid_start_times: list[str] = []


class SlotSuggestionResponse(ToolResponse):
    converted_time: Optional[str] = None
    suggestions: list[str] = []


class ContactAppointmentsResponse(ToolResponse):
    appointments: list[AppointmentResponse] = []


class RescheduleToolRequest(BaseModel):
    appointment_id: str
    date: str
    duration_minutes: Optional[int] = Field(default=None, gt=0)


class RescheduleToolResponse(ToolResponse):
    appointment: Optional[AppointmentResponse] = None


class BookedTimesResponse(ToolResponse):
    date: Optional[str] = None
    booked: list[BookedIntervalResponse] = []
