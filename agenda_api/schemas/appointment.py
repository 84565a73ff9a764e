from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class AppointmentResponse(BaseModel):
    id: str
    owner_user_id: str
    instance_id: Optional[str] = None
    contact_number: str
    contact_name: Optional[str] = None
    date: datetime
    end_date: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    description: Optional[str] = None
    status: str
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AppointmentCreateRequest(BaseModel):
    contact_number: str
    date: str  # ISO 8601 or "DD/MM/YYYY HH:MM"
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    description: Optional[str] = None
    contact_name: Optional[str] = None
    instance_id: Optional[str] = None
    status: Literal["pending", "confirmed"] = "pending"


class AppointmentRescheduleRequest(BaseModel):
    date: str
    duration_minutes: Optional[int] = Field(default=None, gt=0)


class AppointmentStatusRequest(BaseModel):
    status: str


class AppointmentListResponse(BaseModel):
    count: int
    appointments: list[AppointmentResponse]


class BookedIntervalResponse(BaseModel):
    date: datetime
    end_date: datetime
    duration_minutes: int
    description: Optional[str] = None


class AvailabilityResponse(BaseModel):
    date: str
    booked: list[BookedIntervalResponse]
