"""Tool endpoints for the conversational agent.

Outcomes such as an expired hold are returned in the body with success=False
so the agent can word its reply; only malformed requests are HTTP errors.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agenda_api.database import get_db
from agenda_api.dependencies import get_owner_user_id
from agenda_api.schemas.appointment import AppointmentResponse, BookedIntervalResponse
from agenda_api.schemas.booking import (
    AvailableTimesResponse,
    BookedTimesResponse,
    CancelHoldResponse,
    ConfirmHoldResponse,
    ContactAppointmentsResponse,
    PendingHoldRequest,
    PendingHoldResponse,
    PendingHoldToolResponse,
    RescheduleToolRequest,
    RescheduleToolResponse,
    SlotSuggestionResponse,
)
from agenda_api.services import booking_service
from agenda_api.services.availability_service import suggest_slot
from agenda_api.services.pending_appointment_service import PendingAppointmentData
from agenda_api.services.timeutils import format_date_br, parse_date

router = APIRouter(prefix="/booking/{instance_id}/{contact}", tags=["booking"])


def _hold_response(data: Optional[PendingAppointmentData]) -> Optional[PendingHoldResponse]:
    if data is None:
        return None
    return PendingHoldResponse(
        hold_id=data.hold_id,
        date=data.date,
        time=data.time,
        service=data.service,
        duration_minutes=data.duration_minutes,
        description=data.description,
        contact_name=data.contact_name,
        expires_at=data.expires_at,
    )


@router.get("/availability", response_model=BookedTimesResponse)
def availability(
    instance_id: str,
    contact: str,
    date: str,
    owner_user_id: str = Depends(get_owner_user_id),
    db: Session = Depends(get_db),
):
    result = booking_service.check_availability(db, owner_user_id, date)
    db.commit()
    if not result.ok:
        return BookedTimesResponse(success=False, error=result.error, error_code=result.error_code)
    return BookedTimesResponse(
        success=True,
        date=format_date_br(parse_date(date)),
        booked=[BookedIntervalResponse(**vars(interval)) for interval in result.value],
    )


@router.get("/available-times", response_model=AvailableTimesResponse)
def available_times(
    instance_id: str,
    contact: str,
    date: str,
    duration_minutes: int = Query(default=60, gt=0),
    start_hour: Optional[int] = Query(default=None, ge=0, le=24),
    end_hour: Optional[int] = Query(default=None, ge=0, le=24),
    owner_user_id: str = Depends(get_owner_user_id),
    db: Session = Depends(get_db),
):
    result = booking_service.get_available_times(
        db, owner_user_id, instance_id, date, duration_minutes, start_hour, end_hour
    )
    db.commit()
    if not result.ok:
        return AvailableTimesResponse(success=False, error=result.error, error_code=result.error_code)
    return AvailableTimesResponse(success=True, **vars(result.value))


@router.get("/suggest-slot", response_model=SlotSuggestionResponse)
def suggested_slot(
    instance_id: str,
    contact: str,
    date: str,
    time: str,
    duration_minutes: int = Query(default=60, gt=0),
    owner_user_id: str = Depends(get_owner_user_id),
    db: Session = Depends(get_db),
):
    """Snap a requested time to the tenant's slot grid, or offer the closest free starts."""
    conversion = suggest_slot(db, owner_user_id, date, time, duration_minutes, instance_id=instance_id)
    db.commit()
    return SlotSuggestionResponse(
        success=conversion.converted_time is not None,
        converted_time=conversion.converted_time,
        suggestions=conversion.suggestions,
    )


@router.put("/hold", response_model=PendingHoldToolResponse)
def store_hold(
    instance_id: str,
    contact: str,
    request: PendingHoldRequest,
    owner_user_id: str = Depends(get_owner_user_id),
    db: Session = Depends(get_db),
):
    result = booking_service.store_pending_hold(
        db, instance_id, contact, owner_user_id, PendingAppointmentData(**request.model_dump())
    )
    db.commit()
    if not result.ok:
        return PendingHoldToolResponse(success=False, error=result.error, error_code=result.error_code)
    return PendingHoldToolResponse(success=True, hold=_hold_response(result.value))


@router.get("/hold", response_model=PendingHoldToolResponse)
def get_hold(
    instance_id: str,
    contact: str,
    owner_user_id: str = Depends(get_owner_user_id),
    db: Session = Depends(get_db),
):
    hold = booking_service.get_pending_hold(db, instance_id, contact).unwrap_or(None)
    db.commit()
    if hold is not None and hold.owner_user_id != owner_user_id:
        hold = None
    return PendingHoldToolResponse(success=True, hold=_hold_response(hold))


@router.post("/hold/confirm", response_model=ConfirmHoldResponse)
def confirm_hold(
    instance_id: str,
    contact: str,
    owner_user_id: str = Depends(get_owner_user_id),
    db: Session = Depends(get_db),
):
    """Turn the live hold into an appointment."""
    result = booking_service.confirm_pending_hold(db, instance_id, contact, owner_user_id)
    db.commit()
    if not result.ok:
        return ConfirmHoldResponse(success=False, error=result.error, error_code=result.error_code)
    return ConfirmHoldResponse(success=True, appointment=AppointmentResponse.model_validate(result.value))


@router.delete("/hold", response_model=CancelHoldResponse)
def cancel_hold(
    instance_id: str,
    contact: str,
    owner_user_id: str = Depends(get_owner_user_id),
    db: Session = Depends(get_db),
):
    result = booking_service.cancel_pending_hold(db, instance_id, contact)
    db.commit()
    if not result.ok:
        return CancelHoldResponse(success=False, error=result.error, error_code=result.error_code)
    return CancelHoldResponse(success=True, removed=result.value)


@router.get("/appointments", response_model=ContactAppointmentsResponse)
def contact_appointments(
    instance_id: str,
    contact: str,
    include_past: bool = False,
    owner_user_id: str = Depends(get_owner_user_id),
    db: Session = Depends(get_db),
):
    result = booking_service.get_user_appointments(db, owner_user_id, instance_id, contact, include_past)
    if not result.ok:
        return ContactAppointmentsResponse(success=False, error=result.error, error_code=result.error_code)
    return ContactAppointmentsResponse(
        success=True,
        appointments=[AppointmentResponse.model_validate(apt) for apt in result.value],
    )


@router.post("/reschedule", response_model=RescheduleToolResponse)
def reschedule(
    instance_id: str,
    contact: str,
    request: RescheduleToolRequest,
    owner_user_id: str = Depends(get_owner_user_id),
    db: Session = Depends(get_db),
):
    result = booking_service.reschedule_appointment(
        db, owner_user_id, request.appointment_id, request.date, request.duration_minutes
    )
    db.commit()
    if not result.ok:
        return RescheduleToolResponse(success=False, error=result.error, error_code=result.error_code)
    return RescheduleToolResponse(success=True, appointment=AppointmentResponse.model_validate(result.value))
