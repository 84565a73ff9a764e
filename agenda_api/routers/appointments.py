from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agenda_api.database import get_db
from agenda_api.dependencies import get_owner_user_id
from agenda_api.schemas.appointment import (
    AppointmentCreateRequest,
    AppointmentListResponse,
    AppointmentRescheduleRequest,
    AppointmentResponse,
    AppointmentStatusRequest,
    AvailabilityResponse,
    BookedIntervalResponse,
)
from agenda_api.services import appointment_service
from agenda_api.services.availability_service import check_availability
from agenda_api.services.timeutils import format_date_br, parse_date

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.get("", response_model=AppointmentListResponse)
def list_appointments(
    status: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    owner_user_id: str = Depends(get_owner_user_id),
    db: Session = Depends(get_db),
):
    appointments = appointment_service.list_appointments(db, owner_user_id, status, date_from, date_to)
    return AppointmentListResponse(
        count=len(appointments),
        appointments=[AppointmentResponse.model_validate(apt) for apt in appointments],
    )


@router.post("", response_model=AppointmentResponse, status_code=201)
def create_appointment(
    request: AppointmentCreateRequest,
    owner_user_id: str = Depends(get_owner_user_id),
    db: Session = Depends(get_db),
):
    """Staff-created appointment. The slot is not checked against existing bookings."""
    appointment = appointment_service.create_appointment(
        db,
        owner_user_id,
        request.instance_id,
        request.contact_number,
        request.date,
        duration_minutes=request.duration_minutes,
        description=request.description,
        contact_name=request.contact_name,
        status=request.status,
    )
    db.commit()
    return AppointmentResponse.model_validate(appointment)


@router.get("/availability", response_model=AvailabilityResponse)
def availability(date: str, owner_user_id: str = Depends(get_owner_user_id), db: Session = Depends(get_db)):
    booked = check_availability(db, owner_user_id, date)
    return AvailabilityResponse(
        date=format_date_br(parse_date(date)),
        booked=[BookedIntervalResponse(**vars(interval)) for interval in booked],
    )


@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(appointment_id: str, owner_user_id: str = Depends(get_owner_user_id), db: Session = Depends(get_db)):
    return AppointmentResponse.model_validate(appointment_service.get_appointment(db, appointment_id, owner_user_id))


@router.put("/{appointment_id}/reschedule", response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: str,
    request: AppointmentRescheduleRequest,
    owner_user_id: str = Depends(get_owner_user_id),
    db: Session = Depends(get_db),
):
    appointment = appointment_service.reschedule_appointment(
        db, appointment_id, owner_user_id, request.date, request.duration_minutes
    )
    db.commit()
    return AppointmentResponse.model_validate(appointment)


@router.put("/{appointment_id}/status", response_model=AppointmentResponse)
def set_status(
    appointment_id: str,
    request: AppointmentStatusRequest,
    owner_user_id: str = Depends(get_owner_user_id),
    db: Session = Depends(get_db),
):
    """Move the appointment along pending/confirmed/cancelled/completed."""
    appointment = appointment_service.set_appointment_status(db, appointment_id, owner_user_id, request.status)
    db.commit()
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: str, owner_user_id: str = Depends(get_owner_user_id), db: Session = Depends(get_db)
):
    appointment = appointment_service.cancel_appointment(db, appointment_id, owner_user_id)
    db.commit()
    return AppointmentResponse.model_validate(appointment)


@router.delete("/{appointment_id}", status_code=204)
def delete_appointment(
    appointment_id: str, owner_user_id: str = Depends(get_owner_user_id), db: Session = Depends(get_db)
):
    appointment_service.delete_appointment(db, appointment_id, owner_user_id)
    db.commit()
