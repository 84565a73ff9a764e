from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda_api.config import settings
from agenda_api.logging_config import get_logger
from agenda_api.models import Appointment
from agenda_api.services.errors import StoreError, ValidationError
from agenda_api.services.pending_appointment_service import list_live_holds_for_date
from agenda_api.services.slot_config_service import get_slot_config
from agenda_api.services.slots import (
    DEFAULT_DURATION_MINUTES,
    BusyInterval,
    SlotConversion,
    SlotSearch,
    convert_to_valid_slot,
    find_available_slots,
    find_valid_start_times,
    generate_day_slots,
    mark_occupied_slots,
    required_slots,
)
from agenda_api.services.state_machine import BLOCKING_STATUSES
from agenda_api.services.timeutils import DateLike, combine, format_date_br, parse_date

logger = get_logger("availability_service")


@dataclass
class AvailabilityResult:
    date: str
    available_times: list[str]
    occupied_times: list[str]
    valid_start_times: list[str]


@dataclass
class BookedInterval:
    date: datetime
    end_date: datetime
    duration_minutes: int
    description: Optional[str] = None


def _day_window(start_hour: Optional[int], end_hour: Optional[int]) -> tuple[int, int]:
    start_hour = settings.default_day_start_hour if start_hour is None else start_hour
    end_hour = settings.default_day_end_hour if end_hour is None else end_hour
    if not 0 <= start_hour < end_hour <= 24:
        raise ValidationError(f"Invalid day window {start_hour}h-{end_hour}h")
    return start_hour, end_hour


def _blocking_appointments(db: Session, owner_user_id: str, day: date) -> list[Appointment]:
    start = datetime.combine(day, time.min)
    return (
        db.query(Appointment)
        .filter(
            Appointment.owner_user_id == owner_user_id,
            Appointment.date >= start,
            Appointment.date < start + timedelta(days=1),
            Appointment.status.in_(BLOCKING_STATUSES),
        )
        .order_by(Appointment.date.asc())
        .all()
    )


def _busy_intervals(db: Session, owner_user_id: str, day: date, instance_id: Optional[str]) -> list[BusyInterval]:
    intervals = [
        BusyInterval(start=apt.date, end=apt.end_date, duration_minutes=apt.duration_minutes)
        for apt in _blocking_appointments(db, owner_user_id, day)
    ]
    if instance_id:
        # Holds awaiting confirmation keep their slot out of other contacts' offers.
        for hold in list_live_holds_for_date(db, owner_user_id, instance_id, format_date_br(day)):
            intervals.append(BusyInterval(start=combine(day, hold.time), duration_minutes=hold.duration_minutes))
    return intervals


def check_availability(db: Session, owner_user_id: str, day: DateLike) -> list[BookedInterval]:
    """Pending and confirmed appointments on the day, with end times filled in."""
    day = parse_date(day)
    try:
        appointments = _blocking_appointments(db, owner_user_id, day)
    except SQLAlchemyError as e:
        logger.error("Availability check failed", extra={"context": {"owner_user_id": owner_user_id, "error": str(e)}})
        raise StoreError("Could not check availability") from e

    booked = []
    for apt in appointments:
        interval = BusyInterval(start=apt.date, end=apt.end_date, duration_minutes=apt.duration_minutes)
        end = interval.resolved_end()
        booked.append(
            BookedInterval(
                date=apt.date,
                end_date=end,
                duration_minutes=int((end - apt.date).total_seconds() // 60),
                description=apt.description,
            )
        )
    return booked


def available_times(
    db: Session,
    owner_user_id: str,
    day: DateLike,
    duration_minutes: int = DEFAULT_DURATION_MINUTES,
    start_hour: Optional[int] = None,
    end_hour: Optional[int] = None,
    instance_id: Optional[str] = None,
) -> AvailabilityResult:
    """Fixed-step grid for the day minus the slots taken by pending/confirmed bookings."""
    day = parse_date(day)
    start_hour, end_hour = _day_window(start_hour, end_hour)
    if not duration_minutes or duration_minutes <= 0:
        duration_minutes = DEFAULT_DURATION_MINUTES
    step = settings.availability_step_minutes

    buffer_minutes = get_slot_config(db, owner_user_id).buffer_minutes
    try:
        intervals = _busy_intervals(db, owner_user_id, day, instance_id)
    except SQLAlchemyError as e:
        logger.error("Available times lookup failed", extra={"context": {"owner_user_id": owner_user_id, "error": str(e)}})
        raise StoreError("Could not load available times") from e

    grid = generate_day_slots(start_hour, end_hour, step)
    occupied = mark_occupied_slots(intervals, step, buffer_minutes, start_hour * 60, end_hour * 60)
    available = [slot for slot in grid if slot not in occupied]

    logger.info(
        f"Availability for {format_date_br(day)}: {len(intervals)} bookings, "
        f"{len(occupied)} occupied, {len(available)} available"
    )
    return AvailabilityResult(
        date=format_date_br(day),
        available_times=available,
        occupied_times=sorted(occupied),
        valid_start_times=find_valid_start_times(grid, occupied, required_slots(duration_minutes, step)),
    )


def find_slot_times(
    db: Session,
    owner_user_id: str,
    day: DateLike,
    duration_minutes: int,
    start_hour: Optional[int] = None,
    end_hour: Optional[int] = None,
    instance_id: Optional[str] = None,
) -> SlotSearch:
    """Start times on the tenant's own slot grid, honouring its buffer."""
    day = parse_date(day)
    start_hour, end_hour = _day_window(start_hour, end_hour)
    config = get_slot_config(db, owner_user_id)
    try:
        intervals = _busy_intervals(db, owner_user_id, day, instance_id)
    except SQLAlchemyError as e:
        logger.error("Slot search failed", extra={"context": {"owner_user_id": owner_user_id, "error": str(e)}})
        raise StoreError("Could not load available times") from e

    return find_available_slots(
        duration_minutes or DEFAULT_DURATION_MINUTES,
        start_hour,
        end_hour,
        intervals,
        config.slot_size_minutes,
        config.buffer_minutes,
    )


def suggest_slot(
    db: Session,
    owner_user_id: str,
    day: DateLike,
    requested_time: str,
    duration_minutes: int,
    start_hour: Optional[int] = None,
    end_hour: Optional[int] = None,
    instance_id: Optional[str] = None,
) -> SlotConversion:
    """Snap a requested time to the grid, or offer the closest free starts."""
    search = find_slot_times(db, owner_user_id, day, duration_minutes, start_hour, end_hour, instance_id)
    slot_size = get_slot_config(db, owner_user_id).slot_size_minutes
    return convert_to_valid_slot(requested_time, search.available_times, slot_size)
