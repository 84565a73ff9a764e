"""Local date/time helpers. Appointment times are naive local wall-clock values."""

from datetime import date, datetime, time, timezone
from typing import Union

from agenda_api.services.errors import ValidationError

BR_DATE_FORMAT = "%d/%m/%Y"
DateLike = Union[str, date, datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_timezone(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_date(value: DateLike) -> date:
    """Accept a date, a datetime, "DD/MM/YYYY" or ISO "YYYY-MM-DD"."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = (value or "").strip()
    for fmt in (BR_DATE_FORMAT, "%Y-%m-%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValidationError(f"Invalid date: {value!r}")


def parse_time(value: str) -> time:
    try:
        return datetime.strptime((value or "").strip(), "%H:%M").time()
    except ValueError:
        raise ValidationError(f"Invalid time: {value!r}")


def parse_datetime(value: DateLike) -> datetime:
    """Accept a datetime, ISO string, or "DD/MM/YYYY HH:MM"."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    text = (value or "").strip()
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.strptime(text, f"{BR_DATE_FORMAT} %H:%M")
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}")


def combine(date_value: DateLike, time_value: str) -> datetime:
    return datetime.combine(parse_date(date_value), parse_time(time_value))


def format_date_br(value: date) -> str:
    return value.strftime(BR_DATE_FORMAT)


def time_to_minutes(value: Union[str, time, datetime]) -> int:
    if isinstance(value, (time, datetime)):
        return value.hour * 60 + value.minute
    parsed = parse_time(value)
    return parsed.hour * 60 + parsed.minute


def minutes_to_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
