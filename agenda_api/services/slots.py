"""Fixed-slot scheduling grid.

With a 15-minute slot the only bookable start times are 07:00, 07:15, 07:30...
Times are "HH:MM" strings of local wall-clock time.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional, Union

from agenda_api.services.timeutils import minutes_to_time, time_to_minutes

DEFAULT_DURATION_MINUTES = 60


@dataclass
class BusyInterval:
    start: datetime
    end: Optional[datetime] = None
    duration_minutes: Optional[int] = None

    def resolved_end(self) -> datetime:
        if self.end is not None and self.end > self.start:
            return self.end
        duration = self.duration_minutes
        if not duration or duration <= 0:
            duration = DEFAULT_DURATION_MINUTES
        return self.start + timedelta(minutes=duration)


@dataclass
class SlotSearch:
    available_times: list[str]
    all_slots: list[str]
    occupied_slots: set[str] = field(default_factory=set)


@dataclass
class SlotConversion:
    converted_time: Optional[str]
    suggestions: list[str]


def round_to_next_slot(value: Union[str, datetime], slot_size_minutes: int) -> str:
    """17:40 with 15-minute slots -> 17:45."""
    minutes = time_to_minutes(value)
    return minutes_to_time(math.ceil(minutes / slot_size_minutes) * slot_size_minutes)


def round_to_nearest_slot(value: Union[str, datetime], slot_size_minutes: int) -> str:
    minutes = time_to_minutes(value)
    return minutes_to_time(round(minutes / slot_size_minutes) * slot_size_minutes)


def required_slots(duration_minutes: int, slot_size_minutes: int) -> int:
    return math.ceil(duration_minutes / slot_size_minutes)


def generate_slots(open_minutes: int, close_minutes: int, slot_size_minutes: int) -> list[str]:
    """Slot starts from open up to (not including) close."""
    return [minutes_to_time(m) for m in range(open_minutes, close_minutes, slot_size_minutes)]


def generate_day_slots(start_hour: int, end_hour: int, slot_size_minutes: int) -> list[str]:
    return generate_slots(start_hour * 60, end_hour * 60, slot_size_minutes)


def mark_occupied_slots(
    intervals: Iterable[BusyInterval],
    slot_size_minutes: int,
    buffer_minutes: int = 0,
    day_start_minutes: int = 0,
    day_end_minutes: int = 24 * 60,
) -> set[str]:
    """Grid slots touched by each interval (plus buffer), clipped to the day window.

    A start that falls inside a slot occupies that slot.
    """
    occupied = set()
    for interval in intervals:
        start_minutes = interval.start.hour * 60 + interval.start.minute
        length = (interval.resolved_end() - interval.start).total_seconds() / 60 + buffer_minutes
        end_minutes = start_minutes + length

        slot = start_minutes - (start_minutes - day_start_minutes) % slot_size_minutes
        while slot < end_minutes and slot < day_end_minutes:
            if slot >= day_start_minutes:
                occupied.add(minutes_to_time(slot))
            slot += slot_size_minutes
    return occupied


def find_valid_start_times(all_slots: list[str], occupied_slots: set[str], slots_needed: int) -> list[str]:
    """Starts followed by slots_needed consecutive free slots."""
    valid = []
    if slots_needed <= 0:
        return [slot for slot in all_slots if slot not in occupied_slots]

    for i in range(len(all_slots) - slots_needed + 1):
        window = all_slots[i:i + slots_needed]
        if any(slot in occupied_slots for slot in window):
            continue
        valid.append(all_slots[i])
    return valid


def convert_to_valid_slot(
    requested: Union[str, datetime], valid_start_times: list[str], slot_size_minutes: int
) -> SlotConversion:
    """Round the request up to the grid; if taken, suggest the three closest valid starts."""
    rounded = round_to_next_slot(requested, slot_size_minutes)
    if rounded in valid_start_times:
        return SlotConversion(converted_time=rounded, suggestions=[])

    target = time_to_minutes(rounded)
    by_proximity = sorted(valid_start_times, key=lambda slot: abs(time_to_minutes(slot) - target))
    return SlotConversion(converted_time=None, suggestions=by_proximity[:3])


def find_available_slots(
    duration_minutes: int,
    start_hour: int,
    end_hour: int,
    intervals: Iterable[BusyInterval],
    slot_size_minutes: int,
    buffer_minutes: int = 0,
) -> SlotSearch:
    """Slot-size-driven search: every start with enough free slots for the service."""
    all_slots = generate_day_slots(start_hour, end_hour, slot_size_minutes)
    if not all_slots:
        return SlotSearch(available_times=[], all_slots=[])

    occupied = mark_occupied_slots(
        intervals,
        slot_size_minutes,
        buffer_minutes,
        day_start_minutes=start_hour * 60,
        day_end_minutes=end_hour * 60,
    )
    available = find_valid_start_times(all_slots, occupied, required_slots(duration_minutes, slot_size_minutes))
    return SlotSearch(available_times=available, all_slots=all_slots, occupied_slots=occupied)
