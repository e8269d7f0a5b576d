"""Time slot helpers for the appointment scheduler"""

from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

DEFAULT_INTERVAL_MINUTES = 30
DEFAULT_WORK_HOURS = (9, 17)
DEFAULT_BUFFER_MINUTES = 15


def generate_time_slots(
    day: date,
    interval: int = DEFAULT_INTERVAL_MINUTES,
    work_hours: tuple[int, int] = DEFAULT_WORK_HOURS,
) -> list[dict]:
    """
    Slots of `interval` minutes for one day.

    Starts run from the first work hour up to (not including) the last,
    e.g. 09:00 AM ... 04:30 PM for the default 9-17 window.
    """
    start_hour, end_hour = work_hours
    current = datetime.combine(day, time(hour=start_hour))
    end = datetime.combine(day, time(hour=end_hour)) if end_hour < 24 else datetime.combine(
        day + timedelta(days=1), time()
    )

    slots = []
    while current < end:
        slots.append({"label": current.strftime("%I:%M %p"), "start": current})
        current += timedelta(minutes=interval)
    return slots


def does_overlap(
    slot_start: datetime,
    duration_minutes: int,
    apt_start: datetime,
    apt_end: datetime,
    buffer_minutes: int = 0,
) -> bool:
    """True when [slot_start - buffer, slot_start + duration + buffer) meets [apt_start, apt_end)"""
    buffer = timedelta(minutes=buffer_minutes)
    slot_end = slot_start + timedelta(minutes=duration_minutes) + buffer
    buffered_start = slot_start - buffer
    return buffered_start < apt_end and slot_end > apt_start


def is_slot_booked(
    slot_start: datetime,
    duration_minutes: int,
    appointments: Iterable,
    buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
) -> bool:
    """Any non-cancelled appointment overlapping the slot (with buffer)"""
    for apt in appointments:
        if _field(apt, "status") == "cancelled":
            continue
        start, end = _field(apt, "start_time"), _field(apt, "end_time")
        if start is None or end is None:
            continue
        if does_overlap(slot_start, duration_minutes, start, end, buffer_minutes):
            return True
    return False


def _field(apt, name: str) -> Optional[object]:
    if isinstance(apt, dict):
        return apt.get(name)
    return getattr(apt, name, None)
