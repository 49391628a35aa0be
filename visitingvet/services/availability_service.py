"""
Provider availability rules
Weekly hours use Sunday = 0; a matching special date overrides the weekly entry.
All times are UTC wall-clock.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from ..models import Availability
from ..shared.validators import time_to_minutes

logger = logging.getLogger(__name__)


def schedule_weekday(dt) -> int:
    """Python weekday (Monday = 0) converted to Sunday = 0"""
    return (dt.weekday() + 1) % 7


def validate_weekly_schedule(entries: list[dict]) -> list[dict]:
    """
    Check each weekly entry; returns the cleaned list.

    Raises:
        ValueError: bad day, bad time format or start not before end
    """
    cleaned = []
    for entry in entries:
        day = entry.get("day_of_week")
        if not isinstance(day, int) or not 0 <= day <= 6:
            raise ValueError(f"Invalid day_of_week: {day!r}, expected 0 (Sunday) to 6 (Saturday)")
        start = time_to_minutes(entry.get("start_time", ""))
        end = time_to_minutes(entry.get("end_time", ""))
        if start >= end:
            raise ValueError(
                f"Start time {entry['start_time']} must be before end time {entry['end_time']}"
            )
        cleaned.append(
            {
                "day_of_week": day,
                "start_time": entry["start_time"],
                "end_time": entry["end_time"],
                "is_available": bool(entry.get("is_available", True)),
            }
        )
    return cleaned


def working_window(availability: Availability, day: date) -> Optional[tuple[int, int]]:
    """Working hours for a date as (start, end) minutes since midnight, None when closed"""
    day_str = day.isoformat()
    for special in availability.special_dates or []:
        if special.get("date") != day_str:
            continue
        if not special.get("is_available"):
            return None
        if special.get("start_time") and special.get("end_time"):
            return time_to_minutes(special["start_time"]), time_to_minutes(special["end_time"])
        break

    weekday = schedule_weekday(day)
    for entry in availability.weekly_schedule or []:
        if entry.get("day_of_week") == weekday:
            if not entry.get("is_available", True):
                return None
            return time_to_minutes(entry["start_time"]), time_to_minutes(entry["end_time"])
    return None


def is_time_available(availability: Availability, start: datetime, duration_minutes: int) -> bool:
    """True when [start, start + duration) falls inside the provider's hours for that date"""
    window = working_window(availability, start.date())
    if window is None:
        return False

    start_minutes = start.hour * 60 + start.minute
    end_minutes = start_minutes + duration_minutes
    # A booking that runs past midnight never fits a single day's window
    if end_minutes > 24 * 60:
        return False
    return window[0] <= start_minutes and end_minutes <= window[1]


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open overlap; back-to-back intervals do not overlap"""
    return start_a < end_b and end_a > start_b


def open_slots(
    availability: Availability,
    day: date,
    duration_minutes: int,
    booked: Iterable[tuple[datetime, datetime]],
    step_minutes: int = 30,
) -> list[datetime]:
    """Bookable start times on a date that fit the hours and avoid booked intervals"""
    window = working_window(availability, day)
    if window is None:
        return []

    booked = list(booked)
    midnight = datetime(day.year, day.month, day.day)
    slots = []
    minute = window[0]
    while minute + duration_minutes <= window[1]:
        start = midnight + timedelta(minutes=minute)
        end = start + timedelta(minutes=duration_minutes)
        if not any(intervals_overlap(start, end, b_start, b_end) for b_start, b_end in booked):
            slots.append(start)
        minute += step_minutes
    return slots
