from datetime import date, datetime

import pytest

from visitingvet.models import Availability
from visitingvet.services.availability_service import (
    intervals_overlap,
    is_time_available,
    open_slots,
    schedule_weekday,
    validate_weekly_schedule,
)

# 2030-01-07 is a Monday
MONDAY = date(2030, 1, 7)


@pytest.fixture
def availability():
    return Availability(
        weekly_schedule=[
            {"day_of_week": 1, "start_time": "09:00", "end_time": "12:00", "is_available": True},
            {"day_of_week": 2, "start_time": "09:00", "end_time": "17:00", "is_available": False},
        ],
        special_dates=[
            {"date": "2030-01-14", "is_available": False},
            {"date": "2030-01-21", "is_available": True, "start_time": "13:00", "end_time": "15:00"},
        ],
    )


def test_schedule_weekday_counts_from_sunday():
    assert schedule_weekday(date(2030, 1, 6)) == 0
    assert schedule_weekday(MONDAY) == 1
    assert schedule_weekday(date(2030, 1, 12)) == 6


def test_booking_inside_weekly_hours(availability):
    assert is_time_available(availability, datetime(2030, 1, 7, 9, 0), 60)
    assert is_time_available(availability, datetime(2030, 1, 7, 11, 0), 60)
    assert not is_time_available(availability, datetime(2030, 1, 7, 11, 30), 60)
    assert not is_time_available(availability, datetime(2030, 1, 7, 8, 30), 60)


def test_unavailable_and_missing_days(availability):
    assert not is_time_available(availability, datetime(2030, 1, 8, 10, 0), 30)
    assert not is_time_available(availability, datetime(2030, 1, 9, 10, 0), 30)


def test_special_dates_override_weekly(availability):
    assert not is_time_available(availability, datetime(2030, 1, 14, 10, 0), 30)
    assert is_time_available(availability, datetime(2030, 1, 21, 13, 0), 120)
    assert not is_time_available(availability, datetime(2030, 1, 21, 10, 0), 30)


def test_intervals_overlap_is_half_open():
    nine, ten, eleven = (datetime(2030, 1, 7, h) for h in (9, 10, 11))
    assert intervals_overlap(nine, eleven, ten, eleven)
    assert not intervals_overlap(nine, ten, ten, eleven)


def test_open_slots_skip_booked_time(availability):
    booked = [(datetime(2030, 1, 7, 10, 0), datetime(2030, 1, 7, 11, 0))]
    slots = open_slots(availability, MONDAY, 60, booked, step_minutes=30)
    assert [s.strftime("%H:%M") for s in slots] == ["09:00", "11:00"]


def test_open_slots_empty_when_closed(availability):
    assert open_slots(availability, date(2030, 1, 14), 30, []) == []


def test_validate_weekly_schedule():
    cleaned = validate_weekly_schedule([{"day_of_week": 0, "start_time": "8:00", "end_time": "10:30"}])
    assert cleaned[0]["is_available"] is True

    with pytest.raises(ValueError):
        validate_weekly_schedule([{"day_of_week": 7, "start_time": "08:00", "end_time": "10:00"}])
    with pytest.raises(ValueError):
        validate_weekly_schedule([{"day_of_week": 1, "start_time": "10:00", "end_time": "09:00"}])
    with pytest.raises(ValueError):
        validate_weekly_schedule([{"day_of_week": 1, "start_time": "25:00", "end_time": "26:00"}])
