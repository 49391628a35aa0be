"""Date-range parsing and period bucketing for analytics"""

from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

VALID_PERIODS = ("day", "week", "month", "year")
DEFAULT_RANGE_DAYS = 30

PERIOD_FORMATS = {
    "day": "%Y-%m-%d",
    "week": "%G-%V",
    "month": "%Y-%m",
    "year": "%Y",
}


def parse_datetime(value: str) -> datetime:
    """Parse ISO 8601 into a naive UTC datetime"""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_date_range(
    start_date: Optional[str], end_date: Optional[str], now: Optional[datetime] = None
) -> tuple[datetime, datetime]:
    """
    Resolve the requested range, defaulting to the last 30 days.

    Raises:
        ValueError: unparseable dates or start not before end
    """
    try:
        end = parse_datetime(end_date) if end_date else (now or datetime.utcnow())
        start = parse_datetime(start_date) if start_date else end - timedelta(days=DEFAULT_RANGE_DAYS)
    except (TypeError, ValueError) as e:
        raise ValueError("Invalid date range: dates must be ISO 8601") from e

    if start >= end:
        raise ValueError("Invalid date range: start_date must be before end_date")
    return start, end


def validate_period(period: str) -> str:
    if period not in VALID_PERIODS:
        raise ValueError(f"Invalid period: {period}. Choose from {', '.join(VALID_PERIODS)}")
    return period


def period_key(dt: datetime, period: str) -> str:
    return dt.strftime(PERIOD_FORMATS[validate_period(period)])


def bucket_counts(datetimes: Iterable[datetime], period: str) -> "OrderedDict[str, int]":
    counts: dict[str, int] = {}
    for dt in datetimes:
        if dt is None:
            continue
        key = period_key(dt, period)
        counts[key] = counts.get(key, 0) + 1
    return OrderedDict(sorted(counts.items()))


def _next_step(dt: datetime, period: str) -> datetime:
    if period == "day":
        return dt + timedelta(days=1)
    if period == "week":
        return dt + timedelta(weeks=1)
    if period == "month":
        return datetime(dt.year + 1, 1, 1) if dt.month == 12 else datetime(dt.year, dt.month + 1, 1)
    return datetime(dt.year + 1, 1, 1)


def _period_start(dt: datetime, period: str) -> datetime:
    day = datetime(dt.year, dt.month, dt.day)
    if period == "week":
        return day - timedelta(days=day.isoweekday() - 1)
    if period == "month":
        return datetime(dt.year, dt.month, 1)
    if period == "year":
        return datetime(dt.year, 1, 1)
    return day


def fill_series(start: datetime, end: datetime, period: str, counts: dict) -> list[dict]:
    """Contiguous [{period, count}] list covering start..end, zero-filled"""
    validate_period(period)
    series = []
    cursor = _period_start(start, period)
    while cursor < end:
        key = period_key(cursor, period)
        series.append({"period": key, "count": counts.get(key, 0)})
        cursor = _next_step(cursor, period)
    return series
