"""Shared validation utilities"""

import re
from datetime import date, datetime, timezone
from typing import Optional

TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")
ZIP_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")


def validate_us_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize US phone number to E.164 format.

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)

    if digits.startswith("1") and len(digits) == 11:
        digits = digits[1:]

    if len(digits) != 10:
        raise ValueError("Phone number must be 10 digits for US numbers")

    return f"+1{digits}"


def validate_time_string(value: str) -> str:
    """Validate a 24h "HH:MM" wall-clock time"""
    if not value or not TIME_PATTERN.match(value):
        raise ValueError(f"Invalid time format: {value!r}, expected HH:MM")
    return value


def time_to_minutes(value: str) -> int:
    hours, minutes = validate_time_string(value).split(":")
    return int(hours) * 60 + int(minutes)


def validate_zip_code(value: Optional[str]) -> Optional[str]:
    if not value:
        return value
    value = value.strip()
    if not ZIP_PATTERN.match(value):
        raise ValueError("ZIP code must be 5 digits (or ZIP+4)")
    return value


def parse_iso_date(value: str) -> date:
    """Parse a YYYY-MM-DD string"""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid date: {value!r}, expected YYYY-MM-DD") from e


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are taken as UTC already"""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
