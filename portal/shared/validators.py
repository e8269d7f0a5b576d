"""Shared validation utilities"""

import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
DURATION_PATTERN = re.compile(r"^(\d+)(h|m|s)$")

# "Indefinite" suspensions are ten years
INDEFINITE_DURATION = "87600h"


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = normalize_email(email)
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email format")
    return email


def parse_duration(value: Optional[str]) -> timedelta:
    """
    Parse a suspension duration such as "24h", "90m" or "30s".

    Empty values and "indefinite" map to 87600h.

    Raises:
        ValueError: If the value does not match ^\\d+(h|m|s)$
    """
    raw = (value or "").strip().lower()
    if not raw or raw == "indefinite":
        raw = INDEFINITE_DURATION

    match = DURATION_PATTERN.match(raw)
    if not match:
        raise ValueError("Duration must look like 24h, 30m or 45s")

    amount, unit = int(match.group(1)), match.group(2)
    if unit == "h":
        return timedelta(hours=amount)
    if unit == "m":
        return timedelta(minutes=amount)
    return timedelta(seconds=amount)


def to_naive_utc(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC"""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string (with or without offset / trailing Z) into naive UTC"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return to_naive_utc(parsed)
