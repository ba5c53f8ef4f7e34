"""Shared validation utilities"""

from datetime import date, datetime, time
from typing import Optional

PRIORITIES = ("P0", "P1", "P2", "P3")

MIN_ESTIMATED_HOURS = 0.5
MAX_ESTIMATED_HOURS = 100.0


def validate_working_hours(work_start_hour: int, work_end_hour: int) -> None:
    """
    Validate a daily working window.

    Raises:
        ValueError: If either hour is outside 0-23 or start is not before end
    """
    for name, hour in (("workStart", work_start_hour), ("workEnd", work_end_hour)):
        if isinstance(hour, bool) or not isinstance(hour, int):
            raise ValueError(f"{name} must be an integer hour")
        if not 0 <= hour <= 23:
            raise ValueError(f"{name} must be between 0 and 23")

    if work_start_hour >= work_end_hour:
        raise ValueError("workStart must be earlier than workEnd")


def validate_estimated_hours(hours: Optional[float]) -> Optional[float]:
    """
    Validate a task time estimate.

    Args:
        hours: Estimated hours, or None when the task has no estimate

    Returns:
        The estimate as float

    Raises:
        ValueError: If the estimate is not a positive multiple of 0.5 up to 100
    """
    if hours is None:
        return None

    hours = float(hours)
    if hours < MIN_ESTIMATED_HOURS or hours > MAX_ESTIMATED_HOURS:
        raise ValueError(
            f"Estimated hours must be between {MIN_ESTIMATED_HOURS:g} and {MAX_ESTIMATED_HOURS:g}"
        )
    if (hours * 2) != int(hours * 2):
        raise ValueError("Estimated hours must be a multiple of 0.5")

    return hours


def validate_priority(priority: str) -> str:
    """Validate a P0-P3 priority label"""
    value = (priority or "").strip().upper()
    if value not in PRIORITIES:
        raise ValueError(f"Priority must be one of {', '.join(PRIORITIES)}")
    return value


def parse_hhmm(value: str) -> time:
    """Parse a 24h HH:MM string"""
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except (ValueError, AttributeError) as e:
        raise ValueError("Time must be in HH:MM format") from e


def parse_ymd(value: str) -> date:
    """Parse a YYYY-MM-DD string"""
    try:
        return date.fromisoformat(value.strip())
    except (ValueError, AttributeError) as e:
        raise ValueError("Date must be in YYYY-MM-DD format") from e
