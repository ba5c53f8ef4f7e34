"""
Free slot detection.

Turns busy calendar intervals and a working-hours policy into the
chronological list of free windows between ``range_start`` and ``range_end``.
"""

import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable, Optional

from .types import CalendarEvent, FreeSlot, WorkingHoursPolicy, to_civil

logger = logging.getLogger(__name__)

SATURDAY = 5


def is_weekend(day: date) -> bool:
    return day.weekday() >= SATURDAY


def _working_window(
    day: date, range_start: datetime, range_end: datetime, policy: WorkingHoursPolicy
) -> Optional[tuple[datetime, datetime]]:
    """The day's working window clipped to the query range, or None if empty"""
    window_start = datetime.combine(day, time(policy.work_start_hour))
    window_end = datetime.combine(day, time(policy.work_end_hour))

    # Never offer time before the query started
    if day == range_start.date():
        window_start = max(window_start, range_start)
    if day == range_end.date():
        window_end = min(window_end, range_end)

    if window_start >= window_end:
        return None
    return window_start, window_end


def _merge(intervals: list[tuple[datetime, datetime]]) -> list[tuple[datetime, datetime]]:
    """Sort and merge overlapping or touching intervals"""
    merged: list[tuple[datetime, datetime]] = []
    for start, end in sorted(intervals):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(end, merged[-1][1]))
        else:
            merged.append((start, end))
    return merged


def find_free_slots(
    busy_events: Iterable[CalendarEvent],
    range_start: datetime,
    range_end: datetime,
    work_start_hour: int = 9,
    work_end_hour: int = 18,
    skip_weekends: bool = True,
    tz: Optional[tzinfo] = None,
) -> list[FreeSlot]:
    """
    Compute free working-time slots over ``[range_start, range_end)``.

    Args:
        busy_events: Busy intervals in any order; may overlap or span days
        range_start: Start of the horizon, normally "now"
        range_end: End of the horizon
        work_start_hour: First working hour of each day (0-23)
        work_end_hour: Hour the working day ends (0-23, after work_start_hour)
        skip_weekends: Exclude Saturdays and Sundays entirely
        tz: Civil time zone for day arithmetic; defaults to range_start's zone

    Returns:
        Free slots ordered by date, then start time

    Raises:
        InvalidWorkingHoursError: If the working hours are invalid
    """
    policy = WorkingHoursPolicy(work_start_hour, work_end_hour, skip_weekends).validate()
    tz = tz or range_start.tzinfo
    start = to_civil(range_start, tz)
    end = to_civil(range_end, tz)

    if end <= start:
        return []

    all_day_busy: set[date] = set()
    timed_busy: list[tuple[datetime, datetime]] = []
    for event in busy_events:
        if event.all_day:
            all_day_busy.update(event.days(tz))
            continue
        event_start = to_civil(event.start, tz)
        event_end = to_civil(event.end, tz)
        if event_end > event_start:
            timed_busy.append((event_start, event_end))

    slots: list[FreeSlot] = []
    day = start.date()
    while day <= end.date():
        if skip_weekends and is_weekend(day):
            day += timedelta(days=1)
            continue
        if day in all_day_busy:
            day += timedelta(days=1)
            continue

        window = _working_window(day, start, end, policy)
        if window is None:
            day += timedelta(days=1)
            continue
        window_start, window_end = window

        # Busy intervals intersecting the window, clipped to it
        day_busy = [
            (max(busy_start, window_start), min(busy_end, window_end))
            for busy_start, busy_end in timed_busy
            if busy_start < window_end and busy_end > window_start
        ]

        cursor = window_start
        for busy_start, busy_end in _merge(day_busy):
            if busy_start > cursor:
                slots.append(FreeSlot(day, cursor.time(), busy_start.time()))
            cursor = max(cursor, busy_end)
        if cursor < window_end:
            slots.append(FreeSlot(day, cursor.time(), window_end.time()))

        day += timedelta(days=1)

    logger.debug(f"Found {len(slots)} free slots between {start} and {end}")
    return slots
