"""
Core scheduling types.

All values are plain, immutable dataclasses so the engine stays a pure
function of its inputs. Timestamps may be naive (already in the scheduling
time zone) or aware (converted before any day arithmetic).
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Optional, Union

from ...shared.validators import validate_working_hours
from .exceptions import InvalidWorkingHoursError


class Priority(str, Enum):
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


PRIORITY_RANK = {Priority.P0.value: 0, Priority.P1.value: 1, Priority.P2.value: 2, Priority.P3.value: 3}


def priority_rank(priority) -> int:
    """Sort rank for a priority label; unknown labels rank with P3"""
    value = priority.value if isinstance(priority, Priority) else str(priority)
    return PRIORITY_RANK.get(value, 3)


def to_civil(value: datetime, tz: Optional[tzinfo]) -> datetime:
    """Convert a timestamp to a naive wall-clock datetime in ``tz``"""
    if value.tzinfo is None:
        return value
    if tz is None:
        return value.replace(tzinfo=None)
    return value.astimezone(tz).replace(tzinfo=None)


@dataclass(frozen=True)
class CalendarEvent:
    """A busy interval. All-day events use dates with an exclusive end date."""

    start: Union[datetime, date]
    end: Union[datetime, date]
    all_day: bool = False

    def days(self, tz: Optional[tzinfo] = None) -> list[date]:
        """Calendar days blocked by an all-day event"""
        first = _as_day(self.start, tz)
        last = _as_day(self.end, tz)
        if last <= first:
            return [first]
        return [first + timedelta(days=i) for i in range((last - first).days)]


def _as_day(value: Union[datetime, date], tz: Optional[tzinfo]) -> date:
    if isinstance(value, datetime):
        return to_civil(value, tz).date()
    return value


@dataclass(frozen=True)
class WorkingHoursPolicy:
    work_start_hour: int = 9
    work_end_hour: int = 18
    skip_weekends: bool = True

    def validate(self) -> "WorkingHoursPolicy":
        try:
            validate_working_hours(self.work_start_hour, self.work_end_hour)
        except ValueError as e:
            raise InvalidWorkingHoursError(str(e)) from e
        return self


@dataclass(frozen=True)
class FreeSlot:
    """A contiguous free interval inside one working day"""

    date: date
    start: time
    end: time

    @property
    def start_datetime(self) -> datetime:
        return datetime.combine(self.date, self.start)

    @property
    def end_datetime(self) -> datetime:
        return datetime.combine(self.date, self.end)

    @property
    def hours(self) -> float:
        return (self.end_datetime - self.start_datetime).total_seconds() / 3600


@dataclass(frozen=True)
class SchedulableTask:
    id: Union[int, str]
    title: str
    due_date: datetime
    estimated_hours: float
    priority: str = Priority.P3.value


@dataclass(frozen=True)
class ScheduleSuggestion:
    """One contiguous chunk of a task placed into a free slot"""

    task_id: Union[int, str]
    title: str
    date: date
    start: time
    end: time
    hours: float


@dataclass(frozen=True)
class UnschedulableTask:
    task_id: Union[int, str]
    title: str
    reason: str
    shortfall_hours: float
    due_date: Optional[datetime] = None
    estimated_hours: float = 0.0
    scheduled_hours: float = 0.0


@dataclass(frozen=True)
class ScheduleResult:
    suggestions: list[ScheduleSuggestion] = field(default_factory=list)
    unschedulable: list[UnschedulableTask] = field(default_factory=list)
    total_free_hours: float = 0.0


@dataclass(frozen=True)
class TaskPlan:
    """Per-task view of a schedule result"""

    task_id: Union[int, str]
    title: str
    due_date: datetime
    estimated_hours: float
    priority: str
    slots: list[ScheduleSuggestion]
    scheduled_hours: float
    status: str  # schedulable, tight, unschedulable
