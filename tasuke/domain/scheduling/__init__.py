"""
Scheduling Domain

Deadline-driven scheduling engine and the /calendar endpoints built on it.

- free_slots.py   busy calendar intervals + working hours -> free slots
- suggester.py    free slots + tasks -> placement suggestions (deadline-first greedy)
- service.py      request orchestration (tasks, Google Calendar feed, schedule blocks)
- router.py       FastAPI endpoints
"""

from .exceptions import InvalidTaskError, InvalidWorkingHoursError, SchedulingError
from .free_slots import find_free_slots
from .suggester import generate_schedule_suggestions, summarize_by_task
from .types import (
    CalendarEvent,
    FreeSlot,
    Priority,
    ScheduleResult,
    ScheduleSuggestion,
    SchedulableTask,
    TaskPlan,
    UnschedulableTask,
    WorkingHoursPolicy,
)

__all__ = [
    "CalendarEvent",
    "FreeSlot",
    "InvalidTaskError",
    "InvalidWorkingHoursError",
    "Priority",
    "ScheduleResult",
    "ScheduleSuggestion",
    "SchedulableTask",
    "SchedulingError",
    "TaskPlan",
    "UnschedulableTask",
    "WorkingHoursPolicy",
    "find_free_slots",
    "generate_schedule_suggestions",
    "summarize_by_task",
]
