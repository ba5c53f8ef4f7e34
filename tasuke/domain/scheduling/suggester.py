"""
Deadline-first greedy scheduling.

Tasks are processed earliest due date first (ties: higher priority, then
input order) and poured front-to-back into the free slots that lie strictly
before their due date. There is no backtracking: once a slot's time is
handed to a task it stays there.
"""

import logging
from datetime import datetime, timedelta, tzinfo
from typing import Optional, Sequence

from .exceptions import InvalidTaskError
from .types import (
    FreeSlot,
    ScheduleResult,
    ScheduleSuggestion,
    SchedulableTask,
    TaskPlan,
    UnschedulableTask,
    priority_rank,
    to_civil,
)

logger = logging.getLogger(__name__)

STATUS_SCHEDULABLE = "schedulable"
STATUS_TIGHT = "tight"
STATUS_UNSCHEDULABLE = "unschedulable"

ZERO = timedelta(0)
ONE_HOUR = timedelta(hours=1)


def _validate_tasks(tasks: Sequence[SchedulableTask]) -> None:
    for task in tasks:
        if task.due_date is None:
            raise InvalidTaskError(task.id, "due date is required")
        if task.estimated_hours is None or task.estimated_hours <= 0:
            raise InvalidTaskError(task.id, "estimated hours must be positive")


def sort_tasks(tasks: Sequence[SchedulableTask], tz: Optional[tzinfo] = None) -> list[SchedulableTask]:
    """Processing order: due date, then priority; sorted() keeps input order for ties"""
    return sorted(tasks, key=lambda t: (to_civil(t.due_date, tz), priority_rank(t.priority)))


def format_shortfall(hours: float) -> str:
    return f"{hours:g} hours short"


def generate_schedule_suggestions(
    tasks: Sequence[SchedulableTask],
    free_slots: Sequence[FreeSlot],
    tz: Optional[tzinfo] = None,
) -> ScheduleResult:
    """
    Allocate task estimates into free slots, earliest deadline first.

    A task only receives time from slots dated strictly before its due date.
    Tasks that cannot be fully placed are reported in ``unschedulable`` with
    the missing hours; partial placements are still returned as suggestions.

    Raises:
        InvalidTaskError: If a task lacks a due date or a positive estimate
    """
    _validate_tasks(tasks)

    total_free_hours = sum(slot.hours for slot in free_slots)

    # Consumption front per slot index; capacity is whatever lies between it and the slot end
    fronts: list[datetime] = [slot.start_datetime for slot in free_slots]

    suggestions: list[ScheduleSuggestion] = []
    unschedulable: list[UnschedulableTask] = []

    for task in sort_tasks(tasks, tz):
        due_day = to_civil(task.due_date, tz).date()
        needed = timedelta(hours=task.estimated_hours)
        remaining = needed

        for index, slot in enumerate(free_slots):
            if remaining <= ZERO:
                break
            capacity = slot.end_datetime - fronts[index]
            if slot.date >= due_day or capacity <= ZERO:
                continue

            chunk = min(remaining, capacity)
            chunk_start = fronts[index]
            chunk_end = chunk_start + chunk
            suggestions.append(
                ScheduleSuggestion(
                    task_id=task.id,
                    title=task.title,
                    date=slot.date,
                    start=chunk_start.time(),
                    end=chunk_end.time(),
                    hours=chunk / ONE_HOUR,
                )
            )

            fronts[index] = chunk_end
            remaining -= chunk

        if remaining > ZERO:
            shortfall = remaining / ONE_HOUR
            logger.debug(f"Task {task.id} is {shortfall:g}h short before {due_day}")
            unschedulable.append(
                UnschedulableTask(
                    task_id=task.id,
                    title=task.title,
                    reason=format_shortfall(shortfall),
                    shortfall_hours=shortfall,
                    due_date=task.due_date,
                    estimated_hours=task.estimated_hours,
                    scheduled_hours=(needed - remaining) / ONE_HOUR,
                )
            )

    return ScheduleResult(
        suggestions=suggestions,
        unschedulable=unschedulable,
        total_free_hours=total_free_hours,
    )


def summarize_by_task(
    tasks: Sequence[SchedulableTask], result: ScheduleResult, tz: Optional[tzinfo] = None
) -> list[TaskPlan]:
    """Group a result's suggestions per task, in processing order"""
    slots_by_task: dict = {}
    for suggestion in result.suggestions:
        slots_by_task.setdefault(suggestion.task_id, []).append(suggestion)
    short_ids = {entry.task_id for entry in result.unschedulable}

    plans = []
    for task in sort_tasks(tasks, tz):
        slots = slots_by_task.get(task.id, [])
        scheduled = sum(s.hours for s in slots)
        if task.id not in short_ids:
            status = STATUS_SCHEDULABLE
        elif slots:
            status = STATUS_TIGHT
        else:
            status = STATUS_UNSCHEDULABLE
        plans.append(
            TaskPlan(
                task_id=task.id,
                title=task.title,
                due_date=task.due_date,
                estimated_hours=task.estimated_hours,
                priority=str(getattr(task.priority, "value", task.priority)),
                slots=slots,
                scheduled_hours=scheduled,
                status=status,
            )
        )
    return plans
