"""Scheduling service - Orchestrates the scheduling engine for API requests"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import httpx
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import SCHEDULE_SLOT_ROUNDING_MINUTES, SCHEDULE_TIMEZONE, UNESTIMATED_TASKS_LIMIT
from ...models import ScheduleBlock, Task, User
from ...services.google_calendar_service import (
    GoogleCalendarError,
    create_task_block_event,
    delete_calendar_event,
    list_busy_events,
    list_events,
)
from ...shared.validators import parse_hhmm, parse_ymd, validate_estimated_hours, validate_priority
from .exceptions import SchedulingError
from .free_slots import find_free_slots
from .repository import SchedulingRepository
from .schemas import (
    ScheduleBlockCreate,
    ScheduledSlotResponse,
    ScheduleSuggestionRequest,
    ScheduleSuggestionResponse,
    SuggestionResponse,
    TaskPlanResponse,
    UnestimatedTaskResponse,
    UnschedulableTaskResponse,
)
from .suggester import generate_schedule_suggestions, summarize_by_task
from .types import CalendarEvent, SchedulableTask, WorkingHoursPolicy

logger = logging.getLogger(__name__)

SCHEDULE_TZ = ZoneInfo(SCHEDULE_TIMEZONE)

NO_TASKS_MESSAGE = "No open tasks have both a due date and an estimate"


def ceil_to_minutes(moment: datetime, minutes: int) -> datetime:
    """Round a timestamp up to the next multiple of ``minutes`` past the hour"""
    if minutes <= 0:
        return moment
    step = timedelta(minutes=minutes)
    remainder = (moment - moment.replace(minute=0, second=0, microsecond=0)) % step
    if not remainder:
        return moment
    return moment + (step - remainder)


def as_aware(value: datetime) -> datetime:
    """Database timestamps without an offset are stored in UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def normalize_priority(priority: Optional[str]) -> str:
    try:
        return validate_priority(priority)
    except ValueError:
        logger.debug(f"Unrecognised priority {priority!r}, ranking as P3")
        return "P3"


def to_schedulable(task: Task) -> SchedulableTask:
    return SchedulableTask(
        id=task.id,
        title=task.title,
        due_date=as_aware(task.due_date),
        estimated_hours=validate_estimated_hours(task.estimated_hours),
        priority=normalize_priority(task.priority),
    )


def _unestimated(task: Task, unusable_estimate: bool = False) -> UnestimatedTaskResponse:
    return UnestimatedTaskResponse(
        id=task.id,
        title=task.title,
        priority=normalize_priority(task.priority),
        dueDate=as_aware(task.due_date) if task.due_date else None,
        missingDueDate=task.due_date is None,
        missingEstimate=unusable_estimate or not task.estimated_hours,
    )


def _hhmm(value) -> str:
    return value.strftime("%H:%M")


class ScheduleService:
    """Service layer for schedule suggestions and schedule blocks"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRepository()

    async def suggest(
        self, user: User, data: ScheduleSuggestionRequest, now: Optional[datetime] = None
    ) -> ScheduleSuggestionResponse:
        """Compute placement suggestions for the user's open tasks"""
        try:
            policy = WorkingHoursPolicy(data.workStart, data.workEnd, data.skipWeekends).validate()
        except SchedulingError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        unestimated = [
            _unestimated(t)
            for t in self.repo.get_unestimated_tasks(
                self.db, user.id, data.projectId, data.myTasksOnly, limit=UNESTIMATED_TASKS_LIMIT
            )
        ]

        schedulable = []
        for t in self.repo.get_schedulable_tasks(self.db, user.id, data.projectId, data.myTasksOnly):
            try:
                schedulable.append(to_schedulable(t))
            except ValueError as e:
                # Treated like a task without an estimate until it is corrected
                logger.warning(f"⚠️ Task {t.id} has an unusable estimate of {t.estimated_hours}h: {e}")
                unestimated.append(_unestimated(t, unusable_estimate=True))

        if not schedulable:
            return ScheduleSuggestionResponse(
                unestimatedCount=len(unestimated),
                unestimatedTasks=unestimated,
                message=NO_TASKS_MESSAGE,
            )

        now = (now or datetime.now(SCHEDULE_TZ)).astimezone(SCHEDULE_TZ)
        range_start = ceil_to_minutes(now, SCHEDULE_SLOT_ROUNDING_MINUTES)
        latest_due = max([t.due_date for t in schedulable] + [now])
        range_end = latest_due.astimezone(SCHEDULE_TZ) + timedelta(days=1)

        busy_events, calendar_unavailable = await self._load_busy_events(user, now, range_end)

        try:
            free_slots = find_free_slots(
                busy_events,
                range_start,
                range_end,
                policy.work_start_hour,
                policy.work_end_hour,
                policy.skip_weekends,
                tz=SCHEDULE_TZ,
            )
            result = generate_schedule_suggestions(schedulable, free_slots, tz=SCHEDULE_TZ)
        except SchedulingError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        plans = summarize_by_task(schedulable, result, tz=SCHEDULE_TZ)
        logger.info(
            f"📅 Schedule for user {user.id}: {len(result.suggestions)} blocks, "
            f"{len(result.unschedulable)} unschedulable, {result.total_free_hours:g}h free"
        )

        return ScheduleSuggestionResponse(
            suggestions=[
                SuggestionResponse(
                    taskId=s.task_id,
                    title=s.title,
                    date=s.date.isoformat(),
                    start=_hhmm(s.start),
                    end=_hhmm(s.end),
                    hours=s.hours,
                )
                for s in result.suggestions
            ],
            tasks=[
                TaskPlanResponse(
                    taskId=p.task_id,
                    taskTitle=p.title,
                    dueDate=p.due_date,
                    estimatedHours=p.estimated_hours,
                    priority=p.priority,
                    scheduledSlots=[
                        ScheduledSlotResponse(
                            date=s.date.isoformat(), start=_hhmm(s.start), end=_hhmm(s.end), hours=s.hours
                        )
                        for s in p.slots
                    ],
                    totalScheduledHours=p.scheduled_hours,
                    status=p.status,
                )
                for p in plans
            ],
            unschedulable=[
                UnschedulableTaskResponse(
                    taskId=u.task_id,
                    title=u.title,
                    dueDate=u.due_date,
                    estimatedHours=u.estimated_hours,
                    scheduledHours=u.scheduled_hours,
                    shortfallHours=u.shortfall_hours,
                    reason=u.reason,
                )
                for u in result.unschedulable
            ],
            totalFreeHours=result.total_free_hours,
            unestimatedCount=len(unestimated),
            unestimatedTasks=unestimated,
            calendarUnavailable=calendar_unavailable,
        )

    async def _load_busy_events(
        self, user: User, time_min: datetime, time_max: datetime
    ) -> tuple[list[CalendarEvent], bool]:
        """Busy events, or an empty feed flagged unavailable when the calendar can't be read"""
        try:
            return await list_busy_events(user, self.db, time_min, time_max), False
        except (GoogleCalendarError, httpx.HTTPError) as e:
            logger.warning(f"⚠️ Calendar events unavailable for user {user.id}, scheduling without them: {e}")
            return [], True

    def get_blocks(self, user: User, task_ids: list[int]) -> list[ScheduleBlock]:
        if not task_ids:
            return []
        return self.repo.get_blocks_for_tasks(self.db, task_ids, user.id)

    async def accept_suggestion(self, user: User, data: ScheduleBlockCreate) -> tuple[ScheduleBlock, bool]:
        """
        Materialise a suggestion as a calendar event plus a schedule block.
        Re-submitting the same (task, date, start) returns the existing block.
        """
        task = self.repo.get_task(self.db, data.taskId, user.id)
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")

        existing = self.repo.get_block(self.db, task.id, data.date, data.start)
        if existing:
            logger.info(f"ℹ️ Schedule block already exists for task {task.id} at {data.date} {data.start}")
            return existing, False

        try:
            event_id = await create_task_block_event(
                user, task, parse_ymd(data.date), parse_hhmm(data.start), parse_hhmm(data.end), self.db
            )
        except GoogleCalendarError as e:
            raise HTTPException(status_code=400, detail=e.message) from e

        block, created = self.repo.create_block(
            self.db,
            task_id=task.id,
            google_calendar_event_id=event_id,
            date=data.date,
            start_time=data.start,
            end_time=data.end,
        )
        if not created:
            # Lost a race with an identical submission; drop the duplicate event
            logger.warning(f"⚠️ Duplicate schedule block for task {task.id}, removing event {event_id}")
            try:
                await delete_calendar_event(user, event_id, self.db)
            except GoogleCalendarError as e:
                logger.error(f"❌ Failed to remove duplicate calendar event {event_id}: {e}")
        else:
            logger.info(f"✅ Schedule block {block.id} created for task {task.id}")
        return block, created

    async def delete_block(self, user: User, block_id: int) -> dict:
        block = self.repo.get_block_by_id(self.db, block_id, user.id)
        if not block:
            raise HTTPException(status_code=404, detail="Schedule block not found")

        try:
            await delete_calendar_event(user, block.google_calendar_event_id, self.db)
        except GoogleCalendarError as e:
            raise HTTPException(status_code=400, detail=e.message) from e

        self.repo.delete_block(self.db, block)
        logger.info(f"🗑️ Schedule block {block_id} deleted")
        return {"success": True}

    async def get_events(self, user: User, time_min: datetime, time_max: datetime) -> list[dict]:
        if time_max <= time_min:
            raise HTTPException(status_code=400, detail="timeMax must be later than timeMin")
        try:
            return await list_events(user, self.db, time_min, time_max)
        except GoogleCalendarError as e:
            raise HTTPException(status_code=400, detail=e.message) from e
