"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator

from ...config import DEFAULT_SKIP_WEEKENDS, DEFAULT_WORK_END_HOUR, DEFAULT_WORK_START_HOUR
from ...shared.validators import parse_hhmm, parse_ymd


class ScheduleSuggestionRequest(BaseModel):
    """Options for computing schedule suggestions"""

    projectId: Optional[str] = None
    myTasksOnly: bool = False
    workStart: int = DEFAULT_WORK_START_HOUR
    workEnd: int = DEFAULT_WORK_END_HOUR
    skipWeekends: bool = DEFAULT_SKIP_WEEKENDS


class SuggestionResponse(BaseModel):
    taskId: int
    title: str
    date: str
    start: str
    end: str
    hours: float


class ScheduledSlotResponse(BaseModel):
    date: str
    start: str
    end: str
    hours: float


class TaskPlanResponse(BaseModel):
    taskId: int
    taskTitle: str
    dueDate: datetime
    estimatedHours: float
    priority: str
    scheduledSlots: list[ScheduledSlotResponse]
    totalScheduledHours: float
    status: str


class UnschedulableTaskResponse(BaseModel):
    taskId: int
    title: str
    dueDate: Optional[datetime] = None
    estimatedHours: float
    scheduledHours: float
    shortfallHours: float
    reason: str


class UnestimatedTaskResponse(BaseModel):
    id: int
    title: str
    priority: str
    dueDate: Optional[datetime] = None
    missingDueDate: bool
    missingEstimate: bool


class ScheduleSuggestionResponse(BaseModel):
    suggestions: list[SuggestionResponse] = []
    tasks: list[TaskPlanResponse] = []
    unschedulable: list[UnschedulableTaskResponse] = []
    totalFreeHours: float = 0.0
    unestimatedCount: int = 0
    unestimatedTasks: list[UnestimatedTaskResponse] = []
    calendarUnavailable: bool = False
    message: Optional[str] = None


class ScheduleBlockCreate(BaseModel):
    """Accept one suggestion as a calendar time block"""

    taskId: int
    date: str
    start: str
    end: str

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        return parse_ymd(v).isoformat()

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, v):
        return parse_hhmm(v).strftime("%H:%M")

    @model_validator(mode="after")
    def validate_range(self):
        if self.end <= self.start:
            raise ValueError("end must be later than start")
        return self


class ScheduleBlockResponse(BaseModel):
    id: int
    taskId: int
    googleCalendarEventId: str
    date: str
    startTime: str
    endTime: str
    createdAt: Optional[datetime] = None


class CalendarEventResponse(BaseModel):
    id: Optional[str] = None
    summary: str
    start: str
    end: str
    allDay: bool
    colorId: Optional[str] = None
