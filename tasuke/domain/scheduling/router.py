"""Scheduling router - FastAPI endpoints for schedule suggestions and blocks"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import ScheduleBlock, User
from .schemas import (
    CalendarEventResponse,
    ScheduleBlockCreate,
    ScheduleBlockResponse,
    ScheduleSuggestionRequest,
    ScheduleSuggestionResponse,
)
from .service import ScheduleService, as_aware

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["Scheduling"])


def get_schedule_service(db: Session = Depends(get_db)) -> ScheduleService:
    """Dependency injection for ScheduleService"""
    return ScheduleService(db)


def _block_response(block: ScheduleBlock) -> ScheduleBlockResponse:
    return ScheduleBlockResponse(
        id=block.id,
        taskId=block.task_id,
        googleCalendarEventId=block.google_calendar_event_id,
        date=block.date,
        startTime=block.start_time,
        endTime=block.end_time,
        createdAt=block.created_at,
    )


@router.post("/schedule-suggestion", response_model=ScheduleSuggestionResponse)
async def create_schedule_suggestion(
    data: Optional[ScheduleSuggestionRequest] = None,
    current_user: User = Depends(get_current_user),
    service: ScheduleService = Depends(get_schedule_service),
):
    """Suggest calendar time for open tasks, working back from their deadlines"""
    return await service.suggest(current_user, data or ScheduleSuggestionRequest())


@router.get("/schedule-block", response_model=list[ScheduleBlockResponse])
async def get_schedule_blocks(
    taskIds: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ScheduleService = Depends(get_schedule_service),
):
    """Get accepted schedule blocks for a comma separated list of task IDs"""
    task_ids = [int(part) for part in (taskIds or "").split(",") if part.strip().isdigit()]
    return [_block_response(b) for b in service.get_blocks(current_user, task_ids)]


@router.post("/schedule-block", response_model=ScheduleBlockResponse, status_code=201)
async def create_schedule_block(
    data: ScheduleBlockCreate,
    response: Response,
    current_user: User = Depends(get_current_user),
    service: ScheduleService = Depends(get_schedule_service),
):
    """Accept a suggestion: create the calendar event and record the block"""
    block, created = await service.accept_suggestion(current_user, data)
    if not created:
        response.status_code = 200
    return _block_response(block)


@router.delete("/schedule-block/{block_id}")
async def delete_schedule_block(
    block_id: int,
    current_user: User = Depends(get_current_user),
    service: ScheduleService = Depends(get_schedule_service),
):
    """Remove a schedule block and its calendar event"""
    return await service.delete_block(current_user, block_id)


@router.get("/events", response_model=list[CalendarEventResponse])
async def get_calendar_events(
    timeMin: datetime,
    timeMax: datetime,
    current_user: User = Depends(get_current_user),
    service: ScheduleService = Depends(get_schedule_service),
):
    """Calendar events between timeMin and timeMax"""
    return await service.get_events(current_user, as_aware(timeMin), as_aware(timeMax))
