"""Scheduling repository - Database operations for tasks and schedule blocks"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from ...models import OPEN_TASK_STATUSES, ScheduleBlock, Task


class SchedulingRepository:
    """Repository for scheduling database operations"""

    @staticmethod
    def _visible_tasks(
        db: Session, user_id: int, project_id: Optional[str] = None, my_tasks_only: bool = False
    ) -> Query:
        """Tasks the user owns or is assigned to, optionally narrowed down"""
        if my_tasks_only:
            query = db.query(Task).filter(Task.assignee_id == user_id)
        else:
            query = db.query(Task).filter(or_(Task.owner_id == user_id, Task.assignee_id == user_id))
        if project_id:
            query = query.filter(Task.project_id == project_id)
        return query

    @classmethod
    def get_schedulable_tasks(
        cls, db: Session, user_id: int, project_id: Optional[str] = None, my_tasks_only: bool = False
    ) -> list[Task]:
        """Open tasks with both a due date and a time estimate"""
        return (
            cls._visible_tasks(db, user_id, project_id, my_tasks_only)
            .filter(
                Task.status.in_(OPEN_TASK_STATUSES),
                Task.due_date.isnot(None),
                Task.estimated_hours.isnot(None),
                Task.estimated_hours > 0,
            )
            .order_by(Task.due_date.asc(), Task.id.asc())
            .all()
        )

    @classmethod
    def get_unestimated_tasks(
        cls,
        db: Session,
        user_id: int,
        project_id: Optional[str] = None,
        my_tasks_only: bool = False,
        limit: int = 20,
    ) -> list[Task]:
        """Open tasks missing a due date or an estimate, newest first"""
        return (
            cls._visible_tasks(db, user_id, project_id, my_tasks_only)
            .filter(
                Task.status.in_(OPEN_TASK_STATUSES),
                or_(Task.due_date.is_(None), Task.estimated_hours.is_(None)),
            )
            .order_by(Task.created_at.desc(), Task.id.desc())
            .limit(limit)
            .all()
        )

    @classmethod
    def get_task(cls, db: Session, task_id: int, user_id: int) -> Optional[Task]:
        return cls._visible_tasks(db, user_id).filter(Task.id == task_id).first()

    @staticmethod
    def get_block(db: Session, task_id: int, date: str, start_time: str) -> Optional[ScheduleBlock]:
        return (
            db.query(ScheduleBlock)
            .filter(
                ScheduleBlock.task_id == task_id,
                ScheduleBlock.date == date,
                ScheduleBlock.start_time == start_time,
            )
            .first()
        )

    @staticmethod
    def _visible_blocks(db: Session, user_id: int) -> Query:
        return (
            db.query(ScheduleBlock)
            .join(Task, ScheduleBlock.task_id == Task.id)
            .filter(or_(Task.owner_id == user_id, Task.assignee_id == user_id))
        )

    @classmethod
    def get_block_by_id(cls, db: Session, block_id: int, user_id: int) -> Optional[ScheduleBlock]:
        return cls._visible_blocks(db, user_id).filter(ScheduleBlock.id == block_id).first()

    @classmethod
    def get_blocks_for_tasks(cls, db: Session, task_ids: list[int], user_id: int) -> list[ScheduleBlock]:
        return (
            cls._visible_blocks(db, user_id)
            .filter(ScheduleBlock.task_id.in_(task_ids))
            .order_by(ScheduleBlock.date.asc(), ScheduleBlock.start_time.asc())
            .all()
        )

    @classmethod
    def create_block(cls, db: Session, **block_data) -> tuple[ScheduleBlock, bool]:
        """
        Insert a schedule block.
        Returns (block, created); a concurrent duplicate returns the existing row.
        """
        block = ScheduleBlock(**block_data)
        db.add(block)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            existing = cls.get_block(
                db, block_data["task_id"], block_data["date"], block_data["start_time"]
            )
            if existing is None:
                raise
            return existing, False
        db.refresh(block)
        return block, True

    @staticmethod
    def delete_block(db: Session, block: ScheduleBlock) -> None:
        db.delete(block)
        db.commit()
