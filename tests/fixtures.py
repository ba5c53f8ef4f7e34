"""Shared test helpers: in-memory database, users, tasks and an API client."""

from datetime import date, datetime, time

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tasuke.auth import create_api_token
from tasuke.database import Base, get_db
from tasuke.domain.scheduling.types import FreeSlot, SchedulableTask
from tasuke.main import app
from tasuke.models import Task, User

# Monday
MONDAY = date(2026, 10, 19)


def make_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def make_user(db, email="member@example.com") -> User:
    user = User(email=email, full_name="Team Member")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_task(db, owner, **fields) -> Task:
    values = {
        "title": "Task",
        "priority": "P2",
        "status": "TODO",
        "estimated_hours": 2.0,
    }
    values.update(fields)
    task = Task(owner_id=owner.id, **values)
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


def slot(day: date, start_hour: int, end_hour: int) -> FreeSlot:
    return FreeSlot(day, time(start_hour), time(end_hour))


def task(task_id, due: datetime, hours: float, priority="P2", title=None) -> SchedulableTask:
    return SchedulableTask(
        id=task_id,
        title=title or f"Task {task_id}",
        due_date=due,
        estimated_hours=hours,
        priority=priority,
    )


class ApiHarness:
    """TestClient bound to a private in-memory database and an authenticated user"""

    def __init__(self):
        self.Session = make_session_factory()

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)
        self.db = self.Session()
        self.user = make_user(self.db)
        token = create_api_token(self.db, self.user, name="tests")
        self.headers = {"Authorization": f"Bearer {token}"}

    def close(self):
        self.db.close()
        app.dependency_overrides.clear()
