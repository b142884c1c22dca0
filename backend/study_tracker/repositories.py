"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
tasks, syllabus topics, sessions, test records, goals, calendar tasks,
settings, the activity log and cached tracker state). Repositories return SQLModel objects and perform
commits/refreshes where appropriate.
"""

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol
from sqlmodel import Session, select
from .utils.activity import TrackerState
from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)


class _OwnedRepository:
    """Shared helpers for rows owned by a single user."""
    model = None

    def __init__(self, session: Session):
        self.session = session

    def save(self, row):
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def get_for_user(self, user_id: int, row_id: int):
        """Return the row only if it belongs to `user_id`."""
        row = self.session.get(self.model, row_id)
        if row is None or row.user_id != user_id:
            return None
        return row

    def delete(self, row) -> None:
        self.session.delete(row)
        self.session.commit()


class TaskRepository(_OwnedRepository):
    model = models.Task

    def list_for_user(self, user_id: int) -> List[models.Task]:
        stmt = select(models.Task).where(models.Task.user_id == user_id).order_by(models.Task.created_at)
        return self.session.exec(stmt).all()


class TopicRepository(_OwnedRepository):
    model = models.SyllabusTopic

    def list_for_user(self, user_id: int, subject: Optional[str] = None) -> List[models.SyllabusTopic]:
        stmt = select(models.SyllabusTopic).where(models.SyllabusTopic.user_id == user_id)
        if subject:
            stmt = stmt.where(models.SyllabusTopic.subject == subject)
        return self.session.exec(stmt.order_by(models.SyllabusTopic.id)).all()


class StudySessionRepository(_OwnedRepository):
    model = models.StudySession

    def list_for_user(self, user_id: int) -> List[models.StudySession]:
        """Sessions newest first."""
        stmt = select(models.StudySession).where(models.StudySession.user_id == user_id).order_by(
            models.StudySession.date.desc(), models.StudySession.start_time.desc()
        )
        return self.session.exec(stmt).all()

    def get_active(self, user_id: int) -> Optional[models.StudySession]:
        """Return the most recently started session that has not ended."""
        stmt = select(models.StudySession).where(
            models.StudySession.user_id == user_id,
            models.StudySession.end_time == None,  # noqa: E711
        ).order_by(models.StudySession.start_time.desc())
        return self.session.exec(stmt).first()


class TestRecordRepository(_OwnedRepository):
    model = models.TestRecord

    def list_for_user(self, user_id: int) -> List[models.TestRecord]:
        """Test records newest first."""
        stmt = select(models.TestRecord).where(models.TestRecord.user_id == user_id).order_by(
            models.TestRecord.date.desc()
        )
        return self.session.exec(stmt).all()


class GoalRepository(_OwnedRepository):
    model = models.Goal

    def list_for_user(self, user_id: int) -> List[models.Goal]:
        """Goals by deadline, soonest first."""
        stmt = select(models.Goal).where(models.Goal.user_id == user_id).order_by(
            models.Goal.deadline, models.Goal.id
        )
        return self.session.exec(stmt).all()


class CalendarTaskRepository(_OwnedRepository):
    model = models.CalendarTask

    def list_for_user(self, user_id: int) -> List[models.CalendarTask]:
        stmt = select(models.CalendarTask).where(models.CalendarTask.user_id == user_id).order_by(
            models.CalendarTask.date, models.CalendarTask.id
        )
        return self.session.exec(stmt).all()


class UserSettingsRepository:
    """Read and upsert the single settings row of a user."""
    def __init__(self, session: Session):
        self.session = session

    def get_for_user(self, user_id: int) -> Optional[models.UserSettings]:
        stmt = select(models.UserSettings).where(models.UserSettings.user_id == user_id)
        return self.session.exec(stmt).first()

    def upsert(self, user_id: int, changes: dict) -> models.UserSettings:
        """Apply `changes` to the user's row, creating it with defaults first."""
        row = self.get_for_user(user_id)
        if row is None:
            row = models.UserSettings(user_id=user_id)
        for key, value in changes.items():
            setattr(row, key, value)
        row.updated_at = datetime.now(timezone.utc)
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row


class ActivityLogRepository:
    """Append-only access to the study activity log."""
    def __init__(self, session: Session):
        self.session = session

    def append(self, entry: models.ActivityLog) -> models.ActivityLog:
        self.session.add(entry)
        self.session.commit()
        self.session.refresh(entry)
        return entry

    def list_for_user(self, user_id: int) -> List[models.ActivityLog]:
        """Activities oldest first, in insertion order within a day."""
        stmt = select(models.ActivityLog).where(models.ActivityLog.user_id == user_id).order_by(
            models.ActivityLog.date, models.ActivityLog.id
        )
        return self.session.exec(stmt).all()


class TrackerStateRepository(Protocol):
    """Storage for derived tracker state, keyed by user."""
    def load(self, user_id: int) -> Optional[TrackerState]:
        ...

    def save(self, user_id: int, state: TrackerState) -> None:
        ...


class InMemoryTrackerStateRepository:
    """Process-local tracker state store, mainly for tests and scripts."""
    def __init__(self):
        self._states: Dict[int, dict] = {}
        self._lock = threading.Lock()

    def load(self, user_id: int) -> Optional[TrackerState]:
        with self._lock:
            payload = self._states.get(user_id)
        return TrackerState.from_dict(payload) if payload is not None else None

    def save(self, user_id: int, state: TrackerState) -> None:
        with self._lock:
            self._states[user_id] = state.to_dict()


class SQLTrackerStateRepository:
    """Tracker state stored as JSON in `TrackerStateRow`."""
    def __init__(self, session: Session):
        self.session = session

    def load(self, user_id: int) -> Optional[TrackerState]:
        row = self.session.get(models.TrackerStateRow, user_id)
        if row is None:
            return None
        return TrackerState.from_dict(row.payload or {})

    def save(self, user_id: int, state: TrackerState) -> None:
        row = self.session.get(models.TrackerStateRow, user_id)
        if row is None:
            row = models.TrackerStateRow(user_id=user_id)
        row.payload = state.to_dict()
        row.updated_at = datetime.now(timezone.utc)
        self.session.add(row)
        self.session.commit()
