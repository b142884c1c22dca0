"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories and
the pure tracker/recommendation/analytics helpers in `utils`. Services
validate input, execute domain logic and persist aggregates via
repositories. They raise `ValueError` for bad input and `LookupError`
for rows that do not exist or belong to another user.
"""

import json
import logging
import random
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Sequence

import jwt
from passlib.context import CryptContext
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .utils.activity import (
    DEFAULT_SUBJECT, StudyActivity, SubjectActivityTracker, TrackerState, build_state,
)
from .utils.analytics import build_analytics
from .utils.durations import convert_duration_to_hours, hours_to_minutes
from .utils.recommendations import Recommendation, generate_recommendations
from .utils.records import SessionRecord, TestResult, performance_for

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
JWT_SECRET = settings.JWT_SECRET
JWT_ALGORITHM = settings.JWT_ALGORITHM
JWT_EXPIRE_HOURS = settings.JWT_EXPIRE_HOURS

logger = logging.getLogger("study_tracker.services")


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, username: str, password: str) -> models.User:
        """Create a new user with a hashed password.

        Returns the persisted `User` instance.
        """
        hashed = PWD_CTX.hash(password)
        u = models.User(username=username, password_hash=hashed)
        return self.user_repo.create(u)

    def authenticate(self, username: str, password: str):
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_username(username)
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        expire = datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "username": user.username, "exp": int(expire.timestamp())}
        return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


class TaskService:
    """Create, update and complete to-do tasks."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.TaskRepository(session)

    def list(self, user_id: int) -> List[models.Task]:
        return self.repo.list_for_user(user_id)

    def create(self, user_id: int, title: str, description: Optional[str] = None,
               subject: Optional[str] = None, due_date: Optional[date] = None) -> models.Task:
        if not title or not title.strip():
            raise ValueError("title is required")
        task = models.Task(user_id=user_id, title=title.strip(), description=description,
                           subject=subject, due_date=due_date)
        return self.repo.save(task)

    def update(self, user_id: int, task_id: int, changes: dict) -> models.Task:
        task = self.repo.get_for_user(user_id, task_id)
        if not task:
            raise LookupError(f"task not found: {task_id}")
        for key, value in changes.items():
            setattr(task, key, value)
        # completion timestamp follows the status
        if task.status == "completed" and task.completed_at is None:
            task.completed_at = datetime.now(timezone.utc)
        elif task.status != "completed":
            task.completed_at = None
        return self.repo.save(task)

    def delete(self, user_id: int, task_id: int) -> None:
        task = self.repo.get_for_user(user_id, task_id)
        if not task:
            raise LookupError(f"task not found: {task_id}")
        self.repo.delete(task)


class SyllabusService:
    """Syllabus topics and per-subject completion."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.TopicRepository(session)

    def add_topic(self, user_id: int, subject: str, name: str) -> models.SyllabusTopic:
        return self.repo.save(models.SyllabusTopic(user_id=user_id, subject=subject, name=name.strip()))

    def update_topic(self, user_id: int, topic_id: int, changes: dict) -> models.SyllabusTopic:
        topic = self.repo.get_for_user(user_id, topic_id)
        if not topic:
            raise LookupError(f"topic not found: {topic_id}")
        for key, value in changes.items():
            setattr(topic, key, value)
        return self.repo.save(topic)

    def delete_topic(self, user_id: int, topic_id: int) -> None:
        topic = self.repo.get_for_user(user_id, topic_id)
        if not topic:
            raise LookupError(f"topic not found: {topic_id}")
        self.repo.delete(topic)

    def progress(self, user_id: int) -> List[dict]:
        """Return `{subject, total, completed, percent}` per subject."""
        summary = {}
        for topic in self.repo.list_for_user(user_id):
            entry = summary.setdefault(topic.subject, {"subject": topic.subject, "total": 0, "completed": 0})
            entry["total"] += 1
            if topic.completed:
                entry["completed"] += 1
        for entry in summary.values():
            entry["percent"] = round(entry["completed"] / entry["total"] * 100) if entry["total"] else 0
        return list(summary.values())


@dataclass
class Snapshot:
    """Read-only view of one user's raw study data."""
    activities: List[StudyActivity] = field(default_factory=list)
    tests: List[TestResult] = field(default_factory=list)
    sessions: List[SessionRecord] = field(default_factory=list)


def to_test_result(record: models.TestRecord) -> TestResult:
    return TestResult(
        id=record.id,
        subject=record.subject,
        sub_topic=record.sub_topic,
        marks_obtained=record.marks_obtained,
        marks_total=record.marks_total,
        date=record.date,
        areas_to_improve=list(record.areas_to_improve or []),
    )


class TrackerService:
    """Log study activity and derive streak/subject state, recommendations
    and analytics for a user.

    Derived state is cached through a `TrackerStateRepository`; the
    activity log stays authoritative and every refresh rebuilds from it.
    `listeners` are called with the new `TrackerState` after each logged
    activity.
    """
    def __init__(self, session: Session, state_repo: Optional[repositories.TrackerStateRepository] = None,
                 listeners: Sequence[Callable[[TrackerState], None]] = (),
                 today: Optional[date] = None, rng: Optional[random.Random] = None):
        self.session = session
        self.activity_repo = repositories.ActivityLogRepository(session)
        self.test_repo = repositories.TestRecordRepository(session)
        self.session_repo = repositories.StudySessionRepository(session)
        self.state_repo = state_repo or repositories.SQLTrackerStateRepository(session)
        self.listeners = list(listeners)
        self.today = today
        self.rng = rng
        self.min_minutes = settings.MIN_DAILY_STUDY_TIME

    def current_day(self) -> date:
        return self.today or date.today()

    def _safe_fetch(self, label: str, user_id: int, fetch: Callable[[], Iterable], convert: Callable) -> list:
        try:
            return [convert(row) for row in fetch()]
        except Exception:
            logger.exception("snapshot_fetch_failed %s", json.dumps({"what": label, "user_id": user_id}))
            return []

    def load_snapshot(self, user_id: int) -> Snapshot:
        """Fetch the user's raw data; any failure yields an empty collection."""
        activities = self._safe_fetch(
            "activities", user_id, lambda: self.activity_repo.list_for_user(user_id),
            lambda a: StudyActivity(subject=a.subject, date=a.date, type=a.type,
                                    duration_minutes=a.duration_minutes),
        )
        tests = self._safe_fetch("test_records", user_id, lambda: self.test_repo.list_for_user(user_id),
                                 to_test_result)
        sessions = self._safe_fetch(
            "sessions", user_id,
            lambda: [s for s in self.session_repo.list_for_user(user_id) if s.end_time is not None],
            lambda s: SessionRecord(subject=s.subject, date=s.date, duration=s.duration),
        )
        return Snapshot(activities=activities, tests=tests, sessions=sessions)

    def refresh_state(self, user_id: int, snapshot: Optional[Snapshot] = None) -> TrackerState:
        snapshot = snapshot or self.load_snapshot(user_id)
        state = build_state(snapshot.activities, today=self.current_day(), min_minutes=self.min_minutes)
        self.state_repo.save(user_id, state)
        return state

    def log_activity(self, user_id: int, subject: Optional[str] = None, day: Optional[date] = None,
                     activity_type: str = "pomodoro", duration_minutes: int = 25) -> TrackerState:
        """Append one activity to the log and update the derived state."""
        activity = StudyActivity(
            subject=subject or DEFAULT_SUBJECT,
            date=day or self.current_day(),
            type=activity_type,
            duration_minutes=duration_minutes,
        )
        state = self.state_repo.load(user_id)
        if state is None:
            state = build_state(self.load_snapshot(user_id).activities, today=self.current_day(),
                                min_minutes=self.min_minutes)
        self.activity_repo.append(models.ActivityLog(
            user_id=user_id, subject=activity.subject, date=activity.date,
            type=activity.type, duration_minutes=activity.duration_minutes,
        ))
        tracker = SubjectActivityTracker(state, min_minutes=self.min_minutes)
        tracker.subscribe(lambda s: self.state_repo.save(user_id, s))
        for listener in self.listeners:
            tracker.subscribe(listener)
        new_state = tracker.record(activity, today=self.current_day())
        logger.info("activity_logged %s", json.dumps({
            "user_id": user_id,
            "subject": activity.subject,
            "date": activity.date.isoformat(),
            "type": activity.type,
            "minutes": activity.duration_minutes,
            "streak": new_state.streak.current,
        }, ensure_ascii=True))
        return new_state

    def recommendations(self, user_id: int) -> List[Recommendation]:
        snapshot = self.load_snapshot(user_id)
        state = self.refresh_state(user_id, snapshot)
        return generate_recommendations(
            snapshot.tests, snapshot.activities, state.subjects, state.streak,
            today=self.current_day(), rng=self.rng,
        )

    def analytics(self, user_id: int, time_range: str = "week") -> dict:
        snapshot = self.load_snapshot(user_id)
        return build_analytics(snapshot.sessions, snapshot.tests, time_range=time_range, today=self.current_day())


class StudySessionService:
    """Start and stop Pomodoro sessions; a stopped session is logged as activity."""
    def __init__(self, session: Session, tracker: Optional[TrackerService] = None):
        self.session = session
        self.repo = repositories.StudySessionRepository(session)
        self.tracker = tracker or TrackerService(session)

    def list(self, user_id: int) -> List[models.StudySession]:
        return self.repo.list_for_user(user_id)

    def active(self, user_id: int) -> Optional[models.StudySession]:
        return self.repo.get_active(user_id)

    def delete(self, user_id: int, session_id: int) -> None:
        """Remove a session from the history.

        Minutes already logged for it stay in the activity log, so streaks
        are unchanged; analytics no longer count the session.
        """
        row = self.repo.get_for_user(user_id, session_id)
        if not row:
            raise LookupError(f"study session not found: {session_id}")
        self.repo.delete(row)

    def start(self, user_id: int, subject: str = DEFAULT_SUBJECT, task_name: str = "Focus session") -> models.StudySession:
        if self.repo.get_active(user_id):
            raise ValueError("a study session is already running")
        now = datetime.now(timezone.utc)
        row = models.StudySession(user_id=user_id, subject=subject or DEFAULT_SUBJECT, task_name=task_name,
                                  start_time=now, date=self.tracker.current_day())
        return self.repo.save(row)

    def stop(self, user_id: int, session_id: int, duration=None) -> models.StudySession:
        """Close the session and log its minutes against the session's day."""
        row = self.repo.get_for_user(user_id, session_id)
        if not row:
            raise LookupError(f"study session not found: {session_id}")
        if row.end_time is not None:
            raise ValueError("study session already stopped")
        end = datetime.now(timezone.utc)
        if duration is None:
            start = row.start_time if row.start_time.tzinfo else row.start_time.replace(tzinfo=timezone.utc)
            duration = int((end - start).total_seconds())
        minutes = hours_to_minutes(convert_duration_to_hours(duration))
        row.end_time = end
        row.duration = str(duration)
        row = self.repo.save(row)
        self.tracker.log_activity(user_id, subject=row.subject, day=row.date,
                                  activity_type="pomodoro", duration_minutes=minutes)
        # logging the activity commits again, which expires the row
        self.session.refresh(row)
        return row


class TestRecordService:
    """Create/update/delete test records; `performance` is always derived."""
    def __init__(self, session: Session, tracker: Optional[TrackerService] = None):
        self.session = session
        self.repo = repositories.TestRecordRepository(session)
        self.tracker = tracker or TrackerService(session)

    @staticmethod
    def _validate_marks(marks_obtained: float, marks_total: float) -> None:
        if marks_total is None or marks_total <= 0:
            raise ValueError("marks_total must be > 0")
        if marks_obtained is None or marks_obtained < 0 or marks_obtained > marks_total:
            raise ValueError("marks_obtained must be between 0 and marks_total")

    def list(self, user_id: int) -> List[models.TestRecord]:
        return self.repo.list_for_user(user_id)

    def create(self, user_id: int, data: dict) -> models.TestRecord:
        self._validate_marks(data.get("marks_obtained"), data.get("marks_total"))
        record = models.TestRecord(
            user_id=user_id,
            name=data.get("name") or data.get("sub_topic") or f"{data['subject']} Test",
            subject=data["subject"],
            sub_topic=data.get("sub_topic"),
            marks_obtained=data["marks_obtained"],
            marks_total=data["marks_total"],
            date=data["date"],
            performance=performance_for(data["marks_obtained"], data["marks_total"]),
            areas_to_improve=list(data.get("areas_to_improve") or []),
            notes=data.get("notes"),
        )
        record = self.repo.save(record)
        self.tracker.log_activity(user_id, subject=record.subject, day=record.date,
                                  activity_type="test", duration_minutes=0)
        self.session.refresh(record)
        return record

    def update(self, user_id: int, record_id: int, changes: dict) -> models.TestRecord:
        record = self.repo.get_for_user(user_id, record_id)
        if not record:
            raise LookupError(f"test record not found: {record_id}")
        obtained = changes.get("marks_obtained", record.marks_obtained)
        total = changes.get("marks_total", record.marks_total)
        self._validate_marks(obtained, total)
        for key, value in changes.items():
            setattr(record, key, value)
        record.performance = performance_for(record.marks_obtained, record.marks_total)
        return self.repo.save(record)

    def delete(self, user_id: int, record_id: int) -> None:
        record = self.repo.get_for_user(user_id, record_id)
        if not record:
            raise LookupError(f"test record not found: {record_id}")
        self.repo.delete(record)


class GoalService:
    """Weekly and monthly goals."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.GoalRepository(session)

    def list(self, user_id: int) -> List[models.Goal]:
        return self.repo.list_for_user(user_id)

    def create(self, user_id: int, title: str, deadline: date, goal_type: str = "weekly") -> models.Goal:
        if not title or not title.strip():
            raise ValueError("title is required")
        return self.repo.save(models.Goal(user_id=user_id, title=title.strip(), deadline=deadline, type=goal_type))

    def update(self, user_id: int, goal_id: int, changes: dict) -> models.Goal:
        goal = self.repo.get_for_user(user_id, goal_id)
        if not goal:
            raise LookupError(f"goal not found: {goal_id}")
        for key, value in changes.items():
            setattr(goal, key, value)
        return self.repo.save(goal)

    def delete(self, user_id: int, goal_id: int) -> None:
        goal = self.repo.get_for_user(user_id, goal_id)
        if not goal:
            raise LookupError(f"goal not found: {goal_id}")
        self.repo.delete(goal)


class CalendarService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.CalendarTaskRepository(session)

    def list(self, user_id: int) -> List[models.CalendarTask]:
        return self.repo.list_for_user(user_id)

    def create(self, user_id: int, data: dict) -> models.CalendarTask:
        return self.repo.save(models.CalendarTask(user_id=user_id, **data))

    def delete(self, user_id: int, task_id: int) -> None:
        row = self.repo.get_for_user(user_id, task_id)
        if not row:
            raise LookupError(f"calendar task not found: {task_id}")
        self.repo.delete(row)


class SettingsService:
    """User preferences and progress against the weekly study-hours goal."""
    def __init__(self, session: Session, today: Optional[date] = None):
        self.session = session
        self.repo = repositories.UserSettingsRepository(session)
        self.sessions = repositories.StudySessionRepository(session)
        self.today = today

    def get(self, user_id: int) -> models.UserSettings:
        """Stored settings, or unsaved defaults when the user has none yet."""
        return self.repo.get_for_user(user_id) or models.UserSettings(user_id=user_id)

    def update(self, user_id: int, changes: dict) -> models.UserSettings:
        return self.repo.upsert(user_id, changes)

    def weekly_progress(self, user_id: int, week_start: Optional[date] = None) -> dict:
        """Hours from stopped sessions in the week starting `week_start`.

        `week_start` defaults to the Monday of the current week.
        """
        today = self.today or date.today()
        week_start = week_start or today - timedelta(days=today.weekday())
        week_end = week_start + timedelta(days=7)
        hours = sum(
            convert_duration_to_hours(s.duration)
            for s in self.sessions.list_for_user(user_id)
            if s.end_time is not None and week_start <= s.date < week_end
        )
        goal = self.get(user_id).study_hours_goal
        return {
            "week_start": week_start.isoformat(),
            "hours": round(hours, 2),
            "goal": goal,
            "percent": min(100, round(hours / goal * 100)) if goal else 0,
        }
