"""SQLModel data models.

This module defines the application's database tables using SQLModel.
The activity log is the authoritative record of study; tracker state is
derived from it and cached per user in `TrackerStateRow`.
"""

from typing import List, Optional
import datetime as dt
from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `username`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    created_at: dt.datetime = Field(default_factory=_utcnow)


class Task(SQLModel, table=True):
    """A to-do item; `status` is one of todo, in_progress, completed."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    title: str
    description: Optional[str] = None
    subject: Optional[str] = None
    status: str = "todo"
    due_date: Optional[dt.date] = None
    completed_at: Optional[dt.datetime] = None
    created_at: dt.datetime = Field(default_factory=_utcnow)


class SyllabusTopic(SQLModel, table=True):
    """One syllabus topic of a subject, ticked off when completed."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    subject: str = Field(index=True)
    name: str
    completed: bool = False


class StudySession(SQLModel, table=True):
    """A Pomodoro session.

    `duration` keeps whatever the client reported (seconds, or
    ``H:MM:SS`` text); it is normalized only when read. A session without
    `end_time` is still running.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    task_name: str = "Focus session"
    subject: str = "General Study"
    start_time: dt.datetime = Field(default_factory=_utcnow)
    end_time: Optional[dt.datetime] = None
    duration: Optional[str] = None
    date: dt.date = Field(default_factory=dt.date.today, index=True)


class TestRecord(SQLModel, table=True):
    """A recorded test with derived `performance` band."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    name: str
    subject: str = Field(index=True)
    sub_topic: Optional[str] = None
    marks_obtained: float
    marks_total: float
    date: dt.date
    performance: str
    areas_to_improve: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    notes: Optional[str] = None
    created_at: dt.datetime = Field(default_factory=_utcnow)


class ActivityLog(SQLModel, table=True):
    """Immutable study activity entry (`type` is pomodoro or test)."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    subject: str
    date: dt.date = Field(index=True)
    type: str = "pomodoro"
    duration_minutes: int = 0
    created_at: dt.datetime = Field(default_factory=_utcnow)


class TrackerStateRow(SQLModel, table=True):
    """Cached, serialized `TrackerState` for one user."""
    user_id: int = Field(foreign_key='user.id', primary_key=True)
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON))
    updated_at: dt.datetime = Field(default_factory=_utcnow)


class Goal(SQLModel, table=True):
    """A weekly or monthly study goal, ticked off when completed."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    title: str
    completed: bool = False
    deadline: dt.date
    type: str = "weekly"
    created_at: dt.datetime = Field(default_factory=_utcnow)


class CalendarTask(SQLModel, table=True):
    """A subject block pinned to a calendar day."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    date: dt.date = Field(index=True)
    subject: str
    subject_color: str = "blue"
    title: Optional[str] = None
    created_at: dt.datetime = Field(default_factory=_utcnow)


class UserSettings(SQLModel, table=True):
    """Per-user preferences; at most one row per user.

    The Pomodoro fields are minutes (cycles is a count). `study_hours_goal`
    is the weekly target used by `/settings/progress`.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', unique=True)
    theme: str = "system"
    accent_color: str = "blue"
    enable_animations: bool = True
    study_hours_goal: int = 35
    pomodoro_work_time: int = 25
    pomodoro_break_time: int = 5
    pomodoro_long_break_time: int = 15
    pomodoro_cycles: int = 4
    created_at: dt.datetime = Field(default_factory=_utcnow)
    updated_at: dt.datetime = Field(default_factory=_utcnow)
