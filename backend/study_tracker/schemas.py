"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests.
"""

import datetime as dt
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Literal, Optional, Union


def _reject_null(value):
    if value is None:
        raise ValueError("may be omitted but not null")
    return value


class RegisterIn(BaseModel):
    """Payload for user registration/login endpoints."""
    username: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str


class TaskIn(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    subject: Optional[str] = None
    due_date: Optional[dt.date] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    subject: Optional[str] = None
    status: Optional[Literal["todo", "in_progress", "completed"]] = None
    due_date: Optional[dt.date] = None

    reject_nulls = field_validator("title", "status")(_reject_null)


class TopicIn(BaseModel):
    subject: str
    name: str = Field(min_length=1)


class TopicUpdate(BaseModel):
    name: Optional[str] = None
    completed: Optional[bool] = None

    reject_nulls = field_validator("name", "completed")(_reject_null)


class SessionStartIn(BaseModel):
    """Start a Pomodoro session; `subject` defaults to General Study."""
    subject: str = "General Study"
    task_name: str = "Focus session"


class SessionStopIn(BaseModel):
    """Stop a running session.

    `duration` may be seconds or ``H:MM:SS`` text. When omitted, the
    elapsed time between start and stop is used.
    """
    duration: Optional[Union[int, float, str]] = None


class TestRecordIn(BaseModel):
    """A test result; marks must satisfy 0 <= obtained <= total, total > 0."""
    subject: str
    name: Optional[str] = None
    sub_topic: Optional[str] = None
    marks_obtained: float = Field(ge=0)
    marks_total: float = Field(gt=0)
    date: dt.date
    areas_to_improve: List[str] = Field(default_factory=list)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_marks(self):
        if self.marks_obtained > self.marks_total:
            raise ValueError("marks_obtained must not exceed marks_total")
        return self


class TestRecordUpdate(BaseModel):
    subject: Optional[str] = None
    name: Optional[str] = None
    sub_topic: Optional[str] = None
    marks_obtained: Optional[float] = Field(default=None, ge=0)
    marks_total: Optional[float] = Field(default=None, gt=0)
    date: Optional[dt.date] = None
    areas_to_improve: Optional[List[str]] = None
    notes: Optional[str] = None

    reject_nulls = field_validator(
        "subject", "name", "marks_obtained", "marks_total", "date", "areas_to_improve"
    )(_reject_null)


class ActivityIn(BaseModel):
    """Manually log study time; `date` defaults to today."""
    subject: str = "General Study"
    date: Optional[dt.date] = None
    type: Literal["pomodoro", "test"] = "pomodoro"
    duration_minutes: int = Field(default=25, ge=0)


class RecommendationOut(BaseModel):
    id: str
    subject: str
    sub_topic: Optional[str] = None
    text: str
    type: Literal["time-gap", "low-frequency", "test-score", "study-balance", "streak"]
    priority: int = Field(ge=1, le=5)


class GoalIn(BaseModel):
    """A weekly or monthly goal with a deadline."""
    title: str = Field(min_length=1)
    deadline: dt.date
    type: Literal["weekly", "monthly"] = "weekly"


class GoalUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    deadline: Optional[dt.date] = None
    type: Optional[Literal["weekly", "monthly"]] = None
    completed: Optional[bool] = None

    reject_nulls = field_validator("title", "deadline", "type", "completed")(_reject_null)


Color = Literal["blue", "green", "purple", "red"]


class CalendarTaskIn(BaseModel):
    date: dt.date
    subject: str = Field(min_length=1)
    subject_color: Color = "blue"
    title: Optional[str] = None


class SettingsUpdate(BaseModel):
    """Partial update of user preferences; omitted fields keep their value."""
    theme: Optional[Literal["dark", "light", "system"]] = None
    accent_color: Optional[Color] = None
    enable_animations: Optional[bool] = None
    study_hours_goal: Optional[int] = Field(default=None, ge=0)
    pomodoro_work_time: Optional[int] = Field(default=None, ge=1)
    pomodoro_break_time: Optional[int] = Field(default=None, ge=1)
    pomodoro_long_break_time: Optional[int] = Field(default=None, ge=1)
    pomodoro_cycles: Optional[int] = Field(default=None, ge=1)

    reject_nulls = field_validator(
        "theme", "accent_color", "enable_animations", "study_hours_goal", "pomodoro_work_time",
        "pomodoro_break_time", "pomodoro_long_break_time", "pomodoro_cycles",
    )(_reject_null)
