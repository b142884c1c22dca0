"""Per-subject activity tracking and change notification.

`SubjectActivityTracker` ingests one `StudyActivity` at a time, updating
the subject's progress and the user's streak, then notifies subscribers
with the new `TrackerState`. State is passed in and returned explicitly;
persistence is the caller's concern (see `repositories`).
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from .streaks import MIN_DAILY_STUDY_TIME, StudyStreak, calculate_streak, update_streak

_LOGGER = logging.getLogger("study_tracker.tracker")

ACTIVITY_TYPES = ("pomodoro", "test")
DEFAULT_SUBJECT = "General Study"


@dataclass(frozen=True)
class StudyActivity:
    subject: str
    date: date
    type: str = "pomodoro"
    duration_minutes: int = 0

    def __post_init__(self):
        if self.type not in ACTIVITY_TYPES:
            raise ValueError(f"unknown activity type: {self.type}")
        if self.duration_minutes < 0:
            raise ValueError("duration_minutes must be >= 0")


@dataclass
class SubjectProgress:
    subject: str
    last_studied: date
    frequency: int = 0
    daily_times: Dict[date, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "subject": self.subject,
            "last_studied": self.last_studied.isoformat(),
            "frequency": self.frequency,
            "daily_times": {d.isoformat(): m for d, m in sorted(self.daily_times.items())},
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "SubjectProgress":
        return cls(
            subject=data["subject"],
            last_studied=date.fromisoformat(data["last_studied"]),
            frequency=int(data.get("frequency") or 0),
            daily_times={date.fromisoformat(d): int(m) for d, m in (data.get("daily_times") or {}).items()},
        )


@dataclass
class TrackerState:
    streak: StudyStreak = field(default_factory=StudyStreak)
    subjects: Dict[str, SubjectProgress] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "streak": self.streak.to_dict(),
            "subjects": {name: p.to_dict() for name, p in self.subjects.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "TrackerState":
        return cls(
            streak=StudyStreak.from_dict(data.get("streak") or {}),
            subjects={
                name: SubjectProgress.from_dict(p) for name, p in (data.get("subjects") or {}).items()
            },
        )


def ingest_subject(progress: Optional[SubjectProgress], activity: StudyActivity) -> SubjectProgress:
    """Return updated progress for the activity's subject."""
    times = dict(progress.daily_times) if progress else {}
    times[activity.date] = times.get(activity.date, 0) + activity.duration_minutes
    return SubjectProgress(
        subject=activity.subject,
        last_studied=activity.date,
        frequency=(progress.frequency if progress else 0) + 1,
        daily_times=times,
    )


def apply_activity(
    state: TrackerState,
    activity: StudyActivity,
    today: Optional[date] = None,
    min_minutes: int = MIN_DAILY_STUDY_TIME,
) -> TrackerState:
    subjects = dict(state.subjects)
    subjects[activity.subject] = ingest_subject(subjects.get(activity.subject), activity)
    streak = update_streak(state.streak, activity.date, activity.duration_minutes, today=today, min_minutes=min_minutes)
    return TrackerState(streak=streak, subjects=subjects)


def build_state(
    activities: Iterable[StudyActivity],
    today: Optional[date] = None,
    min_minutes: int = MIN_DAILY_STUDY_TIME,
) -> TrackerState:
    """Replay an activity log, oldest first, into a fresh `TrackerState`."""
    subjects: Dict[str, SubjectProgress] = {}
    durations: Dict[date, int] = {}
    for activity in sorted(activities, key=lambda a: a.date):
        subjects[activity.subject] = ingest_subject(subjects.get(activity.subject), activity)
        durations[activity.date] = durations.get(activity.date, 0) + activity.duration_minutes
    dates = sorted(durations)
    values = calculate_streak(dates, durations, today=today, min_minutes=min_minutes)
    streak = StudyStreak(
        current=values["current"],
        longest=values["longest"],
        last_date=dates[-1] if dates else None,
        dates_studied=dates,
        daily_durations=durations,
    )
    return TrackerState(streak=streak, subjects=subjects)


class SubjectActivityTracker:
    """Holds one user's `TrackerState` and notifies subscribers on change."""

    def __init__(self, state: Optional[TrackerState] = None, min_minutes: int = MIN_DAILY_STUDY_TIME):
        self._state = state or TrackerState()
        self._min_minutes = min_minutes
        self._subscribers: List[Callable[[TrackerState], None]] = []
        self._lock = threading.Lock()

    @property
    def state(self) -> TrackerState:
        return self._state

    def subscribe(self, callback: Callable[[TrackerState], None]) -> Callable[[], None]:
        """Register `callback`; the returned callable removes it again."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def record(self, activity: StudyActivity, today: Optional[date] = None) -> TrackerState:
        with self._lock:
            self._state = apply_activity(self._state, activity, today=today, min_minutes=self._min_minutes)
            state = self._state
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(state)
            except Exception:
                _LOGGER.exception("tracker subscriber failed for subject %s", activity.subject)
        return state
