"""Study streak calculation.

A calendar day counts toward a streak only when the total study time
logged for it reaches ``MIN_DAILY_STUDY_TIME`` minutes. The current
streak stays alive through today as long as yesterday qualified; it is
only broken once a whole day is skipped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Mapping, Optional

MIN_DAILY_STUDY_TIME = 60


@dataclass
class StudyStreak:
    current: int = 0
    longest: int = 0
    last_date: Optional[date] = None
    dates_studied: List[date] = field(default_factory=list)
    daily_durations: Dict[date, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "current": self.current,
            "longest": self.longest,
            "last_date": self.last_date.isoformat() if self.last_date else None,
            "dates_studied": [d.isoformat() for d in self.dates_studied],
            "daily_durations": {d.isoformat(): m for d, m in sorted(self.daily_durations.items())},
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "StudyStreak":
        last = data.get("last_date")
        return cls(
            current=int(data.get("current") or 0),
            longest=int(data.get("longest") or 0),
            last_date=date.fromisoformat(last) if last else None,
            dates_studied=[date.fromisoformat(d) for d in data.get("dates_studied") or []],
            daily_durations={
                date.fromisoformat(d): int(m) for d, m in (data.get("daily_durations") or {}).items()
            },
        )


def qualifying_days(
    dates: Iterable[date],
    daily_durations: Mapping[date, int],
    min_minutes: int = MIN_DAILY_STUDY_TIME,
) -> List[date]:
    """Return the sorted unique days whose logged minutes reach `min_minutes`."""
    return sorted({d for d in dates if (daily_durations.get(d) or 0) >= min_minutes})


def _walk_back(anchor: date, valid: set) -> int:
    count = 0
    day = anchor
    while day in valid:
        count += 1
        day -= timedelta(days=1)
    return count


def calculate_streak(
    dates: Iterable[date],
    daily_durations: Mapping[date, int],
    today: Optional[date] = None,
    min_minutes: int = MIN_DAILY_STUDY_TIME,
) -> dict:
    """Compute ``{"current": int, "longest": int}`` for the given study days.

    `today` defaults to the current local date and is injectable so that
    callers and tests can evaluate a log as of any day.
    """
    valid_days = qualifying_days(dates, daily_durations, min_minutes)
    if not valid_days:
        return {"current": 0, "longest": 0}
    today = today or date.today()
    valid = set(valid_days)

    if today in valid:
        current = _walk_back(today, valid)
    elif today - timedelta(days=1) in valid:
        current = _walk_back(today - timedelta(days=1), valid)
    else:
        current = 0

    longest = 1
    run = 1
    for prev, curr in zip(valid_days, valid_days[1:]):
        if (curr - prev).days == 1:
            run += 1
            longest = max(longest, run)
        else:
            run = 1
    return {"current": current, "longest": max(longest, current)}


def update_streak(
    streak: StudyStreak,
    day: date,
    minutes: int,
    today: Optional[date] = None,
    min_minutes: int = MIN_DAILY_STUDY_TIME,
) -> StudyStreak:
    """Return a new `StudyStreak` with `minutes` of study added on `day`."""
    durations = dict(streak.daily_durations)
    durations[day] = durations.get(day, 0) + max(0, int(minutes))
    dates = sorted(set(streak.dates_studied) | {day})
    values = calculate_streak(dates, durations, today=today, min_minutes=min_minutes)
    return StudyStreak(
        current=values["current"],
        longest=values["longest"],
        last_date=day,
        dates_studied=dates,
        daily_durations=durations,
    )
