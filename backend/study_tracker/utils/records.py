"""Plain read-only record types consumed by recommendations and analytics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, List, Optional, Union

PERFORMANCE_LEVELS = ("excellent", "good", "average", "poor")


@dataclass(frozen=True)
class TestResult:
    __test__ = False

    id: Union[int, str]
    subject: str
    marks_obtained: float
    marks_total: float
    date: date
    sub_topic: Optional[str] = None
    areas_to_improve: List[str] = field(default_factory=list)

    @property
    def ratio(self) -> float:
        return self.marks_obtained / self.marks_total

    @property
    def percentage(self) -> int:
        return score_percentage(self.marks_obtained, self.marks_total)


@dataclass(frozen=True)
class SessionRecord:
    """A raw Pomodoro session as stored; `duration` is not yet normalized."""
    subject: Optional[str]
    date: date
    duration: Any = None


def score_percentage(marks_obtained: float, marks_total: float) -> int:
    """Whole-number percentage, rounding halves up."""
    if marks_total <= 0:
        raise ValueError("marks_total must be > 0")
    return int(marks_obtained * 100 / marks_total + 0.5)


def performance_for(marks_obtained: float, marks_total: float) -> str:
    if marks_total <= 0:
        raise ValueError("marks_total must be > 0")
    pct = marks_obtained / marks_total * 100
    if pct >= 85:
        return "excellent"
    elif pct >= 70:
        return "good"
    elif pct >= 50:
        return "average"
    return "poor"
