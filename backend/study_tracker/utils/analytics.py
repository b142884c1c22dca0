"""Time-bucketed study analytics.

All summaries are computed from scratch over the raw session and test
collections. Session durations are normalized with
`convert_duration_to_hours`, so malformed values simply count as zero.
"""

from __future__ import annotations

import re
from collections import OrderedDict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from .activity import DEFAULT_SUBJECT
from .durations import convert_duration_to_hours
from .records import SessionRecord, TestResult

TIME_RANGES = {"week": 7, "month": 30, "year": 365}
DAILY_WINDOW_DAYS = 14
TOP_WEAK_TOPICS = 5
MIN_TOPIC_LENGTH = 3

_TOPIC_SPLIT = re.compile(r"[,;.:\n]")


def window_start(time_range: str, today: date) -> date:
    try:
        days = TIME_RANGES[time_range]
    except KeyError:
        raise ValueError(f"unknown time range: {time_range}")
    return today - timedelta(days=days)


def study_hours_by_subject(sessions: Iterable[SessionRecord], since: date) -> List[dict]:
    totals: Dict[str, float] = OrderedDict()
    for s in sessions:
        if s.date < since:
            continue
        subject = s.subject or DEFAULT_SUBJECT
        totals[subject] = totals.get(subject, 0.0) + convert_duration_to_hours(s.duration)
    return [{"subject": subject, "hours": round(hours, 2)} for subject, hours in totals.items()]


def daily_study_hours(sessions: Iterable[SessionRecord], today: date) -> List[dict]:
    """Hours per day for the trailing 14 days, oldest first, zero-filled."""
    days = [today - timedelta(days=i) for i in range(DAILY_WINDOW_DAYS - 1, -1, -1)]
    totals = {d: 0.0 for d in days}
    for s in sessions:
        if s.date in totals:
            totals[s.date] += convert_duration_to_hours(s.duration)
    return [{"date": d.isoformat(), "hours": round(totals[d], 2)} for d in days]


def score_trends(tests: Iterable[TestResult], since: date) -> Dict[str, List[dict]]:
    grouped: Dict[str, List[TestResult]] = OrderedDict()
    for t in tests:
        if t.date < since or not t.marks_total or t.marks_total <= 0:
            continue
        grouped.setdefault(t.subject, []).append(t)
    return {
        subject: [
            {"date": t.date.isoformat(), "score": t.percentage}
            for t in sorted(records, key=lambda r: r.date)
        ]
        for subject, records in grouped.items()
    }


def split_topics(areas) -> List[str]:
    """Split improvement areas (a list or free text) into topic fragments."""
    if not areas:
        return []
    text = "\n".join(areas) if isinstance(areas, (list, tuple)) else str(areas)
    return [p.strip() for p in _TOPIC_SPLIT.split(text) if len(p.strip()) > MIN_TOPIC_LENGTH]


def weak_topics(tests: Iterable[TestResult], since: date) -> List[dict]:
    counts: Dict[str, dict] = OrderedDict()
    for t in tests:
        if t.date < since:
            continue
        for topic in split_topics(t.areas_to_improve):
            entry = counts.setdefault(topic, {"topic": topic, "count": 0, "subject": t.subject})
            entry["count"] += 1
    ranked = sorted(counts.values(), key=lambda e: e["count"], reverse=True)
    return ranked[:TOP_WEAK_TOPICS]


def build_analytics(
    sessions: Iterable[SessionRecord],
    tests: Iterable[TestResult],
    time_range: str = "week",
    today: Optional[date] = None,
) -> dict:
    today = today or date.today()
    since = window_start(time_range, today)
    sessions = list(sessions)
    tests = list(tests)
    return {
        "range": time_range,
        "study_hours_by_subject": study_hours_by_subject(sessions, since),
        "daily_study_hours": daily_study_hours(sessions, today),
        "test_score_trends": score_trends(tests, since),
        "weak_topics": weak_topics(tests, since),
    }
