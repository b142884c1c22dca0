"""Rule-based study recommendations for the PCM subjects.

Each subject gets at most one recommendation, chosen by the first rule
that matches, in this order: failing test score, low study frequency,
time gap since the last session, moderate test score, maintenance.
A weekly review entry (Sundays only) and a streak entry are added
independently. Output is sorted by priority, highest first, and capped
at `MAX_RECOMMENDATIONS`.
"""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from .activity import StudyActivity, SubjectProgress
from .records import TestResult
from .streaks import StudyStreak

_LOGGER = logging.getLogger("study_tracker.recommendations")

PCM_SUBJECTS = ("Mathematics", "Physics", "Chemistry")
WEEKLY_REVIEW = "Weekly Review"
STUDY_STREAK = "Study Streak"
MAX_RECOMMENDATIONS = 10
RECOMMENDATION_TYPES = ("time-gap", "low-frequency", "test-score", "study-balance", "streak")

FAILING_SCORE = 50
MODERATE_SCORE_CEILING = 65
MIN_WEEKLY_DAYS = 3
MAX_DAYS_WITHOUT_STUDY = 3
WINDOW_DAYS = 7

NO_DATA_TEXT = (
    "No data available. Add test records or complete study sessions "
    "to see personalized recommendations."
)

GENERIC_FOCUS = {
    "Mathematics": "problem-solving and formulas",
    "Physics": "concepts and numerical application",
    "Chemistry": "reaction mechanisms and structures",
}

RESUME_HINTS = {
    "Mathematics": "Schedule time to practice calculus and algebra problems.",
    "Physics": "Review mechanics and electromagnetism concepts to maintain momentum.",
    "Chemistry": "Resume with organic reactions and periodic table review.",
}


@dataclass(frozen=True)
class Recommendation:
    id: str
    subject: str
    text: str
    type: str
    priority: int
    sub_topic: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subject": self.subject,
            "sub_topic": self.sub_topic,
            "text": self.text,
            "type": self.type,
            "priority": self.priority,
        }


def _new_id(prefix: str, subject: str) -> str:
    return f"{prefix}-{subject.lower().replace(' ', '-')}-{uuid.uuid4().hex[:8]}"


def default_recommendations() -> List[Recommendation]:
    """Placeholders shown when the user has neither sessions nor tests."""
    return [
        Recommendation(
            id=f"default-{subject.lower()}",
            subject=subject,
            text=NO_DATA_TEXT,
            type="study-balance",
            priority=1,
        )
        for subject in PCM_SUBJECTS
    ]


def _valid_tests(test_records: Iterable[TestResult]) -> List[TestResult]:
    out = []
    for t in test_records:
        if not t.marks_total or t.marks_total <= 0:
            _LOGGER.warning("skipping test record %s with marks_total=%s", t.id, t.marks_total)
            continue
        out.append(t)
    return out


def window_start(today: date) -> date:
    """First day of the trailing week that ends on `today`."""
    return today - timedelta(days=WINDOW_DAYS - 1)


def _pomodoros_since(activities: Sequence[StudyActivity], since: date) -> List[StudyActivity]:
    # test entries mark a recorded result, not time spent studying
    return [a for a in activities if a.type == "pomodoro" and a.date >= since]


def _study_days_in_window(activities: Sequence[StudyActivity], since: date) -> Dict[str, set]:
    days: Dict[str, set] = {s: set() for s in PCM_SUBJECTS}
    for a in _pomodoros_since(activities, since):
        if a.subject in days:
            days[a.subject].add(a.date)
    return days


def _last_pomodoro(activities: Sequence[StudyActivity], subject: str) -> Optional[date]:
    return max((a.date for a in activities if a.type == "pomodoro" and a.subject == subject), default=None)


def _session_counts_in_window(activities: Sequence[StudyActivity], since: date) -> Dict[str, int]:
    counts = {s: 0 for s in PCM_SUBJECTS}
    for a in _pomodoros_since(activities, since):
        if a.subject in counts:
            counts[a.subject] += 1
    return counts


def failing_test_recommendation(subject: str, test: TestResult) -> Recommendation:
    topic = test.sub_topic or subject
    if test.areas_to_improve:
        focus = ", ".join(test.areas_to_improve)
    else:
        focus = GENERIC_FOCUS.get(subject, "weak areas")
    return Recommendation(
        id=_new_id(f"test-{test.id}", subject),
        subject=subject,
        sub_topic=test.sub_topic,
        text=f"You scored {test.percentage}% in {topic}. Focus on {focus}.",
        type="test-score",
        priority=5,
    )


def low_frequency_recommendation(subject: str, days: int) -> Recommendation:
    if days == 0:
        text = (
            f"You haven't studied {subject} in the last 7 days. "
            "Schedule a focused session today to maintain your knowledge."
        )
    else:
        text = (
            f"You've only studied {subject} on {days} days in the last week. "
            "Increase your frequency for better retention."
        )
    return Recommendation(
        id=_new_id("frequency", subject), subject=subject, text=text, type="low-frequency", priority=4
    )


def time_gap_recommendation(subject: str, days_since: int) -> Recommendation:
    hint = RESUME_HINTS.get(subject, "Resume your studies to maintain continuity.")
    return Recommendation(
        id=_new_id("gap", subject),
        subject=subject,
        text=f"It's been {days_since} days since your last {subject} session. {hint}",
        type="time-gap",
        priority=3,
    )


def moderate_score_recommendation(subject: str, test: TestResult) -> Recommendation:
    topic = test.sub_topic or subject
    if test.areas_to_improve:
        text = (
            f"Your {test.percentage}% score in {topic} shows room for improvement. "
            f"Focus on: {', '.join(test.areas_to_improve)}."
        )
    else:
        text = (
            f"Your {test.percentage}% score in {topic} is passing but could be stronger. "
            "Schedule additional practice sessions."
        )
    return Recommendation(
        id=_new_id("avg-score", subject),
        subject=subject,
        sub_topic=test.sub_topic,
        text=text,
        type="test-score",
        priority=2,
    )


def maintenance_recommendation(subject: str) -> Recommendation:
    return Recommendation(
        id=_new_id("maintain", subject),
        subject=subject,
        text=(
            f"Your {subject} studies are on track. Focus on maintaining consistency "
            "and expanding your understanding of complex topics."
        ),
        type="study-balance",
        priority=1,
    )


def weekly_review_recommendation(
    activities: Sequence[StudyActivity], today: date
) -> Optional[Recommendation]:
    """Sunday summary naming the PCM subject studied least in the past week."""
    if today.weekday() != 6:
        return None
    since = window_start(today)
    if not _pomodoros_since(activities, since):
        return None
    counts = _session_counts_in_window(activities, since)
    least = min(PCM_SUBJECTS, key=lambda s: counts[s])
    count = counts[least]
    if count == 0:
        text = f"You studied {least} the least this week, with no sessions at all. Prioritize it next week."
    elif count < MIN_WEEKLY_DAYS:
        text = f"You studied {least} the least this week, only {count} times. Prioritize it next week."
    else:
        return None
    return Recommendation(
        id=_new_id("weekly-review", least), subject=WEEKLY_REVIEW, text=text, type="study-balance", priority=5
    )


def streak_recommendation(streak: StudyStreak) -> Optional[Recommendation]:
    if streak.current > 0:
        return Recommendation(
            id=_new_id("streak-current", STUDY_STREAK),
            subject=STUDY_STREAK,
            text=f"Keep up your {streak.current}-day study streak! You're building great study habits.",
            type="streak",
            priority=2,
        )
    if streak.longest > 0:
        return Recommendation(
            id=_new_id("streak-longest", STUDY_STREAK),
            subject=STUDY_STREAK,
            text=f"You previously reached a {streak.longest}-day study streak. Can you beat that record?",
            type="streak",
            priority=1,
        )
    return None


def generate_recommendations(
    test_records: Iterable[TestResult],
    activities: Iterable[StudyActivity],
    subjects: Dict[str, SubjectProgress],
    streak: StudyStreak,
    today: Optional[date] = None,
    rng: Optional[random.Random] = None,
) -> List[Recommendation]:
    """Build the full, freshly ranked recommendation list.

    Every call recomputes from scratch; callers replace, never merge, the
    previous list. The failing-test rule picks one low-scoring test at
    random so repeated refreshes rotate through them; pass a seeded `rng`
    for reproducible output.
    """
    today = today or date.today()
    rng = rng or random.Random()
    tests = _valid_tests(test_records)
    activities = list(activities)

    if not tests and not activities:
        return default_recommendations()

    since = window_start(today)
    study_days = _study_days_in_window(activities, since)
    out: List[Recommendation] = []

    weekly = weekly_review_recommendation(activities, today)
    if weekly:
        out.append(weekly)

    for subject in PCM_SUBJECTS:
        subject_tests = sorted(
            (t for t in tests if t.subject.lower() == subject.lower()),
            key=lambda t: t.date,
            reverse=True,
        )
        failing = [t for t in subject_tests if t.ratio * 100 < FAILING_SCORE]
        if failing:
            out.append(failing_test_recommendation(subject, rng.choice(failing)))
            continue

        days = len(study_days[subject])
        if days < MIN_WEEKLY_DAYS:
            out.append(low_frequency_recommendation(subject, days))
            continue

        last_studied = _last_pomodoro(activities, subject)
        if last_studied is None and subject in subjects:
            last_studied = subjects[subject].last_studied
        if last_studied is not None:
            days_since = (today - last_studied).days
            if days_since > MAX_DAYS_WITHOUT_STUDY:
                out.append(time_gap_recommendation(subject, days_since))
                continue

        if subject_tests:
            latest = subject_tests[0]
            if FAILING_SCORE <= latest.percentage < MODERATE_SCORE_CEILING:
                out.append(moderate_score_recommendation(subject, latest))
                continue

        if not any(r.subject == subject for r in out):
            out.append(maintenance_recommendation(subject))

    streak_rec = streak_recommendation(streak)
    if streak_rec:
        out.append(streak_rec)

    out.sort(key=lambda r: r.priority, reverse=True)
    return out[:MAX_RECOMMENDATIONS]
