from datetime import date, timedelta
from study_tracker.utils.streaks import (
    MIN_DAILY_STUDY_TIME, StudyStreak, calculate_streak, qualifying_days, update_streak,
)

TODAY = date(2024, 6, 12)


def _days(*offsets):
    return [TODAY - timedelta(days=o) for o in offsets]


def test_single_qualifying_day_today():
    # 90 minutes of Physics today is enough for a one-day streak
    result = calculate_streak([TODAY], {TODAY: 90}, today=TODAY)
    assert result == {"current": 1, "longest": 1}


def test_no_qualifying_days():
    assert calculate_streak([], {}, today=TODAY) == {"current": 0, "longest": 0}
    assert calculate_streak([TODAY], {TODAY: MIN_DAILY_STUDY_TIME - 1}, today=TODAY) == {"current": 0, "longest": 0}


def test_threshold_is_inclusive():
    assert calculate_streak([TODAY], {TODAY: 60}, today=TODAY)["current"] == 1


def test_streak_carried_by_yesterday():
    days = _days(1, 2, 3)
    durations = {d: 60 for d in days}
    assert calculate_streak(days, durations, today=TODAY) == {"current": 3, "longest": 3}


def test_streak_broken_after_skipped_day():
    days = _days(2, 3, 4, 5)
    durations = {d: 120 for d in days}
    result = calculate_streak(days, durations, today=TODAY)
    assert result["current"] == 0
    assert result["longest"] == 4


def test_short_days_break_the_run():
    days = _days(0, 1, 2, 3)
    durations = {d: 75 for d in days}
    durations[days[2]] = 30
    result = calculate_streak(days, durations, today=TODAY)
    assert result["current"] == 2
    assert result["longest"] == 2


def test_longest_from_history():
    days = _days(0, 10, 11, 12, 13, 14)
    durations = {d: 60 for d in days}
    assert calculate_streak(days, durations, today=TODAY) == {"current": 1, "longest": 5}


def test_qualifying_days_sorted_unique():
    days = _days(0, 3, 3, 1)
    durations = {d: 60 for d in days}
    assert qualifying_days(days, durations) == sorted(set(days))


def test_update_streak_accumulates_minutes():
    streak = StudyStreak()
    streak = update_streak(streak, TODAY, 30, today=TODAY)
    assert streak.current == 0
    assert streak.daily_durations[TODAY] == 30
    streak = update_streak(streak, TODAY, 30, today=TODAY)
    assert streak.current == 1
    assert streak.longest == 1
    assert streak.last_date == TODAY
    assert streak.dates_studied == [TODAY]


def test_update_streak_does_not_mutate_input():
    before = StudyStreak()
    update_streak(before, TODAY, 90, today=TODAY)
    assert before.daily_durations == {}
    assert before.current == 0


def test_streak_serialization():
    streak = update_streak(StudyStreak(), TODAY, 90, today=TODAY)
    data = streak.to_dict()
    assert data["daily_durations"] == {"2024-06-12": 90}
    assert data["last_date"] == "2024-06-12"
    assert StudyStreak.from_dict(data) == streak
