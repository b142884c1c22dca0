from datetime import date, timedelta
import pytest
from study_tracker.utils.activity import (
    StudyActivity, SubjectActivityTracker, TrackerState, apply_activity, build_state,
)

TODAY = date(2024, 6, 12)


def test_activity_validation():
    with pytest.raises(ValueError):
        StudyActivity(subject="Physics", date=TODAY, type="nap")
    with pytest.raises(ValueError):
        StudyActivity(subject="Physics", date=TODAY, duration_minutes=-5)


def test_apply_activity_updates_subject_and_streak():
    state = apply_activity(TrackerState(), StudyActivity("Physics", TODAY, duration_minutes=90), today=TODAY)
    physics = state.subjects["Physics"]
    assert physics.frequency == 1
    assert physics.last_studied == TODAY
    assert physics.daily_times == {TODAY: 90}
    assert state.streak.current == 1


def test_test_activity_counts_frequency_without_minutes():
    state = apply_activity(TrackerState(), StudyActivity("Chemistry", TODAY, type="test"), today=TODAY)
    assert state.subjects["Chemistry"].frequency == 1
    assert state.streak.current == 0


def test_build_state_replays_in_date_order():
    yesterday = TODAY - timedelta(days=1)
    log = [
        StudyActivity("Mathematics", TODAY, duration_minutes=40),
        StudyActivity("Mathematics", yesterday, duration_minutes=70),
        StudyActivity("Physics", TODAY, duration_minutes=20),
    ]
    state = build_state(log, today=TODAY)
    assert state.subjects["Mathematics"].last_studied == TODAY
    assert state.subjects["Mathematics"].frequency == 2
    assert state.streak.daily_durations == {yesterday: 70, TODAY: 60}
    assert state.streak.current == 2
    assert state.streak.last_date == TODAY


def test_tracker_notifies_subscribers():
    tracker = SubjectActivityTracker()
    seen = []
    unsubscribe = tracker.subscribe(seen.append)
    tracker.record(StudyActivity("Physics", TODAY, duration_minutes=25), today=TODAY)
    assert len(seen) == 1
    assert seen[0].subjects["Physics"].frequency == 1
    unsubscribe()
    tracker.record(StudyActivity("Physics", TODAY, duration_minutes=25), today=TODAY)
    assert len(seen) == 1
    assert tracker.state.subjects["Physics"].frequency == 2


def test_failing_subscriber_does_not_block_others(caplog):
    tracker = SubjectActivityTracker()
    seen = []

    def broken(_state):
        raise RuntimeError("boom")

    tracker.subscribe(broken)
    tracker.subscribe(seen.append)
    state = tracker.record(StudyActivity("Mathematics", TODAY, duration_minutes=60), today=TODAY)
    assert seen == [state]
    assert "tracker subscriber failed" in caplog.text


def test_tracker_state_serialization():
    state = build_state([StudyActivity("Physics", TODAY, duration_minutes=90)], today=TODAY)
    restored = TrackerState.from_dict(state.to_dict())
    assert restored == state
