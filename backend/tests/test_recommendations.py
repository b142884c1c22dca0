from collections import Counter
from datetime import date, timedelta
import random
from study_tracker.utils import records
from study_tracker.utils.activity import StudyActivity, build_state
from study_tracker.utils.recommendations import (
    MAX_RECOMMENDATIONS, NO_DATA_TEXT, PCM_SUBJECTS, STUDY_STREAK, WEEKLY_REVIEW,
    generate_recommendations,
)
from study_tracker.utils.streaks import StudyStreak

WEDNESDAY = date(2024, 6, 12)
SUNDAY = date(2024, 6, 16)


def _result(subject, obtained, total=100, day=WEDNESDAY, **kwargs):
    kwargs.setdefault("id", f"{subject}-{obtained}-{day}")
    return records.TestResult(subject=subject, marks_obtained=obtained, marks_total=total, date=day, **kwargs)


def _studied(subject, today, offsets, minutes=30):
    return [StudyActivity(subject, today - timedelta(days=o), duration_minutes=minutes) for o in offsets]


def _run(tests=(), activities=(), today=WEDNESDAY, streak=None, rng=None):
    activities = list(activities)
    state = build_state(activities, today=today)
    return generate_recommendations(
        tests, activities, state.subjects, streak or state.streak, today=today, rng=rng or random.Random(0)
    )


def _by_subject(recs):
    return {r.subject: r for r in recs}


def test_no_data_returns_defaults():
    recs = _run()
    assert [r.subject for r in recs] == list(PCM_SUBJECTS)
    assert all(r.text == NO_DATA_TEXT for r in recs)
    assert all(r.type == "study-balance" and r.priority == 1 for r in recs)


def test_failing_score_has_top_priority():
    test = _result("Physics", 38, sub_topic="Optics", areas_to_improve=["Lens formula", "Ray diagrams"])
    recs = _run(tests=[test])
    physics = _by_subject(recs)["Physics"]
    assert physics.priority == 5
    assert physics.type == "test-score"
    assert physics.sub_topic == "Optics"
    assert physics.text == "You scored 38% in Optics. Focus on Lens formula, Ray diagrams."
    assert recs[0] is physics


def test_failing_score_without_areas_uses_generic_focus():
    recs = _run(tests=[_result("Chemistry", 20)])
    chem = _by_subject(recs)["Chemistry"]
    assert chem.text == "You scored 20% in Chemistry. Focus on reaction mechanisms and structures."


def test_subject_match_is_case_insensitive():
    recs = _run(tests=[_result("physics", 10)])
    assert _by_subject(recs)["Physics"].priority == 5


def test_low_frequency_phrasing():
    activities = _studied("Mathematics", WEDNESDAY, [0, 1])
    recs = _by_subject(_run(activities=activities))
    assert recs["Mathematics"].type == "low-frequency"
    assert recs["Mathematics"].priority == 4
    assert "on 2 days in the last week" in recs["Mathematics"].text
    assert recs["Physics"].text.startswith("You haven't studied Physics in the last 7 days")


def test_time_gap_after_three_days():
    activities = _studied("Physics", WEDNESDAY, [4, 5, 6])
    recs = _by_subject(_run(activities=activities))
    assert recs["Physics"].type == "time-gap"
    assert recs["Physics"].priority == 3
    assert recs["Physics"].text.startswith("It's been 4 days since your last Physics session.")


def test_moderate_score_uses_latest_test():
    activities = _studied("Chemistry", WEDNESDAY, [0, 1, 2])
    tests = [
        _result("Chemistry", 90, day=WEDNESDAY - timedelta(days=10)),
        _result("Chemistry", 60, day=WEDNESDAY - timedelta(days=1), sub_topic="Organic"),
    ]
    chem = _by_subject(_run(tests=tests, activities=activities))["Chemistry"]
    assert chem.type == "test-score"
    assert chem.priority == 2
    assert chem.text.startswith("Your 60% score in Organic is passing but could be stronger.")


def test_moderate_band_uses_rounded_percentage():
    activities = _studied("Mathematics", WEDNESDAY, [0, 1, 2])
    # 64.5% rounds up to 65, outside the moderate band
    math = _by_subject(_run(tests=[_result("Mathematics", 64.5)], activities=activities))["Mathematics"]
    assert math.type == "study-balance"


def test_maintenance_when_on_track():
    activities = _studied("Mathematics", WEDNESDAY, [0, 1, 2])
    math = _by_subject(_run(activities=activities))["Mathematics"]
    assert math.type == "study-balance"
    assert math.priority == 1
    assert "on track" in math.text


def test_invalid_test_records_are_skipped():
    invalid = _result("Physics", 0, total=0)
    assert _run(tests=[invalid])[0].text == NO_DATA_TEXT


def test_weekly_review_only_on_sunday():
    activities = (
        _studied("Mathematics", SUNDAY, [0, 1, 2, 3])
        + _studied("Physics", SUNDAY, [0, 1, 2, 3])
        + _studied("Chemistry", SUNDAY, [1])
    )
    sunday = _by_subject(_run(activities=activities, today=SUNDAY))
    review = sunday[WEEKLY_REVIEW]
    assert review.priority == 5
    assert review.type == "study-balance"
    assert "Chemistry" in review.text and "only 1 times" in review.text

    shifted = [StudyActivity(a.subject, a.date - timedelta(days=4), duration_minutes=30) for a in activities]
    assert WEEKLY_REVIEW not in _by_subject(_run(activities=shifted, today=WEDNESDAY))


def test_weekly_review_tie_picks_first_subject():
    activities = _studied("General Study", SUNDAY, [0])
    review = _by_subject(_run(activities=activities, today=SUNDAY))[WEEKLY_REVIEW]
    assert "Mathematics" in review.text
    assert "no sessions at all" in review.text


def test_streak_entries():
    activities = _studied("Mathematics", WEDNESDAY, [0])
    current = _by_subject(_run(activities=activities, streak=StudyStreak(current=3, longest=3)))[STUDY_STREAK]
    assert current.priority == 2
    assert "3-day study streak" in current.text
    past = _by_subject(_run(activities=activities, streak=StudyStreak(current=0, longest=5)))[STUDY_STREAK]
    assert past.priority == 1
    assert "5-day" in past.text
    none = _by_subject(_run(activities=activities, streak=StudyStreak()))
    assert STUDY_STREAK not in none


def test_output_is_bounded_sorted_and_scoped():
    tests = [_result(s, 10 + i) for i, s in enumerate(PCM_SUBJECTS * 4)]
    activities = _studied("Physics", SUNDAY, [0, 1, 2, 3], minutes=90)
    recs = _run(tests=tests, activities=activities, today=SUNDAY)
    assert len(recs) <= MAX_RECOMMENDATIONS
    priorities = [r.priority for r in recs]
    assert priorities == sorted(priorities, reverse=True)
    allowed = set(PCM_SUBJECTS) | {WEEKLY_REVIEW, STUDY_STREAK}
    assert {r.subject for r in recs} <= allowed
    assert len([r for r in recs if r.subject in PCM_SUBJECTS]) == len(PCM_SUBJECTS)


def test_seeded_rng_is_reproducible():
    tests = [_result("Physics", 10), _result("Physics", 20), _result("Physics", 30)]
    first = [r.text for r in _run(tests=tests, rng=random.Random(7))]
    second = [r.text for r in _run(tests=tests, rng=random.Random(7))]
    assert first == second


def _tested(subject, today, offsets):
    return [StudyActivity(subject, today - timedelta(days=o), type="test") for o in offsets]


def test_one_entry_per_subject():
    tests = [_result("Physics", 30), _result("Physics", 45, day=WEDNESDAY - timedelta(days=2))]
    activities = _studied("Physics", WEDNESDAY, [0, 1, 2, 3]) + _studied("Mathematics", WEDNESDAY, [0, 1, 2])
    recs = _run(tests=tests, activities=activities)
    counts = Counter(r.subject for r in recs)
    assert all(counts[s] == 1 for s in PCM_SUBJECTS)
    physics = [r for r in recs if r.subject == "Physics"]
    assert [(r.type, r.priority) for r in physics] == [("test-score", 5)]


def test_week_window_covers_seven_days():
    inside = _by_subject(_run(activities=_studied("Physics", WEDNESDAY, [6])))["Physics"]
    assert "on 1 days in the last week" in inside.text
    outside = _by_subject(_run(activities=_studied("Physics", WEDNESDAY, [7])))["Physics"]
    assert outside.text.startswith("You haven't studied Physics in the last 7 days")


def test_recorded_tests_are_not_study_days():
    tests = [_result("Mathematics", 80, day=WEDNESDAY - timedelta(days=o)) for o in (0, 1, 2)]
    math = _by_subject(_run(tests=tests, activities=_tested("Mathematics", WEDNESDAY, [0, 1, 2])))["Mathematics"]
    assert math.type == "low-frequency"
    assert math.text.startswith("You haven't studied Mathematics in the last 7 days")


def test_time_gap_ignores_recent_test_entries():
    activities = _studied("Physics", WEDNESDAY, [4, 5, 6]) + _tested("Physics", WEDNESDAY, [0])
    physics = _by_subject(_run(activities=activities))["Physics"]
    assert physics.type == "time-gap"
    assert "4 days" in physics.text


def test_weekly_review_needs_a_pomodoro():
    recs = _by_subject(_run(activities=_tested("Chemistry", SUNDAY, [0, 1]), today=SUNDAY))
    assert WEEKLY_REVIEW not in recs
