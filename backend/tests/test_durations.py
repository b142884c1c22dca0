import pytest
from study_tracker.utils.durations import convert_duration_to_hours, hours_to_minutes


def test_numeric_seconds():
    assert convert_duration_to_hours(5400) == pytest.approx(1.5)
    assert convert_duration_to_hours(1800.0) == pytest.approx(0.5)
    assert convert_duration_to_hours("3600") == pytest.approx(1.0)


def test_clock_strings():
    assert convert_duration_to_hours("1:30:00") == pytest.approx(1.5)
    assert convert_duration_to_hours("30:00") == pytest.approx(0.5)
    assert convert_duration_to_hours(" 0:45:00 ") == pytest.approx(0.75)


@pytest.mark.parametrize("bad", [None, "", "abc", "1:xx:00", "1:2:3:4", True, [], {}])
def test_malformed_durations_count_as_zero(bad):
    assert convert_duration_to_hours(bad) == 0.0


def test_negative_seconds_clamped():
    assert convert_duration_to_hours(-60) == 0.0


def test_hours_to_minutes():
    assert hours_to_minutes(1.5) == 90
    assert hours_to_minutes(convert_duration_to_hours("25:00")) == 25


def test_negative_clock_strings_clamped():
    assert convert_duration_to_hours("-1:00:00") == 0.0
    assert convert_duration_to_hours("-30:00") == 0.0
