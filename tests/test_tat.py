from datetime import datetime

import pytest

from flowsim.core import TatUnit, WorkingCalendar, compute_deadline, normalize_unit, tat_to_minutes


def test_day_from_friday_lands_on_monday_at_start(calendar):
    friday = datetime(2024, 3, 8, 11, 30)
    assert compute_deadline(friday, 1, "day", calendar) == datetime(2024, 3, 11, 9, 0)


def test_day_counts_only_working_days(calendar):
    wednesday = datetime(2024, 3, 6, 15, 0)
    assert compute_deadline(wednesday, 3, "day", calendar) == datetime(2024, 3, 11, 9, 0)


def test_day_counts_weekends_when_not_skipped():
    calendar = WorkingCalendar(skip_weekends=False)
    friday = datetime(2024, 3, 8, 11, 30)
    assert compute_deadline(friday, 1, "day", calendar) == datetime(2024, 3, 9, 9, 0)


def test_hour_near_end_of_day_rolls_to_next_morning(calendar):
    tuesday_5pm = datetime(2024, 3, 5, 17, 0)
    assert compute_deadline(tuesday_5pm, 2, "hour", calendar) == datetime(2024, 3, 6, 11, 0)


def test_hour_inside_window_adds_hours(calendar):
    assert compute_deadline(datetime(2024, 3, 5, 10, 0), 2, "hour", calendar) == datetime(2024, 3, 5, 12, 0)


def test_hour_before_opening_clamps_to_start_plus_magnitude(calendar):
    assert compute_deadline(datetime(2024, 3, 5, 6, 0), 2, "hour", calendar) == datetime(2024, 3, 5, 11, 0)


def test_hour_skips_rest_day(calendar):
    saturday_5pm = datetime(2024, 3, 9, 17, 0)
    assert compute_deadline(saturday_5pm, 2, "hour", calendar) == datetime(2024, 3, 11, 11, 0)


def test_specify_adds_hours_without_clamping(calendar):
    assert compute_deadline(datetime(2024, 3, 5, 20, 0), 3, "specify", calendar) == datetime(2024, 3, 5, 23, 0)


def test_specify_skips_rest_day(calendar):
    saturday_night = datetime(2024, 3, 9, 20, 0)
    assert compute_deadline(saturday_night, 5, "specify", calendar) == datetime(2024, 3, 11, 1, 0)


def test_before_steps_back_working_days(calendar):
    tuesday = datetime(2024, 3, 5, 14, 0)
    assert compute_deadline(tuesday, 4, "before", calendar) == datetime(2024, 3, 1, 9, 0)


def test_before_with_small_magnitude_stays_on_reference_day(calendar):
    tuesday = datetime(2024, 3, 5, 14, 0)
    assert compute_deadline(tuesday, 1, "before", calendar) == datetime(2024, 3, 5, 9, 0)


@pytest.mark.parametrize("magnitude", [0, -3, None])
def test_non_positive_magnitude_counts_as_one(calendar, magnitude):
    assert compute_deadline(datetime(2024, 3, 5, 10, 0), magnitude, "hour", calendar) == datetime(2024, 3, 5, 11, 0)


def test_unknown_unit_defaults_to_one_hour(calendar):
    assert compute_deadline(datetime(2024, 3, 5, 10, 0), 5, "weeks", calendar) == datetime(2024, 3, 5, 11, 0)


def test_legacy_unit_names_are_accepted():
    assert normalize_unit("DayTAT") == TatUnit.DAY
    assert normalize_unit("hourtat") == TatUnit.HOUR
    assert normalize_unit("beforetat") == TatUnit.BEFORE
    assert normalize_unit("fortnight") is None


def test_tat_to_minutes_for_hours(calendar):
    assert tat_to_minutes(datetime(2024, 3, 4, 9, 0), 2, "hour", calendar) == 120


def test_tat_to_minutes_falls_back_when_deadline_not_ahead(calendar):
    assert tat_to_minutes(datetime(2024, 3, 4, 9, 0), 2, "before", calendar) == 120
    assert tat_to_minutes(datetime(2024, 3, 4, 9, 0), 0.5, "before", calendar) == 60
