from datetime import datetime

import pytest

from flowsim.core import WorkingCalendar, in_daily_window, minutes_of_day


def test_minutes_of_day():
    assert minutes_of_day("09:30") == 570
    assert minutes_of_day("9:05") == 545
    with pytest.raises(ValueError):
        minutes_of_day("25:00")
    with pytest.raises(ValueError):
        minutes_of_day("nine")


def test_window_is_inclusive(calendar):
    assert calendar.is_working(datetime(2024, 3, 4, 9, 0))
    assert calendar.is_working(datetime(2024, 3, 4, 18, 0))
    assert not calendar.is_working(datetime(2024, 3, 4, 18, 1))
    assert not calendar.is_working(datetime(2024, 3, 4, 8, 59))


def test_weekends(calendar):
    saturday = datetime(2024, 3, 9, 10, 0)
    assert not calendar.is_working(saturday)
    assert WorkingCalendar(skip_weekends=False).is_working(saturday)


def test_overnight_window():
    night = minutes_of_day("22:00"), minutes_of_day("06:00")
    assert in_daily_window(datetime(2024, 3, 4, 23, 0), *night)
    assert in_daily_window(datetime(2024, 3, 4, 5, 0), *night)
    assert not in_daily_window(datetime(2024, 3, 4, 12, 0), *night)


@pytest.mark.parametrize("ts, expected", [
    (datetime(2024, 3, 4, 7, 0), datetime(2024, 3, 4, 9, 0)),
    (datetime(2024, 3, 4, 12, 0), datetime(2024, 3, 4, 12, 0)),
    (datetime(2024, 3, 4, 19, 0), datetime(2024, 3, 5, 9, 0)),
    (datetime(2024, 3, 8, 19, 0), datetime(2024, 3, 11, 9, 0)),
    (datetime(2024, 3, 9, 12, 0), datetime(2024, 3, 11, 9, 0)),
])
def test_next_working_time(calendar, ts, expected):
    assert calendar.next_working_time(ts) == expected


@pytest.mark.parametrize("ts, expected", [
    (datetime(2024, 3, 4, 7, 0), datetime(2024, 3, 4, 9, 0)),
    (datetime(2024, 3, 4, 15, 0), datetime(2024, 3, 4, 9, 0)),
    (datetime(2024, 3, 4, 19, 0), datetime(2024, 3, 5, 9, 0)),
    (datetime(2024, 3, 9, 10, 0), datetime(2024, 3, 11, 9, 0)),
])
def test_office_start(calendar, ts, expected):
    assert calendar.office_start(ts) == expected


def test_invalid_window_rejected():
    with pytest.raises(ValueError):
        WorkingCalendar(work_start="9am")
