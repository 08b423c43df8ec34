"""
Working-Hours Calendar

A single daily working window plus a weekend flag. Used to gate task
creation and processing, to anchor the simulation start, and as the
office-hours input of the TAT calculator.
"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta
import re

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")

SATURDAY = 5
SUNDAY = 6


def minutes_of_day(value: str) -> int:
    """Parse an "HH:mm" string into minutes after midnight."""
    match = _HHMM.match(value.strip())
    if not match:
        raise ValueError(f"Expected HH:mm, got {value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Time out of range: {value!r}")
    return hours * 60 + minutes


def _minute_of(ts: datetime) -> int:
    return ts.hour * 60 + ts.minute


def in_daily_window(ts: datetime, start_minute: int, end_minute: int) -> bool:
    """Inclusive window test; windows with start > end wrap past midnight."""
    m = _minute_of(ts)
    if start_minute <= end_minute:
        return start_minute <= m <= end_minute
    return m >= start_minute or m <= end_minute


@dataclass(frozen=True)
class WorkingCalendar:
    """Daily working window, weekend days and the fully non-working rest day."""
    work_start: str = "09:00"
    work_end: str = "18:00"
    skip_weekends: bool = True
    weekend_days: tuple = (SATURDAY, SUNDAY)
    rest_day: int = SUNDAY

    def __post_init__(self):
        # Validate eagerly so a bad window fails at construction
        minutes_of_day(self.work_start)
        minutes_of_day(self.work_end)

    @property
    def start_minute(self) -> int:
        return minutes_of_day(self.work_start)

    @property
    def end_minute(self) -> int:
        return minutes_of_day(self.work_end)

    @property
    def start_hour(self) -> float:
        return self.start_minute / 60

    @property
    def end_hour(self) -> float:
        return self.end_minute / 60

    def is_weekend(self, ts: datetime) -> bool:
        return ts.weekday() in self.weekend_days

    def is_working(self, ts: datetime) -> bool:
        """True when `ts` falls inside the working window on a working day."""
        if self.skip_weekends and self.is_weekend(ts):
            return False
        return in_daily_window(ts, self.start_minute, self.end_minute)

    def _at_start(self, ts: datetime) -> datetime:
        return datetime.combine(ts.date(), time.min, tzinfo=ts.tzinfo) + timedelta(
            minutes=self.start_minute
        )

    def _skip_weekend_days(self, ts: datetime) -> datetime:
        if self.skip_weekends:
            while self.is_weekend(ts):
                ts = self._at_start(ts + timedelta(days=1))
        return ts

    def next_working_time(self, ts: datetime) -> datetime:
        """`ts` itself when working, otherwise the next window opening."""
        if self.is_working(ts):
            return ts

        result = self._at_start(ts)
        if self.start_minute <= self.end_minute and _minute_of(ts) > self.end_minute:
            result = self._at_start(ts + timedelta(days=1))
        return self._skip_weekend_days(result)

    def office_start(self, ts: datetime) -> datetime:
        """
        Anchor for a simulation start.

        Today's opening when `ts` is before or inside today's window,
        otherwise the next working day's opening.
        """
        start = self._at_start(ts)
        if self.skip_weekends and self.is_weekend(start):
            return self._skip_weekend_days(self._at_start(start + timedelta(days=1)))

        if self.start_minute <= self.end_minute and _minute_of(ts) > self.end_minute:
            start = self._skip_weekend_days(self._at_start(start + timedelta(days=1)))
        return start
