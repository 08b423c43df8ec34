"""
Turnaround-Time (TAT) Calculator

Converts a TAT magnitude and unit into a concrete deadline, honoring
office hours, weekends and the configured rest day.

Units:
- hour: add hours, rolling out-of-hours results into the next window
- day: add working days, landing at office start
- specify: add hours verbatim, skipping the rest day
- before: count working days back from a fixed milestone
"""

from datetime import datetime, time, timedelta
from enum import Enum
from typing import Optional, Union
import logging

from .working_hours import WorkingCalendar

logger = logging.getLogger(__name__)


class TatUnit(str, Enum):
    """Supported TAT units."""
    HOUR = "hour"
    DAY = "day"
    SPECIFY = "specify"
    BEFORE = "before"


# Rule stores written before the unit rename still send the *tat names
_UNIT_ALIASES = {
    "hour": TatUnit.HOUR,
    "hourtat": TatUnit.HOUR,
    "day": TatUnit.DAY,
    "daytat": TatUnit.DAY,
    "specify": TatUnit.SPECIFY,
    "specifytat": TatUnit.SPECIFY,
    "before": TatUnit.BEFORE,
    "beforetat": TatUnit.BEFORE,
}

# Working days between "before" milestones and the deadline they imply
BEFORE_OFFSET_DAYS = 2


def normalize_unit(unit: Union[str, TatUnit, None]) -> Optional[TatUnit]:
    """Map a unit name (or legacy alias) to a TatUnit; None if unknown."""
    if isinstance(unit, TatUnit):
        return unit
    if not unit:
        return None
    return _UNIT_ALIASES.get(str(unit).strip().lower())


def _day_at(ts: datetime, hours: float) -> datetime:
    """Midnight of `ts`'s date plus `hours`."""
    return datetime.combine(ts.date(), time.min, tzinfo=ts.tzinfo) + timedelta(hours=hours)


def _hour_of_day(ts: datetime) -> float:
    return ts.hour + ts.minute / 60 + ts.second / 3600


def _skip_rest_day(ts: datetime, calendar: WorkingCalendar) -> datetime:
    if ts.weekday() == calendar.rest_day:
        return ts + timedelta(days=1)
    return ts


def _hour_deadline(reference: datetime, magnitude: float, calendar: WorkingCalendar) -> datetime:
    result = reference + timedelta(hours=magnitude)
    hour_of_day = _hour_of_day(result)

    if hour_of_day >= calendar.end_hour:
        result = _day_at(result + timedelta(days=1), calendar.start_hour + magnitude)
    elif hour_of_day <= calendar.start_hour:
        result = _day_at(result, calendar.start_hour + magnitude)

    return _skip_rest_day(result, calendar)


def _step_working_days(
    reference: datetime,
    days: float,
    calendar: WorkingCalendar,
    direction: int
) -> datetime:
    result = reference
    counted = 0
    while counted < days:
        result = result + timedelta(days=direction)
        if calendar.skip_weekends and calendar.is_weekend(result):
            continue
        counted += 1
    return _day_at(result, calendar.start_hour)


def compute_deadline(
    reference: datetime,
    magnitude: Optional[float],
    unit: Union[str, TatUnit, None],
    calendar: WorkingCalendar
) -> datetime:
    """
    Compute the deadline for a TAT starting at `reference`.

    A magnitude <= 0 (or missing) is treated as 1. Unknown units fall
    back to the hour unit with magnitude 1.
    """
    if magnitude is None or magnitude <= 0:
        magnitude = 1

    tat_unit = normalize_unit(unit)
    if tat_unit is None:
        logger.debug("Unknown TAT unit %r, defaulting to 1 hour", unit)
        tat_unit, magnitude = TatUnit.HOUR, 1

    if tat_unit == TatUnit.HOUR:
        return _hour_deadline(reference, magnitude, calendar)

    if tat_unit == TatUnit.DAY:
        return _step_working_days(reference, magnitude, calendar, direction=1)

    if tat_unit == TatUnit.SPECIFY:
        return _skip_rest_day(reference + timedelta(hours=magnitude), calendar)

    # TatUnit.BEFORE
    days_back = max(0, int(magnitude) - BEFORE_OFFSET_DAYS)
    return _step_working_days(reference, days_back, calendar, direction=-1)


def tat_to_minutes(
    reference: datetime,
    magnitude: Optional[float],
    unit: Union[str, TatUnit, None],
    calendar: WorkingCalendar
) -> float:
    """
    Minutes from `reference` to the TAT deadline, at least 1.

    Deadlines that do not lie ahead of the reference ("before" milestones)
    fall back to the magnitude read as hours, at least one hour.
    """
    deadline = compute_deadline(reference, magnitude, unit, calendar)
    minutes = (deadline - reference).total_seconds() / 60
    if minutes <= 0:
        hours = magnitude if magnitude and magnitude > 0 else 1
        return max(60.0, hours * 60)
    return max(1.0, round(minutes))
