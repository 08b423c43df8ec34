"""
Arrival Scheduler

Decides when new flow instances are spawned. Modes:
- none: every instance at once (at the next working-hours window)
- period: fixed gap
- uniform: gap drawn between a min and a max
- normal: Gaussian gap (Box-Muller), floored at 1 minute
- trendUp / trendDown: gap shrinks or grows with elapsed hours
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
import logging
import math

from ..config.simulation import ArrivalMode, SimulationConfig
from ..core.random_source import RandomSource
from ..core.working_hours import WorkingCalendar

logger = logging.getLogger(__name__)

TREND_JITTER_MINUTES = 5.0
TREND_MIN_FACTOR = 0.25


@dataclass
class ArrivalDecision:
    """What the scheduler wants done on one evaluation."""
    spawn: int = 0
    deferred_to: Optional[datetime] = None


class ArrivalScheduler:
    """
    Spawning schedule for one simulation run.

    The scheduler only counts; the engine creates the instances.
    """

    def __init__(
        self,
        config: SimulationConfig,
        calendar: WorkingCalendar,
        rng: Optional[RandomSource] = None
    ):
        self.config = config
        self.calendar = calendar
        self.rng = rng or RandomSource(config.random_seed)

        self.started_at: Optional[datetime] = None
        self.next_arrival_at: Optional[datetime] = None
        self.remaining = 0
        self.spawned = 0

    @property
    def mode(self) -> ArrivalMode:
        return self.config.arrival_mode

    @property
    def is_bulk(self) -> bool:
        return self.mode == ArrivalMode.NONE

    def creation_allowed(self, now: datetime) -> bool:
        return self.config.ignore_working_hours or self.calendar.is_working(now)

    def next_gap_minutes(self, now: datetime) -> float:
        """Minutes until the next arrival (>= 1; infinite in bulk mode)."""
        cfg = self.config
        mode = self.mode

        if mode == ArrivalMode.NONE:
            return math.inf

        if mode == ArrivalMode.PERIOD:
            return max(1.0, cfg.arrival_period_min or 60)

        if mode == ArrivalMode.UNIFORM:
            low = max(1.0, cfg.arrival_uniform_min or 15)
            high = max(low, cfg.arrival_uniform_max or low + 30)
            return self.rng.uniform(low, high)

        if mode == ArrivalMode.NORMAL:
            mean = max(1.0, cfg.arrival_normal_mean or 60)
            std = max(1.0, cfg.arrival_normal_std or 10)
            return max(1.0, self.rng.gauss(mean, std))

        # Trend modes
        base = max(5.0, cfg.arrival_period_min or cfg.arrival_normal_mean or 60)
        pct = (cfg.arrival_trend_pct or 10) / 100
        hours = 0.0
        if self.started_at is not None:
            hours = (now - self.started_at).total_seconds() / 3600
        if mode == ArrivalMode.TREND_UP:
            factor = max(TREND_MIN_FACTOR, 1 - pct * hours)
        else:
            factor = 1 + pct * hours
        jitter = self.rng.uniform(-TREND_JITTER_MINUTES, TREND_JITTER_MINUTES)
        return max(1.0, base * factor + jitter)

    def _schedule_next(self, now: datetime) -> None:
        if self.remaining > 0 and not self.is_bulk:
            gap = max(1.0, self.next_gap_minutes(now))
            self.next_arrival_at = now + timedelta(minutes=gap)
        else:
            self.next_arrival_at = None

    def _take(self, count: int) -> int:
        count = max(0, min(count, self.remaining, self.config.instance_count - self.spawned))
        self.remaining -= count
        self.spawned += count
        return count

    def begin(self, now: datetime) -> ArrivalDecision:
        """Initialise the schedule at simulation start."""
        self.started_at = now
        self.spawned = 0
        self.remaining = max(0, self.config.instance_count)

        if self.remaining == 0:
            self.next_arrival_at = None
            return ArrivalDecision()

        if not self.creation_allowed(now):
            self.next_arrival_at = self.calendar.next_working_time(now)
            logger.info("First arrival deferred to %s", self.next_arrival_at.isoformat())
            return ArrivalDecision(deferred_to=self.next_arrival_at)

        spawn = self._take(self.remaining if self.is_bulk else 1)
        self._schedule_next(now)
        return ArrivalDecision(spawn=spawn)

    def due(self, now: datetime) -> ArrivalDecision:
        """Evaluate the schedule for the tick at `now`."""
        if self.remaining <= 0:
            return ArrivalDecision()
        if self.next_arrival_at is not None and now < self.next_arrival_at:
            return ArrivalDecision()

        if not self.creation_allowed(now):
            self.next_arrival_at = self.calendar.next_working_time(now)
            return ArrivalDecision(deferred_to=self.next_arrival_at)

        spawn = self._take(self.remaining if self.is_bulk else 1)
        self._schedule_next(now)
        return ArrivalDecision(spawn=spawn)
