"""
Simulation Configuration

Every input an operator can set for one simulation run. Values are
normalised on construction; malformed values raise SimulationConfigError.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..core.exceptions import SimulationConfigError
from ..core.working_hours import WorkingCalendar, minutes_of_day, SATURDAY, SUNDAY


class ArrivalMode(str, Enum):
    """Inter-arrival models for spawning flow instances."""
    NONE = "none"
    PERIOD = "period"
    UNIFORM = "uniform"
    NORMAL = "normal"
    TREND_UP = "trendUp"
    TREND_DOWN = "trendDown"


class SimulationConfig(BaseModel):
    """
    Configuration for one simulation run.

    Defaults:
    - 15 simulated minutes per tick
    - Peak window 10:00-16:00 with a 70% speed boost
    - One arrival every 60 minutes, office hours 09:00-18:00, weekends skipped
    - Fast mode on, realistic completion at 20% of TAT +/- 10%
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # Process
    system: str = ""
    instance_count: int = Field(default=20, ge=0, alias="startEvents")

    # Clock
    minutes_per_tick: float = Field(default=15.0, gt=0, alias="speedMinutesPerTick")
    start_at: Optional[datetime] = None  # defaults to now, anchored to office start

    # Speed modifiers
    peak_start: str = "10:00"
    peak_end: str = "16:00"
    peak_boost_percent: float = Field(default=70.0, alias="peakSpeedPercent")
    team_size: Optional[int] = None  # derived from the graph when unset
    assignee_speed: dict[str, float] = Field(default_factory=dict)  # percent, 100 = nominal

    # Cost
    cost_per_hour: float = Field(default=20.0, ge=0)

    # Arrivals
    arrival_mode: ArrivalMode = ArrivalMode.PERIOD
    arrival_period_min: float = 60.0
    arrival_uniform_min: float = 30.0
    arrival_uniform_max: float = 120.0
    arrival_normal_mean: float = 60.0
    arrival_normal_std: float = 15.0
    arrival_trend_pct: float = 0.0

    # Working hours
    work_start: str = "09:00"
    work_end: str = "18:00"
    skip_weekends: bool = True
    weekend_days: tuple[int, ...] = (SATURDAY, SUNDAY)
    rest_day: int = SUNDAY

    # Lifecycle switches
    fast_mode: bool = True
    ignore_working_hours: bool = False
    on_time_buffer_pct: float = Field(default=0.0, ge=0)

    # Realistic completion model
    use_realistic_times: bool = True
    avg_completion_pct: float = 20.0
    completion_variability: float = 10.0

    # Overrides
    resource_capacity: dict[str, int] = Field(default_factory=dict)
    decision_weights: dict[str, dict[str, float]] = Field(default_factory=dict)

    random_seed: Optional[int] = None

    @field_validator("system", mode="before")
    @classmethod
    def _strip_system(cls, value):
        return (value or "").strip()

    @field_validator("peak_start", "peak_end", "work_start", "work_end")
    @classmethod
    def _hhmm(cls, value: str) -> str:
        minutes = minutes_of_day(value)
        return f"{minutes // 60:02d}:{minutes % 60:02d}"

    @field_validator("arrival_mode", mode="before")
    @classmethod
    def _arrival_mode(cls, value):
        return value or ArrivalMode.NONE

    @field_validator("avg_completion_pct")
    @classmethod
    def _clamp_avg_pct(cls, value: float) -> float:
        return max(1.0, min(100.0, value))

    @field_validator("completion_variability")
    @classmethod
    def _clamp_variability(cls, value: float) -> float:
        return max(0.0, min(50.0, value))

    @field_validator("team_size")
    @classmethod
    def _team_size(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 1:
            raise ValueError("team_size must be at least 1")
        return value

    @field_validator("weekend_days", mode="before")
    @classmethod
    def _weekend_days(cls, value):
        days = tuple(value or ())
        if any(day < 0 or day > 6 for day in days):
            raise ValueError("weekend_days must be weekday numbers 0-6")
        return days

    @model_validator(mode="after")
    def _uniform_bounds(self) -> "SimulationConfig":
        low = max(1.0, self.arrival_uniform_min)
        if self.arrival_uniform_max < low:
            self.arrival_uniform_max = low
        return self

    @classmethod
    def create(cls, **values) -> "SimulationConfig":
        """Build a config, reporting validation failures as SimulationConfigError."""
        try:
            return cls(**values)
        except ValidationError as exc:
            raise SimulationConfigError(str(exc)) from exc

    @property
    def calendar(self) -> WorkingCalendar:
        return WorkingCalendar(
            work_start=self.work_start,
            work_end=self.work_end,
            skip_weekends=self.skip_weekends,
            weekend_days=self.weekend_days,
            rest_day=self.rest_day
        )

    @property
    def peak_window(self) -> tuple[int, int]:
        return minutes_of_day(self.peak_start), minutes_of_day(self.peak_end)
