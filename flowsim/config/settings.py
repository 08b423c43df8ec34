"""
Settings Management with Pydantic

Provides type-safe process-level configuration with:
- Environment variable support (FLOWSIM_ prefix, .env file)
- Validation
- Default working-hours calendar for new simulations
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.working_hours import WorkingCalendar, minutes_of_day
from .simulation import SimulationConfig


class CalendarSettings(BaseSettings):
    """Default office hours used when a simulation does not override them."""
    model_config = SettingsConfigDict(
        env_prefix="FLOWSIM_CALENDAR_",
        extra="ignore"
    )

    work_start: str = "09:00"
    work_end: str = "18:00"
    skip_weekends: bool = True
    weekend_days: list[int] = Field(default_factory=lambda: [5, 6])  # Mon=0 .. Sun=6
    rest_day: int = 6

    @field_validator("work_start", "work_end")
    @classmethod
    def _valid_time(cls, value: str) -> str:
        minutes_of_day(value)
        return value.strip()

    @field_validator("weekend_days")
    @classmethod
    def _valid_days(cls, value: list[int]) -> list[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("weekend_days must be weekday numbers 0-6")
        return value

    def to_calendar(self) -> WorkingCalendar:
        return WorkingCalendar(
            work_start=self.work_start,
            work_end=self.work_end,
            skip_weekends=self.skip_weekends,
            weekend_days=tuple(self.weekend_days),
            rest_day=self.rest_day
        )


class Settings(BaseSettings):
    """Main application settings."""
    model_config = SettingsConfigDict(
        env_prefix="FLOWSIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Application
    app_name: str = "FlowSim"
    debug: bool = False
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Driver
    tick_interval_seconds: float = Field(default=1.0, gt=0)

    # Bounded output windows
    event_log_limit: int = Field(default=500, ge=1)
    series_limit: int = Field(default=240, ge=1)

    # Randomization
    random_seed: Optional[int] = None

    calendar: CalendarSettings = Field(default_factory=CalendarSettings)

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables."""
        return cls(calendar=CalendarSettings())

    def simulation_config(self, **overrides) -> SimulationConfig:
        """New SimulationConfig seeded with the environment's calendar and seed."""
        values = {
            "work_start": self.calendar.work_start,
            "work_end": self.calendar.work_end,
            "skip_weekends": self.calendar.skip_weekends,
            "weekend_days": tuple(self.calendar.weekend_days),
            "rest_day": self.calendar.rest_day,
            "random_seed": self.random_seed,
        }
        values.update(overrides)
        return SimulationConfig.create(**values)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
