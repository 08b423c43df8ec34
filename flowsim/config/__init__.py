"""
Configuration Management

Centralized configuration for:
- Process-level settings (logging, driver cadence, output windows)
- Default office-hours calendar
- Per-run simulation parameters
"""

from .settings import (
    Settings,
    CalendarSettings,
    get_settings
)
from .simulation import (
    ArrivalMode,
    SimulationConfig
)

__all__ = [
    "Settings",
    "CalendarSettings",
    "get_settings",
    "ArrivalMode",
    "SimulationConfig"
]
