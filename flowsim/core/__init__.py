"""
Core Simulation Building Blocks

- Entities: flow rules, simulated tasks, instance state, log entries
- Working-hours calendar
- TAT calculator (office-hours aware deadline arithmetic)
- Seedable random source
- Error taxonomy
"""

from .entities import (
    FlowRule,
    TaskStatus,
    SimTask,
    DeferredTask,
    LoopGuard,
    InstanceState,
    EventKind,
    SimLogEntry,
    MetricsPoint
)
from .exceptions import (
    FlowSimError,
    SimulationConfigError,
    NoProcessSelectedError,
    EmptyRuleSetError,
    MissingStartRuleError,
    SimulationStateError
)
from .random_source import RandomSource
from .tat import TatUnit, compute_deadline, tat_to_minutes, normalize_unit
from .working_hours import WorkingCalendar, minutes_of_day, in_daily_window

__all__ = [
    "FlowRule",
    "TaskStatus",
    "SimTask",
    "DeferredTask",
    "LoopGuard",
    "InstanceState",
    "EventKind",
    "SimLogEntry",
    "MetricsPoint",
    "FlowSimError",
    "SimulationConfigError",
    "NoProcessSelectedError",
    "EmptyRuleSetError",
    "MissingStartRuleError",
    "SimulationStateError",
    "RandomSource",
    "TatUnit",
    "compute_deadline",
    "tat_to_minutes",
    "normalize_unit",
    "WorkingCalendar",
    "minutes_of_day",
    "in_daily_window"
]
