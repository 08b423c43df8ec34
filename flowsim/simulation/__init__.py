"""
Simulation Layer

- Arrival scheduling
- Duration model
- Task lifecycle state machine and resource pool
- Tick-driven engine and its real-time runner
"""

from .arrivals import ArrivalScheduler, ArrivalDecision
from .durations import DurationModel
from .lifecycle import LifecyclePolicy, ResourcePool, TaskLifecycle, TickContext
from .engine import SimulationEngine, EngineSnapshot, ElapsedCounters
from .runner import SimulationRunner

__all__ = [
    "ArrivalScheduler",
    "ArrivalDecision",
    "DurationModel",
    "LifecyclePolicy",
    "ResourcePool",
    "TaskLifecycle",
    "TickContext",
    "SimulationEngine",
    "EngineSnapshot",
    "ElapsedCounters",
    "SimulationRunner"
]
