"""
Duration Model

Planned processing time and pre-assignment wait for newly created tasks.
"""

from typing import Optional

from ..config.simulation import SimulationConfig
from ..core.random_source import RandomSource

MIN_PLANNED_MINUTES = 5
WAIT_RANGE_MINUTES = (2.0, 45.0)


class DurationModel:
    """
    Shapes a TAT-derived base duration into a planned duration.

    With realistic times on, a task takes avg_completion_pct of its TAT
    (+/- completion_variability of that), never more than the full TAT.
    Otherwise it takes 70%-130% of the TAT.
    """

    def __init__(self, config: SimulationConfig, rng: Optional[RandomSource] = None):
        self.config = config
        self.rng = rng or RandomSource(config.random_seed)

    def planned_minutes(self, base_minutes: float) -> int:
        if not self.config.use_realistic_times:
            return max(MIN_PLANNED_MINUTES, round(base_minutes * (0.7 + self.rng.random() * 0.6)))

        avg_pct = max(1.0, min(100.0, self.config.avg_completion_pct)) / 100
        variability = max(0.0, min(50.0, self.config.completion_variability)) / 100

        realistic = base_minutes * avg_pct
        variation = realistic * variability
        low = max(1.0, realistic - variation)
        high = min(base_minutes, realistic + variation)

        drawn = low + self.rng.random() * (high - low)
        return max(MIN_PLANNED_MINUTES, round(drawn))

    def wait_minutes(self) -> int:
        """Jitter budget before a queued task may be picked up (0 in fast mode)."""
        if self.config.fast_mode:
            return 0
        return round(self.rng.uniform(*WAIT_RANGE_MINUTES))
