"""
Simulation Errors

Only simulation-start validation raises. Everything that can go wrong
while ticking (loop guards, capacity clamps, off-hours deferrals) is
logged and recorded as an anomaly instead.
"""


class FlowSimError(Exception):
    """Base class for all simulation errors."""
    pass


class SimulationConfigError(FlowSimError, ValueError):
    """The simulation cannot start with the supplied configuration."""
    pass


class NoProcessSelectedError(SimulationConfigError):
    """No process (system) name was given."""

    def __init__(self):
        super().__init__("Select a flow/system to simulate")


class EmptyRuleSetError(SimulationConfigError):
    """The selected process has no flow rules."""

    def __init__(self, system: str):
        self.system = system
        super().__init__(f"Flow rules missing for system '{system}'")


class MissingStartRuleError(SimulationConfigError):
    """No rule with an empty current task exists for the process."""

    def __init__(self, system: str):
        self.system = system
        super().__init__(f"No starting rule found for system '{system}'")


class SimulationStateError(FlowSimError, RuntimeError):
    """An engine operation was called in the wrong lifecycle state."""
    pass
