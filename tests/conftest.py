from datetime import datetime

import pytest

from flowsim.config import Settings, SimulationConfig
from flowsim.core import WorkingCalendar
from flowsim.simulation import SimulationEngine

# 2024-03-04 is a Monday
MONDAY_9AM = datetime(2024, 3, 4, 9, 0)


def rule(system, current, status, nxt, tat=1, tat_type="hour", email=None):
    return {
        "system": system,
        "currentTask": current,
        "status": status,
        "nextTask": nxt,
        "tat": tat,
        "tatType": tat_type,
        "email": email,
    }


@pytest.fixture
def calendar():
    return WorkingCalendar()


@pytest.fixture
def settings():
    return Settings(random_seed=1234)


@pytest.fixture
def simple_rules():
    """start -> Review -> Approved, linear."""
    return [
        rule("Simple", "", "", "Review", tat=2, email="reviewer@example.com"),
        rule("Simple", "Review", "Done", "Approved", tat=2, email="approver@example.com"),
    ]


@pytest.fixture
def decision_rules():
    """Review branches into TaskA / TaskB."""
    return [
        rule("Branch", "", "", "Review"),
        rule("Branch", "Review", "A", "TaskA"),
        rule("Branch", "Review", "B", "TaskB"),
        rule("Branch", "TaskA", "Done", "Close"),
    ]


@pytest.fixture
def cyclic_rules():
    """Draft <-> Check loop with no exit."""
    return [
        rule("Loop", "", "", "Draft"),
        rule("Loop", "Draft", "Done", "Check"),
        rule("Loop", "Check", "Done", "Draft"),
    ]


@pytest.fixture
def make_config():
    def _make(**overrides):
        values = {
            "system": "Simple",
            "instance_count": 1,
            "arrival_mode": "none",
            "start_at": MONDAY_9AM,
            "random_seed": 7,
        }
        values.update(overrides)
        return SimulationConfig(**values)
    return _make


@pytest.fixture
def engine(settings):
    return SimulationEngine(settings=settings)
