"""
Path/Decision Resolver

Chooses where an instance goes after a task completes:
1. Linear progression: a single outgoing status, or a "done" edge
2. Decision: weighted draw over the configured status weights
3. No outgoing rule: the instance ends

Runaway cycles are capped by the instance's LoopGuard.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import logging

from ..core.entities import FlowRule, LoopGuard
from ..core.random_source import RandomSource
from ..core.tat import tat_to_minutes
from ..core.working_hours import WorkingCalendar
from .graph import FlowGraph, is_done_status

logger = logging.getLogger(__name__)


@dataclass
class NextStep:
    """Resolved successor of a completed task."""
    next_task: str
    status: str
    assignee: Optional[str]
    base_minutes: float
    rule: FlowRule


class PathResolver:
    """Resolves successors over a FlowGraph."""

    def __init__(
        self,
        flow: FlowGraph,
        calendar: WorkingCalendar,
        rng: Optional[RandomSource] = None
    ):
        self.flow = flow
        self.calendar = calendar
        self.rng = rng or RandomSource()
        self.anomalies: list[str] = []

    def choose_rule(
        self,
        current_task: str,
        weights: Optional[dict[str, dict[str, float]]] = None
    ) -> Optional[FlowRule]:
        """Pick the outgoing rule to follow from `current_task`, or None at the end."""
        options = self.flow.outgoing(current_task)
        if not options:
            return None

        statuses = self.flow.statuses(current_task)
        done = next((r for r in options if is_done_status(r.status)), None)
        if done is not None:
            return done
        if not statuses:
            return options[0]
        if len(statuses) == 1:
            # Unlabeled edges never compete with a labeled one
            return next(r for r in options if r.status == statuses[0])

        task_weights = (weights or {}).get(current_task) or {}
        selected = self.rng.weighted_choice(task_weights)
        if selected is None:
            logger.warning(
                "No usable weights for decision %r; falling back to status %r",
                current_task, statuses[0]
            )
            selected = statuses[0]
        return next((r for r in options if r.status == selected), options[0])

    def base_minutes(self, rule: FlowRule, reference: datetime) -> float:
        """Planned base duration of the task a rule leads into."""
        return tat_to_minutes(reference, rule.tat, rule.tat_type, self.calendar)

    def next_step(
        self,
        current_task: str,
        weights: Optional[dict[str, dict[str, float]]] = None,
        guard: Optional[LoopGuard] = None,
        reference: Optional[datetime] = None,
        instance_id: str = "-"
    ) -> Optional[NextStep]:
        """
        Successor of `current_task`, or None when the instance should end.

        A tripped loop guard also ends the instance; the reason is kept in
        `anomalies` and logged.
        """
        rule = self.choose_rule(current_task, weights)
        if rule is None:
            return None

        if guard is not None and not guard.register(current_task):
            message = f"{instance_id}: loop guard stopped the flow ({guard.tripped})"
            self.anomalies.append(message)
            logger.warning(message)
            return None

        reference = reference or datetime.now()
        return NextStep(
            next_task=rule.next_task,
            status=rule.status,
            assignee=rule.assignee,
            base_minutes=self.base_minutes(rule, reference),
            rule=rule
        )

    def build_instance_path(
        self,
        weights: Optional[dict[str, dict[str, float]]] = None,
        reference: Optional[datetime] = None,
        max_hops: int = 200,
        max_visits: int = 3
    ) -> list[NextStep]:
        """
        Walk one complete instance path from the start rule.

        Used to validate a process definition before simulating it.
        """
        if not self.flow:
            return []

        reference = reference or datetime.now()
        start = self.flow.start_rule
        path = [NextStep(
            next_task=start.next_task,
            status=start.status,
            assignee=start.assignee,
            base_minutes=self.base_minutes(start, reference),
            rule=start
        )]

        guard = LoopGuard(max_hops=max_hops, max_visits=max_visits)
        current = self.flow.start_node
        while current:
            step = self.next_step(current, weights, guard=guard, reference=reference, instance_id="path")
            if step is None:
                break
            path.append(step)
            current = step.next_task
        return path
