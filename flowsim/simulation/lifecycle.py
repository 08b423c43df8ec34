"""
Task Lifecycle

The per-task state machine evaluated once per tick:

    created -> queued -> (pending ->) assigned -> started -> completed

Every transition is gated on sequential precedence inside the instance.
Fast mode is a LifecyclePolicy, not a separate code path: it skips the
wait budget and the pending detour, always allows processing, and lets
a task chain through its pre-start transitions within one tick.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional
import logging

from ..core.entities import EventKind, SimTask, TaskStatus
from ..core.random_source import RandomSource

logger = logging.getLogger(__name__)

PENDING_PROBABILITY = 0.15
PENDING_MAX_MINUTES = 30.0
DEFAULT_CAPACITY = 1


@dataclass(frozen=True)
class LifecyclePolicy:
    """Switches that shape the transition table."""
    skip_wait: bool = False
    pending_probability: float = PENDING_PROBABILITY
    always_process: bool = False
    chain_transitions: bool = False

    @classmethod
    def for_mode(cls, fast_mode: bool) -> "LifecyclePolicy":
        if fast_mode:
            return cls(skip_wait=True, pending_probability=0.0, always_process=True, chain_transitions=True)
        return cls()


class ResourcePool:
    """
    Concurrent slots per task name.

    A slot is claimed when a task is assigned and freed when it completes,
    so the number of started tasks of a name never exceeds its capacity.
    """

    def __init__(self, capacities: Optional[dict[str, int]] = None):
        self.capacities: dict[str, int] = {}
        self.claimed: dict[str, int] = {}
        self.anomalies: list[str] = []
        for name, capacity in (capacities or {}).items():
            self.set_capacity(name, capacity)

    @classmethod
    def for_tasks(cls, task_names: Iterable[str], overrides: Optional[dict[str, int]] = None) -> "ResourcePool":
        """One slot per task unless overridden; overrides for unknown tasks are dropped."""
        names = list(task_names)
        overrides = overrides or {}
        pool = cls()
        for name in names:
            pool.set_capacity(name, overrides.get(name, DEFAULT_CAPACITY))
        for name in overrides:
            if name not in names:
                logger.info("Ignoring capacity override for unknown task %r", name)
        return pool

    def set_capacity(self, name: str, capacity) -> None:
        try:
            value = int(capacity)
        except (TypeError, ValueError):
            value = 0
        if value < 1:
            message = f"capacity {capacity!r} for task '{name}' raised to 1"
            logger.warning(message)
            self.anomalies.append(message)
            value = 1
        self.capacities[name] = value

    def capacity(self, name: str) -> int:
        return self.capacities.get(name, DEFAULT_CAPACITY)

    @property
    def total_capacity(self) -> int:
        return sum(self.capacities.values()) or 1

    def in_use(self, name: str) -> int:
        return self.claimed.get(name, 0)

    def available(self, name: str) -> bool:
        return self.in_use(name) < self.capacity(name)

    def reserve(self, name: str) -> None:
        self.claimed[name] = self.in_use(name) + 1

    def release(self, name: str) -> None:
        self.claimed[name] = max(0, self.in_use(name) - 1)


@dataclass
class TickContext:
    """Per-tick facts shared by every transition."""
    now: datetime
    processing_allowed: bool
    creation_allowed: bool
    speed: Callable[[SimTask], float] = field(default=lambda task: 0.0)


EmitFn = Callable[[SimTask, EventKind, Optional[str]], None]


class TaskLifecycle:
    """Transition table for SimTask, parameterised by a LifecyclePolicy."""

    def __init__(
        self,
        policy: LifecyclePolicy,
        pool: ResourcePool,
        rng: RandomSource,
        precedence: Callable[[SimTask], bool],
        emit: EmitFn,
        on_completed: Optional[Callable[[SimTask, TickContext], None]] = None
    ):
        self.policy = policy
        self.pool = pool
        self.rng = rng
        self.precedence = precedence
        self.emit = emit
        self.on_completed = on_completed

        self._table: dict[TaskStatus, Callable[[SimTask, TickContext], None]] = {
            TaskStatus.CREATED: self._from_created,
            TaskStatus.QUEUED: self._from_queued,
            TaskStatus.PENDING: self._from_pending,
            TaskStatus.ASSIGNED: self._from_assigned,
            TaskStatus.STARTED: self._from_started,
        }

    def advance(self, task: SimTask, ctx: TickContext) -> bool:
        """Apply this tick's transitions to `task`; True if its status changed."""
        changed = False
        while True:
            handler = self._table.get(task.status)
            if handler is None or not self.precedence(task):
                break

            before = task.status
            handler(task, ctx)
            if task.status == before:
                break

            changed = True
            logger.debug("%s %s: %s -> %s", task.instance_id, task.task_name, before.value, task.status.value)
            if not self.policy.chain_transitions:
                break
            if task.status in (TaskStatus.STARTED, TaskStatus.COMPLETED):
                break
        return changed

    def _move(self, task: SimTask, status: TaskStatus, ctx: TickContext,
              kind: EventKind, detail: Optional[str] = None) -> None:
        task.move_to(status, ctx.now)
        self.emit(task, kind, detail)

    def _from_created(self, task: SimTask, ctx: TickContext) -> None:
        self._move(task, TaskStatus.QUEUED, ctx, EventKind.QUEUED)

    def _from_queued(self, task: SimTask, ctx: TickContext) -> None:
        waited = task.minutes_since(task.queued_at, ctx.now)
        if not (self.policy.skip_wait or waited >= task.wait_minutes):
            return

        if not self.pool.available(task.task_name):
            if not task.deferred_due_to_busy:
                task.deferred_due_to_busy = True
                self.emit(task, EventKind.QUEUE_DEFERRED_BUSY, None)
            return

        if self.policy.pending_probability > 0 and self.rng.chance(self.policy.pending_probability):
            self._move(task, TaskStatus.PENDING, ctx, EventKind.PENDING)
            return

        self.pool.reserve(task.task_name)
        self._move(task, TaskStatus.ASSIGNED, ctx, EventKind.ASSIGNED)

    def _from_pending(self, task: SimTask, ctx: TickContext) -> None:
        waited = task.minutes_since(task.pending_at, ctx.now)
        threshold = min(PENDING_MAX_MINUTES, task.wait_minutes * 0.5)
        if not (self.policy.skip_wait or waited >= threshold):
            return

        if self.pool.available(task.task_name):
            self.pool.reserve(task.task_name)
            self._move(task, TaskStatus.ASSIGNED, ctx, EventKind.ASSIGNED, "from pending")
        else:
            task.deferred_due_to_busy = True
            self._move(task, TaskStatus.QUEUED, ctx, EventKind.REQUEUED_BUSY)

    def _from_assigned(self, task: SimTask, ctx: TickContext) -> None:
        if ctx.processing_allowed:
            self._move(task, TaskStatus.STARTED, ctx, EventKind.STARTED)

    def _from_started(self, task: SimTask, ctx: TickContext) -> None:
        if not ctx.processing_allowed:
            return

        task.process_minutes += ctx.speed(task)
        if task.process_minutes < task.planned_minutes:
            return

        self.pool.release(task.task_name)
        self._move(task, TaskStatus.COMPLETED, ctx, EventKind.COMPLETED)
        if self.on_completed is not None:
            self.on_completed(task, ctx)
