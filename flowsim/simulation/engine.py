"""
Simulation Engine

The tick scheduler. Owns the simulated clock, the task collection and the
per-instance state map; nothing outside a tick mutates them.

Each tick, in order:
1. Advance the clock and the elapsed-minute counters
2. Spawn arrivals that are due
3. Materialise successor tasks deferred to working hours
4. Run every task (including ones created this tick) through the lifecycle
5. Record a metrics sample
"""

from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Iterable, Optional, Union
import logging
import threading

from ..config.settings import Settings, get_settings
from ..config.simulation import SimulationConfig
from ..core.entities import (
    DeferredTask,
    EventKind,
    FlowRule,
    InstanceState,
    MetricsPoint,
    SimLogEntry,
    SimTask,
    TaskStatus
)
from ..core.exceptions import (
    EmptyRuleSetError,
    MissingStartRuleError,
    NoProcessSelectedError,
    SimulationStateError
)
from ..core.random_source import RandomSource
from ..core.working_hours import WorkingCalendar, in_daily_window
from ..process.graph import FlowGraph, FlowGraphBuilder
from ..process.resolver import NextStep, PathResolver
from .arrivals import ArrivalDecision, ArrivalScheduler
from .durations import DurationModel
from .lifecycle import LifecyclePolicy, ResourcePool, TaskLifecycle, TickContext

logger = logging.getLogger(__name__)

TEAM_SCALING = 0.3
MIN_SPEED = 0.1


@dataclass
class ElapsedCounters:
    """Running totals of simulated minutes."""
    total: float = 0.0
    working: float = 0.0      # inside working hours
    processing: float = 0.0   # task progress was permitted


@dataclass
class EngineSnapshot:
    """Point-in-time copy of the engine state, safe to read off-thread."""
    system: str
    now: Optional[datetime]
    started_at: Optional[datetime]
    tasks: list[SimTask] = field(default_factory=list)
    events: list[SimLogEntry] = field(default_factory=list)
    series: list[MetricsPoint] = field(default_factory=list)
    elapsed: ElapsedCounters = field(default_factory=ElapsedCounters)
    capacities: dict = field(default_factory=dict)
    decision_weights: dict = field(default_factory=dict)
    team_size: int = 1
    spawned_instances: int = 0
    remaining_to_spawn: int = 0
    next_arrival_at: Optional[datetime] = None
    anomalies: list[str] = field(default_factory=list)
    ticks: int = 0


class SimulationEngine:
    """
    Tick-driven workflow simulator.

    Usage:
        engine = SimulationEngine()
        engine.start(SimulationConfig(system="Onboarding"), rules)
        engine.run_ticks(96)
        summary = MetricsAggregator(engine.config).summarize(engine.snapshot())
    """

    def __init__(self, settings: Optional[Settings] = None, rng: Optional[RandomSource] = None):
        self.settings = settings or get_settings()
        self.rng = rng or RandomSource(self.settings.random_seed)
        self._builder = FlowGraphBuilder()
        self._lock = threading.RLock()

        self.config: Optional[SimulationConfig] = None
        self.graph: Optional[FlowGraph] = None
        self.calendar: Optional[WorkingCalendar] = None
        self._clear_state()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _clear_state(self) -> None:
        self._tasks: list[SimTask] = []
        self._by_sequence: dict[tuple[str, int], SimTask] = {}
        self._instances: dict[str, InstanceState] = {}
        self._events: deque[SimLogEntry] = deque(maxlen=self.settings.event_log_limit)
        self._series: deque[MetricsPoint] = deque(maxlen=self.settings.series_limit)
        self.anomalies: list[str] = []
        self.elapsed = ElapsedCounters()
        self.now: Optional[datetime] = None
        self.started_at: Optional[datetime] = None
        self.ticks = 0
        self._task_seq = 0
        self._instance_seq = 0
        self._tick_created = 0
        self._tick_completed = 0

        self.weights: dict[str, dict[str, float]] = {}
        self.team_size = 1
        self.pool = ResourcePool()
        self.arrivals: Optional[ArrivalScheduler] = None
        self.resolver: Optional[PathResolver] = None
        self.durations: Optional[DurationModel] = None
        self.lifecycle: Optional[TaskLifecycle] = None

    @property
    def is_started(self) -> bool:
        return self.now is not None

    @property
    def tasks(self) -> list[SimTask]:
        return list(self._tasks)

    @property
    def instances(self) -> dict[str, InstanceState]:
        return dict(self._instances)

    @property
    def events(self) -> list[SimLogEntry]:
        """Event log, newest first."""
        return list(self._events)

    @property
    def series(self) -> list[MetricsPoint]:
        """Per-tick samples, oldest first."""
        return list(self._series)

    @property
    def is_finished(self) -> bool:
        """All arrivals spawned, every instance ended and every task completed."""
        if not self.is_started:
            return False
        if self.arrivals is not None and self.arrivals.remaining > 0:
            return False
        if any(not state.has_ended or state.deferred_next for state in self._instances.values()):
            return False
        return all(task.is_completed for task in self._tasks)

    # ------------------------------------------------------------------
    # Lifecycle of a run
    # ------------------------------------------------------------------

    def start(self, config: SimulationConfig, rules: Iterable[Union[FlowRule, dict]]) -> None:
        """
        Validate the configuration against the rules and begin a run.

        Raises:
            NoProcessSelectedError: no process name configured
            EmptyRuleSetError: no rules for the selected process
            MissingStartRuleError: the process has no start rule
        """
        if config is None or not config.system:
            raise NoProcessSelectedError()

        parsed = [r if isinstance(r, FlowRule) else FlowRule.model_validate(r) for r in rules]
        parsed = [r for r in parsed if r.system == config.system]
        if not parsed:
            raise EmptyRuleSetError(config.system)

        graph = self._builder.build(parsed, system=config.system)
        if not graph:
            raise MissingStartRuleError(config.system)

        with self._lock:
            self._clear_state()
            self.config = config
            self.graph = graph
            self.calendar = config.calendar

            seed = config.random_seed if config.random_seed is not None else self.settings.random_seed
            self.rng.reseed(seed)

            self.weights = graph.default_weights()
            for task, overrides in config.decision_weights.items():
                if task not in graph.decisions:
                    logger.info("Ignoring weights for %r: not a decision task", task)
                    continue
                self.weights[task] = dict(overrides)

            task_names = graph.task_names()
            self.team_size = config.team_size or max(1, len(task_names))
            self.pool = ResourcePool.for_tasks(task_names, config.resource_capacity)

            self.resolver = PathResolver(graph, self.calendar, self.rng)
            self.durations = DurationModel(config, self.rng)
            self.arrivals = ArrivalScheduler(config, self.calendar, self.rng)
            self.lifecycle = TaskLifecycle(
                policy=LifecyclePolicy.for_mode(config.fast_mode),
                pool=self.pool,
                rng=self.rng,
                precedence=self._precedence_satisfied,
                emit=self._emit_for,
                on_completed=self._on_completed
            )

            now = self.calendar.office_start(config.start_at or datetime.now())
            self.now = now
            self.started_at = now

            for message in self.pool.anomalies:
                self._record_anomaly(now, "-", message)

            decision = self.arrivals.begin(now)
            self._apply_arrivals(decision, now)

            logger.info(
                "Simulation of %r started at %s: %d instances, %d tasks, %d decisions",
                config.system, now.isoformat(), config.instance_count,
                len(task_names), len(graph.decisions)
            )

    def reset(self) -> None:
        """Drop every task, instance, event and counter."""
        with self._lock:
            self._clear_state()
            logger.info("Simulation reset")

    def _require_started(self) -> None:
        if not self.is_started:
            raise SimulationStateError("Simulation has not been started")

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self) -> MetricsPoint:
        """Advance the clock by one step and evaluate every task."""
        with self._lock:
            self._require_started()
            config = self.config
            step = config.minutes_per_tick

            now = self.now + timedelta(minutes=step)
            self.now = now
            self.ticks += 1
            self._tick_created = 0
            self._tick_completed = 0

            can_process = self.in_working_window(now)
            self.elapsed.total += step
            if can_process:
                self.elapsed.working += step
            processing_allowed = config.fast_mode or can_process
            if processing_allowed:
                self.elapsed.processing += step

            self._apply_arrivals(self.arrivals.due(now), now)

            creation_allowed = can_process
            if creation_allowed:
                self._realize_deferred(now)

            ctx = TickContext(
                now=now,
                processing_allowed=processing_allowed,
                creation_allowed=creation_allowed,
                speed=lambda task: self.effective_speed(now, task.assignee)
            )
            # Index loop: successors appended during the tick are evaluated too
            index = 0
            while index < len(self._tasks):
                self.lifecycle.advance(self._tasks[index], ctx)
                index += 1

            point = self._sample(now)
            self._series.append(point)
            return point

    def run_ticks(self, count: int, stop_when_finished: bool = False) -> list[MetricsPoint]:
        """Run `count` ticks synchronously."""
        points = []
        for _ in range(count):
            if stop_when_finished and self.is_finished:
                break
            points.append(self.tick())
        return points

    def snapshot(self) -> EngineSnapshot:
        with self._lock:
            return EngineSnapshot(
                system=self.config.system if self.config else "",
                now=self.now,
                started_at=self.started_at,
                tasks=[replace(task) for task in self._tasks],
                events=list(self._events),
                series=list(self._series),
                elapsed=replace(self.elapsed),
                capacities=dict(self.pool.capacities),
                decision_weights={task: dict(w) for task, w in self.weights.items()},
                team_size=self.team_size,
                spawned_instances=len(self._instances),
                remaining_to_spawn=self.arrivals.remaining if self.arrivals else 0,
                next_arrival_at=self.arrivals.next_arrival_at if self.arrivals else None,
                anomalies=list(self.anomalies),
                ticks=self.ticks
            )

    # ------------------------------------------------------------------
    # Calendar gates and speed
    # ------------------------------------------------------------------

    def in_working_window(self, now: datetime) -> bool:
        """Creation and non-fast processing gate."""
        return self.config.ignore_working_hours or self.calendar.is_working(now)

    def is_peak(self, now: datetime) -> bool:
        start, end = self.config.peak_window
        return in_daily_window(now, start, end)

    def effective_speed(self, now: datetime, assignee: Optional[str] = None) -> float:
        """Simulated work minutes a started task accumulates in one tick."""
        self._require_started()
        speed = self.config.minutes_per_tick
        if self.is_peak(now):
            speed *= 1 + self.config.peak_boost_percent / 100
        speed *= 1 + (self.team_size - 1) * TEAM_SCALING
        if assignee and assignee in self.config.assignee_speed:
            speed *= self.config.assignee_speed[assignee] / 100
        return max(MIN_SPEED, speed)

    # ------------------------------------------------------------------
    # Instances and tasks
    # ------------------------------------------------------------------

    def _apply_arrivals(self, decision: ArrivalDecision, now: datetime) -> None:
        for _ in range(decision.spawn):
            self._spawn_instance(now)
        if decision.deferred_to is not None:
            self._log(now, "-", self.graph.start_node, EventKind.ARRIVAL_DEFERRED,
                      f"until {decision.deferred_to.isoformat()}")

    def _spawn_instance(self, now: datetime) -> None:
        self._instance_seq += 1
        instance_id = f"SIM-{self._instance_seq}"
        state = InstanceState(instance_id=instance_id, current_task=self.graph.start_node)
        self._instances[instance_id] = state

        start = self.graph.start_rule
        base = self.resolver.base_minutes(start, now)
        self._create_task(instance_id, start.next_task, 0, base, start.assignee, now, EventKind.CREATED)

    def _create_task(
        self,
        instance_id: str,
        task_name: str,
        sequence: int,
        base_minutes: float,
        assignee: Optional[str],
        now: datetime,
        kind: EventKind
    ) -> SimTask:
        self._task_seq += 1
        task = SimTask(
            id=f"T-{self._task_seq}",
            instance_id=instance_id,
            task_name=task_name,
            sequence=sequence,
            planned_minutes=self.durations.planned_minutes(base_minutes),
            created_at=now,
            assignee=assignee,
            wait_minutes=self.durations.wait_minutes()
        )
        self._tasks.append(task)
        self._by_sequence[(instance_id, sequence)] = task
        self._tick_created += 1
        self._log(now, instance_id, task_name, kind)
        return task

    def _realize_deferred(self, now: datetime) -> None:
        for state in self._instances.values():
            if not state.deferred_next:
                continue
            pending, state.deferred_next = state.deferred_next, []
            for deferred in pending:
                self._create_task(
                    state.instance_id, deferred.task_name, deferred.sequence,
                    deferred.base_minutes, deferred.assignee, now, EventKind.CREATED_DEFERRED
                )

    def _precedence_satisfied(self, task: SimTask) -> bool:
        if task.sequence == 0:
            return True
        previous = self._by_sequence.get((task.instance_id, task.sequence - 1))
        return previous is not None and previous.is_completed

    def _on_completed(self, task: SimTask, ctx: TickContext) -> None:
        self._tick_completed += 1
        state = self._instances.get(task.instance_id)
        # Only the task the instance is waiting on moves it forward
        if state is None or state.has_ended or task.task_name != state.current_task:
            return

        step = self.resolver.next_step(
            task.task_name,
            self.weights,
            guard=state.guard,
            reference=ctx.now,
            instance_id=task.instance_id
        )
        if step is None:
            if state.guard.tripped:
                self._record_anomaly(ctx.now, task.instance_id,
                                     f"loop guard: {state.guard.tripped}", task.task_name)
                detail = "loop guard"
            else:
                detail = "no rules" if self.graph.is_terminal(task.task_name) else None
            state.current_task = None
            self._log(ctx.now, task.instance_id, task.task_name, EventKind.END_OF_FLOW, detail)
            return

        self._create_or_defer(state, step, ctx)
        self._log(ctx.now, task.instance_id, task.task_name, EventKind.NEXT,
                  f"{step.next_task} (status={step.status})")
        state.current_task = step.next_task

    def _create_or_defer(self, state: InstanceState, step: NextStep, ctx: TickContext) -> None:
        sequence = state.take_sequence()
        if ctx.creation_allowed:
            self._create_task(state.instance_id, step.next_task, sequence, step.base_minutes,
                              step.assignee, ctx.now, EventKind.CREATED_NEXT)
            return

        state.deferred_next.append(DeferredTask(
            task_name=step.next_task,
            base_minutes=step.base_minutes,
            sequence=sequence,
            assignee=step.assignee
        ))
        self._log(ctx.now, state.instance_id, step.next_task, EventKind.CREATION_DEFERRED)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _emit_for(self, task: SimTask, kind: EventKind, detail: Optional[str] = None) -> None:
        self._log(self.now, task.instance_id, task.task_name, kind, detail)

    def _log(self, now: datetime, instance_id: str, task_name: str,
             kind: EventKind, detail: Optional[str] = None) -> None:
        self._events.appendleft(SimLogEntry(
            timestamp=now,
            instance_id=instance_id,
            task_name=task_name,
            event_kind=kind,
            detail=detail
        ))

    def _record_anomaly(self, now: datetime, instance_id: str, message: str, task_name: str = "-") -> None:
        if message not in self.anomalies:
            self.anomalies.append(message)
        logger.warning("Anomaly (%s): %s", instance_id, message)
        self._log(now, instance_id, task_name, EventKind.ANOMALY, message)

    def _sample(self, now: datetime) -> MetricsPoint:
        queue_length = sum(1 for t in self._tasks if t.status in (TaskStatus.QUEUED, TaskStatus.PENDING))
        in_progress = sum(1 for t in self._tasks if t.status == TaskStatus.STARTED)
        utilization = min(100.0, round(in_progress / self.pool.total_capacity * 100, 2))
        return MetricsPoint(
            timestamp=now,
            created=self._tick_created,
            completed=self._tick_completed,
            queue_length=queue_length,
            in_progress=in_progress,
            utilization_pct=utilization
        )
