"""
Metrics Aggregator

Derives run metrics from an engine snapshot. Pure: recomputed on demand,
never mutates the snapshot.

- Throughput per hour of processing window
- Wait time (queued and pending intervals)
- Productivity and performance percentages
- Bottleneck task (utilisation, then average queue time)
- On-time rate per task with drill-down rows
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional

from ..config.simulation import SimulationConfig
from ..core.entities import SimTask, TaskStatus


def _minutes(start: Optional[datetime], end: Optional[datetime]) -> float:
    if start is None or end is None:
        return 0.0
    return max(0.0, (end - start).total_seconds() / 60)


def _wait_end(task: SimTask, now: datetime) -> datetime:
    return task.assigned_at or task.started_at or task.completed_at or now


def queue_minutes(task: SimTask, now: datetime) -> float:
    """Time spent queued before being picked up (0 if never queued)."""
    if task.queued_at is None:
        return 0.0
    return _minutes(task.queued_at, _wait_end(task, now))


def wait_minutes(task: SimTask, now: datetime) -> float:
    """Queued plus pending time before assignment."""
    total = queue_minutes(task, now)
    if task.pending_at is not None:
        total += _minutes(task.pending_at, _wait_end(task, now))
    return total


def processing_minutes(task: SimTask, now: datetime) -> float:
    """Wall-clock processing time so far (accumulated minutes if never started)."""
    if task.started_at is not None:
        return _minutes(task.started_at, task.completed_at or now)
    return task.process_minutes


def cycle_minutes(task: SimTask) -> float:
    return _minutes(task.created_at, task.completed_at)


@dataclass
class TaskBreakdown:
    """Per-task aggregates used for bottleneck analysis."""
    task: str
    capacity: int = 1
    tasks: int = 0
    completed: int = 0
    queue_sum: float = 0.0
    queue_count: int = 0
    active_process_minutes: float = 0.0
    utilization_pct: float = 0.0

    @property
    def avg_queue_minutes(self) -> float:
        return self.queue_sum / self.queue_count if self.queue_count else 0.0


@dataclass
class OnTimeRow:
    task: str
    on_time: int = 0
    late: int = 0
    total: int = 0
    on_time_pct: int = 0
    late_pct: int = 0


@dataclass
class DrillRow:
    instance_id: str
    task: str
    cycle_minutes: float
    planned_minutes: float
    on_time: bool
    created_at: datetime
    completed_at: datetime


@dataclass
class ProcessingRank:
    task: str
    avg_minutes: float
    count: int


@dataclass
class MetricsSummary:
    """Point-in-time aggregate metrics of one run."""
    total_hours: float = 0.0
    completed: int = 0
    throughput_per_hour: float = 0.0
    total_wait_minutes: float = 0.0
    total_processing_minutes: float = 0.0
    productivity_pct: float = 0.0
    performance_pct: float = 0.0
    loss_cost: float = 0.0
    bottleneck_task: str = ""
    bottleneck_avg_wait: float = 0.0
    bottleneck_utilization_pct: float = 0.0
    avg_queue_minutes: float = 0.0
    avg_cycle_minutes: float = 0.0
    wip: int = 0
    spawned_instances: int = 0
    on_time_pct: float = 0.0
    elapsed_minutes: float = 0.0
    elapsed_working_minutes: float = 0.0
    elapsed_processing_minutes: float = 0.0

    per_task: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("per_task")
        return data


class MetricsAggregator:
    """
    Computes MetricsSummary and per-task tables from an EngineSnapshot.

    `config` supplies cost per hour and the on-time buffer; without one
    the defaults of SimulationConfig apply.
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config or SimulationConfig()

    @property
    def _buffer(self) -> float:
        return max(0.0, self.config.on_time_buffer_pct) / 100

    def summarize(self, snapshot) -> MetricsSummary:
        if snapshot.started_at is None or snapshot.now is None:
            return MetricsSummary()

        now = snapshot.now
        tasks = snapshot.tasks
        completed = [t for t in tasks if t.status == TaskStatus.COMPLETED]
        window = max(1.0, snapshot.elapsed.processing)

        total_hours = max(1 / 60, window / 60)
        throughput = round(len(completed) / total_hours, 2)

        total_wait = sum(wait_minutes(t, now) for t in tasks)
        total_proc = sum(processing_minutes(t, now) for t in tasks)
        available = total_proc + total_wait
        productivity = min(100.0, round(total_proc / available * 100, 2)) if available > 0 else 0.0

        planned = sum(t.planned_minutes for t in completed)
        proc_completed = sum(processing_minutes(t, now) for t in completed)
        performance = 0.0
        if planned > 0:
            performance = min(100.0, round(planned / max(1.0, proc_completed) * 100, 2))

        loss_cost = round(total_wait / 60 * self.config.cost_per_hour, 2)

        breakdown = self.task_breakdown(snapshot)
        bottleneck = self._bottleneck(breakdown.values())

        queued = [t for t in tasks if t.queued_at is not None]
        avg_queue = round(sum(queue_minutes(t, now) for t in queued) / len(queued), 3) if queued else 0.0

        cycles = [cycle_minutes(t) for t in completed if t.completed_at is not None]
        avg_cycle = round(sum(cycles) / len(cycles), 3) if cycles else 0.0

        on_time_rows = self.on_time_by_task(snapshot)
        on_time_total = sum(r.total for r in on_time_rows)
        on_time_pct = round(sum(r.on_time for r in on_time_rows) / on_time_total * 100, 2) if on_time_total else 0.0

        return MetricsSummary(
            total_hours=round(window / 60, 3),
            completed=len(completed),
            throughput_per_hour=throughput,
            total_wait_minutes=round(total_wait),
            total_processing_minutes=round(total_proc),
            productivity_pct=productivity,
            performance_pct=performance,
            loss_cost=loss_cost,
            bottleneck_task=bottleneck.task if bottleneck else "",
            bottleneck_avg_wait=round(bottleneck.avg_queue_minutes, 2) if bottleneck else 0.0,
            bottleneck_utilization_pct=bottleneck.utilization_pct if bottleneck else 0.0,
            avg_queue_minutes=avg_queue,
            avg_cycle_minutes=avg_cycle,
            wip=sum(1 for t in tasks if t.status != TaskStatus.COMPLETED),
            spawned_instances=snapshot.spawned_instances,
            on_time_pct=on_time_pct,
            elapsed_minutes=snapshot.elapsed.total,
            elapsed_working_minutes=snapshot.elapsed.working,
            elapsed_processing_minutes=snapshot.elapsed.processing,
            per_task=breakdown
        )

    def task_breakdown(self, snapshot) -> dict[str, TaskBreakdown]:
        """Queue and utilisation aggregates per task name, in first-seen order."""
        now = snapshot.now
        window = max(1.0, snapshot.elapsed.processing)
        by_task: dict[str, TaskBreakdown] = {}

        for task in snapshot.tasks:
            row = by_task.get(task.task_name)
            if row is None:
                capacity = max(1, snapshot.capacities.get(task.task_name, 1))
                row = by_task[task.task_name] = TaskBreakdown(task=task.task_name, capacity=capacity)
            row.tasks += 1
            if task.is_completed:
                row.completed += 1
            if task.queued_at is not None:
                row.queue_sum += queue_minutes(task, now)
                row.queue_count += 1
            row.active_process_minutes += processing_minutes(task, now)

        for row in by_task.values():
            row.utilization_pct = min(100.0, round(row.active_process_minutes / (window * row.capacity) * 100, 2))
        return by_task

    @staticmethod
    def _bottleneck(rows) -> Optional[TaskBreakdown]:
        best = None
        for row in rows:
            if best is None:
                if row.utilization_pct > 0 or row.avg_queue_minutes > 0:
                    best = row
                continue
            if row.utilization_pct > best.utilization_pct or (
                row.utilization_pct == best.utilization_pct
                and row.avg_queue_minutes > best.avg_queue_minutes
            ):
                best = row
        return best

    def _is_on_time(self, task: SimTask) -> tuple[bool, float, float]:
        cycle = round(cycle_minutes(task), 3)
        planned = max(1.0, task.planned_minutes)
        threshold = round(planned * (1 + self._buffer), 3)
        return cycle <= threshold, cycle, planned

    def on_time_by_task(self, snapshot) -> list[OnTimeRow]:
        """On-time and late counts per task name, sorted by name."""
        rows: dict[str, OnTimeRow] = {}
        for task in snapshot.tasks:
            if not task.is_completed or task.completed_at is None:
                continue
            row = rows.setdefault(task.task_name, OnTimeRow(task=task.task_name))
            on_time, _, _ = self._is_on_time(task)
            if on_time:
                row.on_time += 1
            else:
                row.late += 1
            row.total += 1

        for row in rows.values():
            row.on_time_pct = round(row.on_time / row.total * 100) if row.total else 0
            row.late_pct = round(row.late / row.total * 100) if row.total else 0
        return sorted(rows.values(), key=lambda r: r.task)

    def drill_down(self, snapshot, task_name: str, on_time: bool) -> list[DrillRow]:
        """Completed tasks of one name that were (or were not) on time."""
        rows = []
        for task in snapshot.tasks:
            if task.task_name != task_name or not task.is_completed or task.completed_at is None:
                continue
            is_on_time, cycle, planned = self._is_on_time(task)
            if is_on_time == on_time:
                rows.append(DrillRow(
                    instance_id=task.instance_id,
                    task=task.task_name,
                    cycle_minutes=cycle,
                    planned_minutes=planned,
                    on_time=is_on_time,
                    created_at=task.created_at,
                    completed_at=task.completed_at
                ))
        return rows

    def processing_ranking(self, snapshot) -> list[ProcessingRank]:
        """Average started-to-completed minutes per task, slowest first."""
        totals: dict[str, list[float]] = {}
        for task in snapshot.tasks:
            if task.is_completed and task.started_at and task.completed_at:
                totals.setdefault(task.task_name, []).append(_minutes(task.started_at, task.completed_at))

        ranking = [
            ProcessingRank(task=name, avg_minutes=round(sum(values) / len(values), 2), count=len(values))
            for name, values in totals.items()
        ]
        return sorted(ranking, key=lambda r: r.avg_minutes, reverse=True)
