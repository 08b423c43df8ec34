"""
Dashboard Data Generation

Tabular views of a run for an external reporting component:
- tasks_frame: one row per simulated task
- events_frame: the event log
- series_frame: per-tick metrics samples
- on_time_frame: on-time vs late per task
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional

import pandas as pd

from .alerts import AlertEngine
from .calculator import MetricsAggregator, MetricsSummary, processing_minutes, wait_minutes

TASK_COLUMNS = [
    "id", "instance_id", "task_name", "sequence", "status", "assignee",
    "planned_minutes", "process_minutes", "wait_minutes",
    "created_at", "queued_at", "pending_at", "assigned_at", "started_at", "completed_at",
    "measured_wait_minutes", "measured_processing_minutes",
]


def tasks_frame(snapshot) -> pd.DataFrame:
    rows = []
    for task in snapshot.tasks:
        row = asdict(task)
        row["status"] = task.status.value
        row["measured_wait_minutes"] = wait_minutes(task, snapshot.now)
        row["measured_processing_minutes"] = processing_minutes(task, snapshot.now)
        rows.append(row)
    return pd.DataFrame(rows, columns=TASK_COLUMNS)


def events_frame(snapshot) -> pd.DataFrame:
    rows = [
        {
            "timestamp": e.timestamp,
            "instance_id": e.instance_id,
            "task_name": e.task_name,
            "event": e.event_kind.value,
            "detail": e.detail,
        }
        for e in snapshot.events
    ]
    return pd.DataFrame(rows, columns=["timestamp", "instance_id", "task_name", "event", "detail"])


def series_frame(snapshot) -> pd.DataFrame:
    columns = ["created", "completed", "queue_length", "in_progress", "utilization_pct"]
    frame = pd.DataFrame([asdict(p) for p in snapshot.series], columns=["timestamp"] + columns)
    return frame.set_index("timestamp")


def on_time_frame(aggregator: MetricsAggregator, snapshot) -> pd.DataFrame:
    rows = [asdict(r) for r in aggregator.on_time_by_task(snapshot)]
    return pd.DataFrame(rows, columns=["task", "on_time", "late", "total", "on_time_pct", "late_pct"])


@dataclass
class DashboardData:
    """Complete dashboard data snapshot."""
    generated_at: Optional[datetime] = None
    summary: MetricsSummary = field(default_factory=MetricsSummary)

    per_task: Optional[pd.DataFrame] = None
    on_time: Optional[pd.DataFrame] = None
    series: Optional[pd.DataFrame] = None

    utilization_trend: str = "stable"  # rising, falling, stable
    active_alerts: list = field(default_factory=list)
    overall_health: str = "good"  # good, warning, critical


class DashboardGenerator:
    """Builds DashboardData from an engine snapshot."""

    def __init__(
        self,
        aggregator: Optional[MetricsAggregator] = None,
        alerts: Optional[AlertEngine] = None
    ):
        self._aggregator = aggregator or MetricsAggregator()
        self._alerts = alerts or AlertEngine()

    def generate(self, snapshot) -> DashboardData:
        summary = self._aggregator.summarize(snapshot)
        per_task = pd.DataFrame(
            [
                {
                    "task": row.task,
                    "capacity": row.capacity,
                    "tasks": row.tasks,
                    "completed": row.completed,
                    "avg_queue_minutes": round(row.avg_queue_minutes, 2),
                    "utilization_pct": row.utilization_pct,
                }
                for row in summary.per_task.values()
            ],
            columns=["task", "capacity", "tasks", "completed", "avg_queue_minutes", "utilization_pct"]
        )
        series = series_frame(snapshot)
        alerts = self._alerts.evaluate(summary, at=snapshot.now)

        return DashboardData(
            generated_at=snapshot.now,
            summary=summary,
            per_task=per_task,
            on_time=on_time_frame(self._aggregator, snapshot),
            series=series,
            utilization_trend=self._trend(series["utilization_pct"] if not series.empty else pd.Series(dtype=float)),
            active_alerts=alerts,
            overall_health=self._health(alerts)
        )

    @staticmethod
    def _trend(values: pd.Series, window: int = 30) -> str:
        """Direction of the recent utilisation samples (least-squares slope)."""
        recent = values.tail(window).reset_index(drop=True)
        if len(recent) < 2:
            return "stable"

        x = pd.Series(range(len(recent)), dtype=float)
        slope = ((x - x.mean()) * (recent - recent.mean())).sum() / ((x - x.mean()) ** 2).sum()
        mean = recent.mean()
        normalized = slope / mean if mean else 0.0

        if normalized > 0.05:
            return "rising"
        if normalized < -0.05:
            return "falling"
        return "stable"

    @staticmethod
    def _health(alerts: list) -> str:
        severities = {alert.severity.value for alert in alerts}
        if "critical" in severities:
            return "critical"
        if "warning" in severities:
            return "warning"
        return "good"

    def format_summary(self, dashboard: DashboardData) -> str:
        """Format dashboard as text summary."""
        s = dashboard.summary
        stamp = dashboard.generated_at.strftime("%Y-%m-%d %H:%M") if dashboard.generated_at else "-"
        lines = [
            f"Dashboard Summary ({stamp})",
            f"Overall Health: {dashboard.overall_health.upper()}",
            "",
            f"  Completed: {s.completed} ({s.throughput_per_hour:.2f}/hr)",
            f"  Avg queue: {s.avg_queue_minutes:.1f} min, avg cycle: {s.avg_cycle_minutes:.1f} min",
            f"  Productivity: {s.productivity_pct:.1f}%, performance: {s.performance_pct:.1f}%",
            f"  Loss cost: {s.loss_cost:.2f}",
        ]
        if s.bottleneck_task:
            lines.append(
                f"  Bottleneck: {s.bottleneck_task} "
                f"({s.bottleneck_utilization_pct:.1f}% utilised, {s.bottleneck_avg_wait:.1f} min avg wait)"
            )
        if dashboard.active_alerts:
            lines.extend(["", "Alerts:"])
            for alert in dashboard.active_alerts:
                lines.append(f"  - [{alert.severity.value}] {alert.message}")
                if alert.recommendation:
                    lines.append(f"    {alert.recommendation}")
        return "\n".join(lines)
