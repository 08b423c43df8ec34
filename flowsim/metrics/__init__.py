"""
Metrics and Reporting

- Run summary: throughput, waits, productivity, performance, bottleneck
- Per-task on-time tables and drill-down
- Dashboard frames (pandas)
- Threshold alerts
"""

from .calculator import (
    MetricsAggregator,
    MetricsSummary,
    TaskBreakdown,
    OnTimeRow,
    DrillRow,
    ProcessingRank
)
from .dashboard import (
    DashboardData,
    DashboardGenerator,
    tasks_frame,
    events_frame,
    series_frame,
    on_time_frame
)
from .alerts import Alert, AlertRule, AlertSeverity, AlertEngine

__all__ = [
    "MetricsAggregator",
    "MetricsSummary",
    "TaskBreakdown",
    "OnTimeRow",
    "DrillRow",
    "ProcessingRank",
    "DashboardData",
    "DashboardGenerator",
    "tasks_frame",
    "events_frame",
    "series_frame",
    "on_time_frame",
    "Alert",
    "AlertRule",
    "AlertSeverity",
    "AlertEngine"
]
