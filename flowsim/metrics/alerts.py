"""
Alert Engine

Evaluates a run's summary metrics against thresholds and suggests
capacity changes for the bottleneck task.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4
import logging

logger = logging.getLogger(__name__)


class AlertSeverity(Enum):
    """Alert severity levels."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertStatus(Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"


@dataclass
class AlertRule:
    """Threshold on one MetricsSummary field."""
    id: UUID = field(default_factory=uuid4)
    name: str = ""
    metric_name: str = ""
    description: str = ""

    condition: str = "gt"  # gt, lt, gte, lte
    threshold: float = 0.0
    severity: AlertSeverity = AlertSeverity.WARNING

    # Cooldown in simulated minutes
    cooldown_minutes: int = 60
    last_triggered: Optional[datetime] = None

    enabled: bool = True


@dataclass
class Alert:
    """A triggered rule."""
    id: UUID = field(default_factory=uuid4)
    rule_id: Optional[UUID] = None
    rule_name: str = ""
    metric_name: str = ""

    severity: AlertSeverity = AlertSeverity.WARNING
    message: str = ""
    current_value: float = 0.0
    threshold: float = 0.0

    status: AlertStatus = AlertStatus.ACTIVE
    triggered_at: datetime = field(default_factory=datetime.now)
    resolved_at: Optional[datetime] = None

    recommendation: str = ""


_CONDITIONS = {
    "gt": (lambda value, threshold: value > threshold, "exceeded"),
    "lt": (lambda value, threshold: value < threshold, "fell below"),
    "gte": (lambda value, threshold: value >= threshold, "reached or exceeded"),
    "lte": (lambda value, threshold: value <= threshold, "reached or fell below"),
}


class AlertEngine:
    """
    Threshold alerts over MetricsSummary values.

    Default rules flag:
    - A saturated bottleneck task
    - A low on-time completion rate
    - Long average queue times
    - Low productivity (waiting dominates processing)
    """

    def __init__(self, with_defaults: bool = True):
        self._rules: dict[str, AlertRule] = {}
        self._active_alerts: dict[str, Alert] = {}
        self._alert_history: list[Alert] = []

        if with_defaults:
            self._initialize_default_rules()

    def _initialize_default_rules(self) -> None:
        default_rules = [
            AlertRule(
                name="Saturated Bottleneck",
                metric_name="bottleneck_utilization_pct",
                description="The busiest task is running at or near capacity",
                condition="gte",
                threshold=85.0,
                severity=AlertSeverity.CRITICAL
            ),
            AlertRule(
                name="Low On-Time Rate",
                metric_name="on_time_pct",
                description="Too many tasks finish after their planned time",
                condition="lt",
                threshold=80.0,
                severity=AlertSeverity.WARNING
            ),
            AlertRule(
                name="Long Queues",
                metric_name="avg_queue_minutes",
                description="Tasks wait too long before being picked up",
                condition="gt",
                threshold=60.0,
                severity=AlertSeverity.WARNING
            ),
            AlertRule(
                name="Low Productivity",
                metric_name="productivity_pct",
                description="Waiting time dominates processing time",
                condition="lt",
                threshold=50.0,
                severity=AlertSeverity.INFO
            )
        ]
        for rule in default_rules:
            self.add_rule(rule)

    def add_rule(self, rule: AlertRule) -> None:
        self._rules[str(rule.id)] = rule

    @property
    def rules(self) -> list[AlertRule]:
        return list(self._rules.values())

    def evaluate(self, summary, at: Optional[datetime] = None) -> list[Alert]:
        """
        Evaluate every enabled rule against `summary`.

        `summary` is a MetricsSummary or a plain dict of its values;
        `at` is the simulated instant used for cooldowns.
        """
        metrics = summary if isinstance(summary, dict) else summary.to_dict()
        at = at or datetime.now()
        new_alerts = []

        for rule in self._rules.values():
            if not rule.enabled:
                continue
            value = metrics.get(rule.metric_name)
            if value is None or rule.condition not in _CONDITIONS:
                continue

            check, _ = _CONDITIONS[rule.condition]
            if not check(value, rule.threshold):
                continue

            if rule.last_triggered is not None:
                elapsed = (at - rule.last_triggered).total_seconds()
                if elapsed < rule.cooldown_minutes * 60:
                    continue

            alert = self._create_alert(rule, value, metrics, at)
            new_alerts.append(alert)
            rule.last_triggered = at
            self._active_alerts[str(alert.id)] = alert
            logger.info("Alert %s: %s", rule.name, alert.message)

        return new_alerts

    def _create_alert(self, rule: AlertRule, value: float, metrics: dict, at: datetime) -> Alert:
        _, verb = _CONDITIONS[rule.condition]
        message = f"{rule.metric_name} {verb} threshold: {value:.2f} (threshold: {rule.threshold:.2f})"
        return Alert(
            rule_id=rule.id,
            rule_name=rule.name,
            metric_name=rule.metric_name,
            severity=rule.severity,
            message=message,
            current_value=value,
            threshold=rule.threshold,
            triggered_at=at,
            recommendation=self.recommend(rule.metric_name, metrics)
        )

    @staticmethod
    def recommend(metric_name: str, metrics: dict) -> str:
        """Suggested action for a breached metric."""
        task = metrics.get("bottleneck_task") or "the bottleneck task"
        if metric_name in ("bottleneck_utilization_pct", "avg_queue_minutes"):
            return f"Add capacity to '{task}' or rebalance its assignees"
        if metric_name == "on_time_pct":
            return f"Review the TAT of '{task}' or raise the on-time buffer"
        if metric_name == "productivity_pct":
            return "Reduce hand-off waits: enable more parallel capacity on queued tasks"
        return ""

    def resolve(self, alert_id: UUID, at: Optional[datetime] = None) -> bool:
        key = str(alert_id)
        alert = self._active_alerts.pop(key, None)
        if alert is None:
            return False
        alert.status = AlertStatus.RESOLVED
        alert.resolved_at = at or datetime.now()
        self._alert_history.append(alert)
        return True

    def get_active_alerts(self, severity: Optional[AlertSeverity] = None) -> list[Alert]:
        alerts = list(self._active_alerts.values())
        if severity is not None:
            alerts = [a for a in alerts if a.severity == severity]
        return sorted(alerts, key=lambda a: a.triggered_at, reverse=True)

    def get_alert_history(self, limit: int = 100) -> list[Alert]:
        return self._alert_history[-limit:]
