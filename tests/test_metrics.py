from datetime import datetime

import pytest

from flowsim.config import SimulationConfig
from flowsim.core import EventKind, MetricsPoint, SimLogEntry, SimTask, TaskStatus
from flowsim.metrics import (
    AlertEngine,
    AlertSeverity,
    DashboardGenerator,
    MetricsAggregator,
    TaskBreakdown,
    events_frame,
    series_frame,
    tasks_frame
)
from flowsim.simulation import ElapsedCounters, EngineSnapshot


def at(hour, minute=0):
    return datetime(2024, 3, 4, hour, minute)


def make_task(task_id, instance_id, name, seq, planned, created, queued=None, assigned=None,
              completed=None, status=TaskStatus.COMPLETED):
    return SimTask(
        id=task_id,
        instance_id=instance_id,
        task_name=name,
        sequence=seq,
        planned_minutes=planned,
        created_at=created,
        status=status,
        queued_at=queued,
        assigned_at=assigned,
        started_at=assigned,
        completed_at=completed
    )


@pytest.fixture
def snapshot():
    tasks = [
        make_task("T-1", "SIM-1", "Review", 0, 40, at(9), at(9), at(9, 10), at(9, 40)),
        make_task("T-2", "SIM-2", "Review", 0, 30, at(9), at(9), at(10), at(10, 50)),
        make_task("T-3", "SIM-1", "Approve", 1, 20, at(9, 40), at(10), status=TaskStatus.QUEUED),
    ]
    series = [
        MetricsPoint(timestamp=at(9, 15 * i), utilization_pct=10.0 * i, in_progress=i)
        for i in range(1, 4)
    ]
    events = [SimLogEntry(at(10, 50), "SIM-2", "Review", EventKind.COMPLETED)]
    return EngineSnapshot(
        system="Purchase",
        now=at(11),
        started_at=at(9),
        tasks=tasks,
        events=events,
        series=series,
        elapsed=ElapsedCounters(total=120, working=120, processing=120),
        capacities={"Review": 1, "Approve": 1},
        spawned_instances=2
    )


@pytest.fixture
def aggregator():
    return MetricsAggregator(SimulationConfig(cost_per_hour=20, on_time_buffer_pct=50))


class TestSummary:

    def test_totals(self, aggregator, snapshot):
        summary = aggregator.summarize(snapshot)

        assert summary.completed == 2
        assert summary.total_hours == 2.0
        assert summary.throughput_per_hour == 1.0
        assert summary.total_wait_minutes == 130
        assert summary.total_processing_minutes == 80
        assert summary.productivity_pct == pytest.approx(38.1)
        assert summary.performance_pct == pytest.approx(87.5)
        assert summary.loss_cost == pytest.approx(43.33)
        assert summary.wip == 1
        assert summary.spawned_instances == 2

    def test_averages(self, aggregator, snapshot):
        summary = aggregator.summarize(snapshot)
        assert summary.avg_queue_minutes == pytest.approx(43.333)
        assert summary.avg_cycle_minutes == pytest.approx(75.0)

    def test_bottleneck(self, aggregator, snapshot):
        summary = aggregator.summarize(snapshot)
        assert summary.bottleneck_task == "Review"
        assert summary.bottleneck_utilization_pct == pytest.approx(66.67)
        assert summary.bottleneck_avg_wait == pytest.approx(35.0)

    def test_not_started_snapshot_is_all_zero(self, aggregator):
        summary = aggregator.summarize(EngineSnapshot(system="Purchase", now=None, started_at=None))
        assert summary.completed == 0
        assert summary.throughput_per_hour == 0
        assert summary.bottleneck_task == ""

    def test_to_dict_excludes_per_task(self, aggregator, snapshot):
        data = aggregator.summarize(snapshot).to_dict()
        assert "per_task" not in data
        assert data["bottleneck_task"] == "Review"


class TestBottleneckSelection:

    def test_queue_breaks_utilization_ties(self):
        rows = [
            TaskBreakdown(task="A", utilization_pct=50.0, queue_sum=10, queue_count=1),
            TaskBreakdown(task="B", utilization_pct=50.0, queue_sum=30, queue_count=1),
        ]
        assert MetricsAggregator._bottleneck(rows).task == "B"

    def test_higher_utilization_wins(self):
        rows = [
            TaskBreakdown(task="A", utilization_pct=20.0, queue_sum=90, queue_count=1),
            TaskBreakdown(task="B", utilization_pct=40.0),
        ]
        assert MetricsAggregator._bottleneck(rows).task == "B"

    def test_idle_tasks_have_no_bottleneck(self):
        assert MetricsAggregator._bottleneck([TaskBreakdown(task="A")]) is None


class TestOnTime:

    def test_rows_per_task(self, aggregator, snapshot):
        rows = aggregator.on_time_by_task(snapshot)
        assert [r.task for r in rows] == ["Review"]
        assert (rows[0].on_time, rows[0].late, rows[0].total) == (1, 1, 2)
        assert rows[0].on_time_pct == 50

    def test_overall_rate(self, aggregator, snapshot):
        assert aggregator.summarize(snapshot).on_time_pct == 50.0

    def test_drill_down(self, aggregator, snapshot):
        late = aggregator.drill_down(snapshot, "Review", on_time=False)
        assert [r.instance_id for r in late] == ["SIM-2"]
        assert late[0].cycle_minutes == 110

        on_time = aggregator.drill_down(snapshot, "Review", on_time=True)
        assert [r.instance_id for r in on_time] == ["SIM-1"]

    def test_without_buffer_threshold_is_planned_time(self, snapshot):
        rows = MetricsAggregator(SimulationConfig()).on_time_by_task(snapshot)
        assert rows[0].late == 1
        assert rows[0].on_time == 1

    def test_processing_ranking(self, aggregator, snapshot):
        ranking = aggregator.processing_ranking(snapshot)
        assert [(r.task, r.avg_minutes, r.count) for r in ranking] == [("Review", 40.0, 2)]


class TestFrames:

    def test_tasks_frame(self, snapshot):
        frame = tasks_frame(snapshot)
        assert len(frame) == 3
        assert list(frame["status"]) == ["completed", "completed", "queued"]
        assert frame.loc[2, "measured_wait_minutes"] == 60

    def test_events_frame(self, snapshot):
        frame = events_frame(snapshot)
        assert frame.loc[0, "event"] == "completed"

    def test_series_frame_indexed_by_time(self, snapshot):
        frame = series_frame(snapshot)
        assert frame.index.name == "timestamp"
        assert list(frame["in_progress"]) == [1, 2, 3]


class TestAlertsAndDashboard:

    def test_default_rules_fire(self, aggregator, snapshot):
        alerts = AlertEngine().evaluate(aggregator.summarize(snapshot), at=snapshot.now)
        by_metric = {a.metric_name: a for a in alerts}

        assert set(by_metric) == {"on_time_pct", "productivity_pct"}
        assert by_metric["on_time_pct"].severity == AlertSeverity.WARNING
        assert "Review" in by_metric["on_time_pct"].recommendation

    def test_cooldown_in_simulated_minutes(self, aggregator, snapshot):
        engine = AlertEngine()
        summary = aggregator.summarize(snapshot)

        assert len(engine.evaluate(summary, at=at(11))) == 2
        assert engine.evaluate(summary, at=at(11, 30)) == []
        assert len(engine.evaluate(summary, at=at(12))) == 2

    def test_resolve_moves_alert_to_history(self, aggregator, snapshot):
        engine = AlertEngine()
        alert = engine.evaluate(aggregator.summarize(snapshot), at=at(11))[0]

        assert engine.resolve(alert.id, at=at(11, 5))
        assert alert.id not in {a.id for a in engine.get_active_alerts()}
        assert engine.get_alert_history()[-1].id == alert.id

    def test_dashboard(self, aggregator, snapshot):
        generator = DashboardGenerator(aggregator, AlertEngine())
        dashboard = generator.generate(snapshot)

        assert dashboard.overall_health == "warning"
        assert dashboard.utilization_trend == "rising"
        assert list(dashboard.per_task["task"]) == ["Review", "Approve"]
        text = generator.format_summary(dashboard)
        assert "Bottleneck: Review" in text
        assert "Overall Health: WARNING" in text
