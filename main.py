#!/usr/bin/env python3
"""
FlowSim - Main Demo

Simulates a small approval process and prints:
1. The process graph and its decision points
2. A batch forecast over two simulated working days
3. Per-task on-time and bottleneck tables
4. Dashboard alerts and recommendations
"""

from datetime import datetime
import logging

from tabulate import tabulate

from flowsim.config import SimulationConfig, get_settings
from flowsim.logging_setup import configure_logging
from flowsim.metrics import DashboardGenerator, MetricsAggregator, events_frame
from flowsim.process import FlowGraphBuilder
from flowsim.simulation import SimulationEngine

logger = logging.getLogger(__name__)

DEMO_SYSTEM = "Purchase Approval"

DEMO_RULES = [
    {"system": DEMO_SYSTEM, "currentTask": "", "status": "", "nextTask": "Submit Request",
     "tat": 1, "tatType": "hour", "email": "requester@example.com"},
    {"system": DEMO_SYSTEM, "currentTask": "Submit Request", "status": "Done", "nextTask": "Manager Review",
     "tat": 2, "tatType": "hour", "email": "manager@example.com"},
    {"system": DEMO_SYSTEM, "currentTask": "Manager Review", "status": "Approved", "nextTask": "Finance Check",
     "tat": 1, "tatType": "day", "email": "finance@example.com"},
    {"system": DEMO_SYSTEM, "currentTask": "Manager Review", "status": "Rejected", "nextTask": "Notify Requester",
     "tat": 1, "tatType": "hour", "email": "requester@example.com"},
    {"system": DEMO_SYSTEM, "currentTask": "Finance Check", "status": "Done", "nextTask": "Issue PO",
     "tat": 3, "tatType": "hour", "email": "procurement@example.com"},
]


def show_graph():
    """Print the process graph built from the demo rules."""
    graph = FlowGraphBuilder().build(DEMO_RULES, system=DEMO_SYSTEM)

    print("=" * 60)
    print(f"PROCESS: {DEMO_SYSTEM}")
    print("=" * 60)
    print(f"  Start task: {graph.start_node}")
    print(f"  Tasks: {', '.join(graph.task_names())}")
    for task, weights in graph.default_weights().items():
        split = ", ".join(f"{status}={weight:.0f}%" for status, weight in weights.items())
        print(f"  Decision at '{task}': {split}")
    print()


def run_forecast():
    """Run a two-day forecast and print its metrics."""
    config = SimulationConfig(
        system=DEMO_SYSTEM,
        instance_count=30,
        minutes_per_tick=15,
        arrival_mode="uniform",
        arrival_uniform_min=10,
        arrival_uniform_max=40,
        fast_mode=False,
        resource_capacity={"Manager Review": 2},
        decision_weights={"Manager Review": {"Approved": 80, "Rejected": 20}},
        cost_per_hour=35,
        on_time_buffer_pct=10,
        random_seed=42,
        start_at=datetime(2024, 3, 4, 8, 0)
    )

    print("Simulation Configuration:")
    print(f"  - Instances: {config.instance_count} ({config.arrival_mode.value} arrivals)")
    print(f"  - Minutes per tick: {config.minutes_per_tick:g}")
    print(f"  - Office hours: {config.work_start}-{config.work_end}")
    print()

    engine = SimulationEngine()
    engine.start(config, DEMO_RULES)
    ticks = engine.run_ticks(2 * 24 * 4, stop_when_finished=True)
    snapshot = engine.snapshot()
    print(f"Ran {len(ticks)} ticks, clock now {snapshot.now:%a %Y-%m-%d %H:%M}")
    print()

    aggregator = MetricsAggregator(config)
    summary = aggregator.summarize(snapshot)

    print("=" * 60)
    print("RUN METRICS")
    print("=" * 60)
    rows = [
        ("Instances spawned", summary.spawned_instances),
        ("Tasks completed", summary.completed),
        ("Throughput (/hr)", f"{summary.throughput_per_hour:.2f}"),
        ("Avg queue (min)", f"{summary.avg_queue_minutes:.1f}"),
        ("Avg cycle (min)", f"{summary.avg_cycle_minutes:.1f}"),
        ("Productivity (%)", f"{summary.productivity_pct:.1f}"),
        ("Performance (%)", f"{summary.performance_pct:.1f}"),
        ("Loss cost", f"{summary.loss_cost:.2f}"),
        ("Work in progress", summary.wip),
    ]
    print(tabulate(rows, headers=["Metric", "Value"], tablefmt="grid"))
    print()

    on_time = [
        (r.task, r.on_time, r.late, f"{r.on_time_pct}%")
        for r in aggregator.on_time_by_task(snapshot)
    ]
    print(tabulate(on_time, headers=["Task", "On time", "Late", "On-time %"], tablefmt="grid"))
    print()

    ranking = [(r.task, r.avg_minutes, r.count) for r in aggregator.processing_ranking(snapshot)]
    print("Slowest steps:")
    print(tabulate(ranking, headers=["Task", "Avg processing (min)", "Completed"], tablefmt="grid"))
    print()

    dashboard = DashboardGenerator(aggregator=aggregator).generate(snapshot)
    print(DashboardGenerator().format_summary(dashboard))
    print()

    print("Latest events:")
    print(tabulate(events_frame(snapshot).head(10), headers="keys", tablefmt="grid", showindex=False))

    if snapshot.anomalies:
        print()
        print("Anomalies:")
        for message in snapshot.anomalies:
            print(f"  - {message}")


def main():
    configure_logging(get_settings())
    logger.info("Starting FlowSim demo")
    show_graph()
    run_forecast()


if __name__ == "__main__":
    main()
