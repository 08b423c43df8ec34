from datetime import datetime

from flowsim.core import LoopGuard, RandomSource
from flowsim.process import FlowGraphBuilder, PathResolver

from .conftest import MONDAY_9AM, rule


def make_resolver(rules, system, calendar, seed=3):
    graph = FlowGraphBuilder().build(rules, system=system)
    return PathResolver(graph, calendar, RandomSource(seed))


def test_zero_weight_status_never_chosen(decision_rules, calendar):
    resolver = make_resolver(decision_rules, "Branch", calendar)
    weights = {"Review": {"A": 100, "B": 0}}

    picks = {resolver.next_step("Review", weights, reference=MONDAY_9AM).next_task for _ in range(200)}
    assert picks == {"TaskA"}


def test_weights_need_not_sum_to_100(decision_rules, calendar):
    resolver = make_resolver(decision_rules, "Branch", calendar)
    weights = {"Review": {"A": 3, "B": 1}}

    picks = [resolver.next_step("Review", weights, reference=MONDAY_9AM).next_task for _ in range(400)]
    assert {"TaskA", "TaskB"} == set(picks)
    assert picks.count("TaskA") > picks.count("TaskB")


def test_missing_weights_fall_back_to_first_status(decision_rules, calendar):
    resolver = make_resolver(decision_rules, "Branch", calendar)
    step = resolver.next_step("Review", {}, reference=MONDAY_9AM)
    assert step.next_task == "TaskA"
    assert step.status == "A"


def test_unlabeled_edge_never_competes_with_labeled_one(calendar):
    rules = [
        rule("P", "", "", "Review"),
        rule("P", "Review", "", "X"),
        rule("P", "Review", "Approve", "Y"),
    ]
    resolver = make_resolver(rules, "P", calendar)

    picks = {resolver.next_step("Review", reference=MONDAY_9AM).next_task for _ in range(100)}
    assert picks == {"Y"}


def test_only_unlabeled_edges_take_the_first(calendar):
    rules = [
        rule("P", "", "", "Review"),
        rule("P", "Review", "", "X"),
        rule("P", "Review", "", "Z"),
    ]
    resolver = make_resolver(rules, "P", calendar)
    assert resolver.next_step("Review", reference=MONDAY_9AM).next_task == "X"


def test_done_edge_has_priority(calendar):
    rules = [
        rule("P", "", "", "Draft"),
        rule("P", "Draft", "Escalate", "Legal"),
        rule("P", "Draft", "Done", "Publish", email="pub@example.com"),
    ]
    resolver = make_resolver(rules, "P", calendar)
    step = resolver.next_step("Draft", {"Draft": {"Escalate": 100}}, reference=MONDAY_9AM)
    assert step.next_task == "Publish"
    assert step.assignee == "pub@example.com"


def test_terminal_task_ends_flow(simple_rules, calendar):
    resolver = make_resolver(simple_rules, "Simple", calendar)
    assert resolver.next_step("Approved", reference=MONDAY_9AM) is None


def test_base_minutes_come_from_tat(simple_rules, calendar):
    resolver = make_resolver(simple_rules, "Simple", calendar)
    step = resolver.next_step("Review", reference=datetime(2024, 3, 4, 10, 0))
    assert step.base_minutes == 120


def test_loop_guard_breaks_cycles(cyclic_rules, calendar):
    resolver = make_resolver(cyclic_rules, "Loop", calendar)
    guard = LoopGuard()

    current, hops = "Draft", 0
    while current:
        step = resolver.next_step(current, guard=guard, reference=MONDAY_9AM, instance_id="SIM-1")
        if step is None:
            break
        current = step.next_task
        hops += 1

    assert hops == 6
    assert guard.tripped is not None
    assert resolver.anomalies and "SIM-1" in resolver.anomalies[0]


def test_hop_budget():
    guard = LoopGuard(max_hops=5, max_visits=100)
    results = [guard.register(f"T{i}") for i in range(6)]
    assert results == [True] * 5 + [False]


def test_build_instance_path(decision_rules, calendar):
    resolver = make_resolver(decision_rules, "Branch", calendar)
    path = resolver.build_instance_path({"Review": {"A": 100, "B": 0}}, reference=MONDAY_9AM)
    assert [step.next_task for step in path] == ["Review", "TaskA", "Close"]


def test_build_instance_path_stops_on_cycle(cyclic_rules, calendar):
    resolver = make_resolver(cyclic_rules, "Loop", calendar)
    path = resolver.build_instance_path(reference=MONDAY_9AM)
    assert len(path) == 7
    assert resolver.anomalies
