"""
Flow Graph Builder

Turns the flat rule list of one process into a directed graph:
- One node per distinct task name, plus the "start" sentinel
- One edge per rule, labeled with the completion status that selects it
- Decision nodes: several distinct non-empty statuses, none of them "done"
"""

from typing import Any, Iterable, Optional, Union
import logging

import networkx as nx
from networkx.readwrite import json_graph

from ..core.entities import FlowRule

logger = logging.getLogger(__name__)

START_NODE = "start"
DONE_STATUS = "done"


def is_done_status(status: str) -> bool:
    return status.strip().lower() == DONE_STATUS


class FlowGraph:
    """
    Adjacency view of one process definition.

    `by_current` keeps the rules leaving each task in rule order; the
    resolver relies on that order for its "first available" fallbacks.
    An empty FlowGraph (no start rule) is falsy.
    """

    def __init__(
        self,
        system: str = "",
        rules: Optional[list[FlowRule]] = None,
        start_rule: Optional[FlowRule] = None
    ):
        self.system = system
        self.rules: list[FlowRule] = list(rules or [])
        self.start_rule = start_rule
        self.graph = nx.MultiDiGraph(system=system)
        self.by_current: dict[str, list[FlowRule]] = {}
        self.decisions: dict[str, list[FlowRule]] = {}

        if start_rule is not None:
            self._index()

    def __bool__(self) -> bool:
        return self.start_rule is not None and bool(self.start_node)

    @property
    def start_node(self) -> str:
        """First real task of every instance (target of the start rule)."""
        return self.start_rule.next_task if self.start_rule else ""

    def _index(self) -> None:
        self.graph.add_node(START_NODE, start=True)
        for rule in self.rules:
            source = rule.current_task or START_NODE
            self.by_current.setdefault(source, []).append(rule)
            for node in (source, rule.next_task):
                if node not in self.graph:
                    self.graph.add_node(node, start=False)
            self.graph.add_edge(
                source,
                rule.next_task,
                key=rule.status,
                status=rule.status,
                tat=rule.tat,
                tat_type=rule.tat_type,
                assignee=rule.assignee
            )

        for task, outgoing in self.by_current.items():
            if task == START_NODE:
                continue
            statuses = self.statuses(task)
            if len(statuses) > 1 and not any(is_done_status(s) for s in statuses):
                self.decisions[task] = list(outgoing)
                self.graph.nodes[task]["decision"] = True

    def outgoing(self, task_name: str) -> list[FlowRule]:
        return self.by_current.get(task_name or START_NODE, [])

    def statuses(self, task_name: str) -> list[str]:
        """Distinct non-empty outgoing statuses, in rule order."""
        seen: list[str] = []
        for rule in self.outgoing(task_name):
            if rule.status and rule.status not in seen:
                seen.append(rule.status)
        return seen

    def is_decision(self, task_name: str) -> bool:
        return task_name in self.decisions

    def is_terminal(self, task_name: str) -> bool:
        return not self.outgoing(task_name)

    def parents(self, task_name: str) -> list[str]:
        if task_name not in self.graph:
            return []
        return list(self.graph.predecessors(task_name))

    def children(self, task_name: str) -> list[str]:
        if task_name not in self.graph:
            return []
        return list(self.graph.successors(task_name))

    def task_names(self) -> list[str]:
        """Distinct task names that rules lead into, in first-seen order."""
        names: list[str] = []
        for rule in self.rules:
            if rule.next_task not in names:
                names.append(rule.next_task)
        return names

    def default_weights(self) -> dict[str, dict[str, float]]:
        """Equal split per decision node, rounded to whole percents."""
        weights = {}
        for task in self.decisions:
            statuses = self.statuses(task)
            equal = round(100 / len(statuses)) if statuses else 100
            weights[task] = {status: float(equal) for status in statuses}
        return weights

    def unreachable(self) -> list[str]:
        """Tasks that cannot be reached from the start sentinel."""
        if START_NODE not in self.graph:
            return []
        reachable = nx.descendants(self.graph, START_NODE) | {START_NODE}
        return [node for node in self.graph.nodes if node not in reachable]

    def to_node_link(self) -> dict[str, Any]:
        """Node-link JSON structure for external diagramming."""
        return json_graph.node_link_data(self.graph, edges="links")


def detect_cycles(flow: FlowGraph) -> list[list[str]]:
    """Simple cycles of the task graph (status labels ignored)."""
    return [cycle for cycle in nx.simple_cycles(nx.DiGraph(flow.graph))]


class FlowGraphBuilder:
    """Builds a FlowGraph from raw or parsed flow rules."""

    def build(
        self,
        rules: Iterable[Union[FlowRule, dict]],
        system: Optional[str] = None
    ) -> FlowGraph:
        """
        Build the graph for `system` (or for every given rule when None).

        Returns an empty, falsy FlowGraph when no start rule exists; the
        caller decides how to report that.
        """
        parsed = [r if isinstance(r, FlowRule) else FlowRule.model_validate(r) for r in rules]
        if system is not None:
            parsed = [r for r in parsed if r.system == system]

        edges = [r for r in parsed if r.is_edge]
        start_rule = next((r for r in edges if r.is_start), None)
        if start_rule is None:
            logger.warning("Process %r has no start rule; %d rules ignored", system, len(parsed))
            return FlowGraph(system=system or "", rules=edges)

        flow = FlowGraph(system=system or start_rule.system, rules=edges, start_rule=start_rule)

        for cycle in detect_cycles(flow):
            logger.warning("Process %r contains a cycle: %s", flow.system, " -> ".join(cycle))
        for node in flow.unreachable():
            logger.warning("Process %r: task %r is not reachable from start", flow.system, node)

        logger.debug(
            "Built graph for %r: %d tasks, %d rules, %d decisions",
            flow.system, len(flow.task_names()), len(edges), len(flow.decisions)
        )
        return flow
