"""
Process Definition Layer

- Flow graph built from flow rules (networkx)
- Cycle and reachability checks
- Path/decision resolution
"""

from .graph import FlowGraph, FlowGraphBuilder, detect_cycles, START_NODE
from .resolver import PathResolver, NextStep

__all__ = [
    "FlowGraph",
    "FlowGraphBuilder",
    "detect_cycles",
    "START_NODE",
    "PathResolver",
    "NextStep"
]
