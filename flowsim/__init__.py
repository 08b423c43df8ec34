"""
FlowSim - Workflow Simulation Engine

A tick-driven discrete-event simulator that forecasts throughput,
queueing, utilization and cost for a business process defined as a
list of flow rules, before the process is deployed live.
"""

__version__ = "0.1.0"
__author__ = "FlowSim Contributors"
