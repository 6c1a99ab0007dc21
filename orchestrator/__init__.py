"""
Fleet orchestration: cycle loop, fleet construction and workload sources.
"""

from orchestrator.fleet_orchestrator import CycleResult, FleetOrchestrator, SimulationMetrics
from orchestrator.fleet import (
    Fleet, ThresholdRanges, build_fleet, build_simulated_fleet, load_service_snapshot, sample_services,
)
from orchestrator.workload import ReplayWorkload, SimulatedWorkload, StaticWorkload

__all__ = [
    "FleetOrchestrator",
    "CycleResult",
    "SimulationMetrics",
    "Fleet",
    "ThresholdRanges",
    "build_fleet",
    "build_simulated_fleet",
    "load_service_snapshot",
    "sample_services",
    "SimulatedWorkload",
    "StaticWorkload",
    "ReplayWorkload",
]
