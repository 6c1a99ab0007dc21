"""
Fleet construction for simulations.

Builds the service population, one retirement agent per service, and the
initial dependency graph. Services come either from a seeded synthetic
generator or from a metrics snapshot CSV:

    service_id,request_count,sla_score,dependents
    api-gateway,1250,0.995,8
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from lifecycle.dependency_graph import DependencyGraph
from lifecycle.lifecycle_learner import LifecycleLearner
from lifecycle.retirement_agent import RetirementAgent
from lifecycle.utility_scorer import UtilityScorer
from shared.state_schema import AgentThresholds, ConfigurationError, Service

logger = logging.getLogger(__name__)

SNAPSHOT_COLUMNS = ["service_id", "request_count", "sla_score", "dependents"]

# Modeled after public microservice telemetry datasets
SAMPLE_SERVICES: List[Tuple[str, int, float, int]] = [
    ("api-gateway", 1250, 0.995, 8),
    ("auth-service", 950, 0.99, 12),
    ("user-service", 450, 0.85, 6),
    ("payment-service", 800, 0.98, 5),
    ("inventory-service", 350, 0.92, 4),
    ("notification-service", 200, 0.70, 3),
    ("analytics-service", 150, 0.75, 2),
    ("cache-layer", 2100, 0.96, 10),
    ("database-connector", 1800, 0.99, 15),
    ("legacy-report-gen", 45, 0.60, 0),
    ("experimental-ml-api", 80, 0.68, 1),
    ("deprecated-v1-service", 12, 0.50, 0),
]


@dataclass
class ThresholdRanges:
    """Ranges per-agent thresholds are drawn from in synthetic fleets."""
    utility_threshold: Tuple[float, float] = (0.25, 0.45)
    retention_window: Tuple[int, int] = (5, 10)
    dependency_critical_threshold: int = 2

    def __post_init__(self) -> None:
        lo, hi = self.utility_threshold
        if not 0.0 <= lo <= hi <= 1.0:
            raise ConfigurationError(f"Invalid utility threshold range {self.utility_threshold}")
        lo, hi = self.retention_window
        if not 1 <= lo <= hi:
            raise ConfigurationError(f"Invalid retention window range {self.retention_window}")

    def draw(self, rng: np.random.Generator) -> AgentThresholds:
        lo, hi = self.utility_threshold
        wlo, whi = self.retention_window
        return AgentThresholds.build(
            utility_threshold=lo + rng.random() * (hi - lo),
            retention_window=int(rng.integers(wlo, whi, endpoint=False)) if whi > wlo else wlo,
            dependency_critical_threshold=self.dependency_critical_threshold,
        )


@dataclass
class Fleet:
    """Services, their agents and the shared decision components."""
    services: List[Service]
    agents: List[RetirementAgent]
    scorer: UtilityScorer
    learner: LifecycleLearner
    graph: DependencyGraph
    thresholds: Dict[str, AgentThresholds] = field(default_factory=dict)


def build_agents(
    services: List[Service],
    thresholds: Dict[str, AgentThresholds],
    scorer: UtilityScorer,
    learner: LifecycleLearner,
    graph: DependencyGraph,
    shutdown_delay: float = 0.0,
) -> List[RetirementAgent]:
    return [
        RetirementAgent(
            service,
            scorer,
            learner,
            graph,
            thresholds=thresholds.get(service.service_id, AgentThresholds()),
            shutdown_delay=shutdown_delay,
        )
        for service in services
    ]


def build_fleet(
    services: List[Service],
    seed: int = 42,
    ranges: Optional[ThresholdRanges] = None,
    dependency_probability: float = 0.4,
    history_window: int = 20,
    shutdown_delay: float = 0.0,
    overrides: Optional[Dict[str, AgentThresholds]] = None,
    defaults: Optional[AgentThresholds] = None,
) -> Fleet:
    """
    Wire agents and a random dependency graph around the given services.

    Per-agent thresholds come from overrides, then defaults, and are drawn
    from the ranges otherwise. Draws happen for every agent either way, so
    the dependency graph for a seed does not depend on the overrides. Each
    service after the first depends on one randomly chosen earlier service
    with the given probability, so the graph is acyclic.
    """
    if not services:
        raise ConfigurationError("Fleet needs at least one service")
    if len({s.service_id for s in services}) != len(services):
        raise ConfigurationError("Service ids must be unique")
    if not 0.0 <= dependency_probability <= 1.0:
        raise ConfigurationError(f"Dependency probability must be in [0, 1], got {dependency_probability}")

    rng = np.random.default_rng(seed)
    ranges = ranges or ThresholdRanges()
    overrides = overrides or {}

    scorer = UtilityScorer()
    learner = LifecycleLearner(history_window)
    graph = DependencyGraph(ranges.dependency_critical_threshold)

    thresholds = {}
    for service in services:
        drawn = ranges.draw(rng)
        thresholds[service.service_id] = overrides.get(service.service_id, defaults or drawn)
    unknown = set(overrides) - set(thresholds)
    if unknown:
        logger.warning(f"Threshold overrides for unknown services ignored: {sorted(unknown)}")

    for i in range(1, len(services)):
        if rng.random() < dependency_probability:
            provider = services[int(rng.integers(0, i))].service_id
            graph.register_dependency(services[i].service_id, provider)

    agents = build_agents(services, thresholds, scorer, learner, graph, shutdown_delay)
    logger.info(f"Fleet initialized with {len(services)} services: {graph.stats()}")
    return Fleet(services, agents, scorer, learner, graph, thresholds)


def build_simulated_fleet(
    num_services: int,
    seed: int = 42,
    ranges: Optional[ThresholdRanges] = None,
    dependency_probability: float = 0.4,
    history_window: int = 20,
    shutdown_delay: float = 0.0,
    overrides: Optional[Dict[str, AgentThresholds]] = None,
    defaults: Optional[AgentThresholds] = None,
) -> Fleet:
    """Create services S1..Sn (named Service-1..Service-n) and wire them into a fleet."""
    if num_services < 1:
        raise ConfigurationError(f"Fleet needs at least one service, got {num_services}")
    services = [Service(f"S{i + 1}", f"Service-{i + 1}") for i in range(num_services)]
    return build_fleet(
        services,
        seed=seed,
        ranges=ranges,
        dependency_probability=dependency_probability,
        history_window=history_window,
        shutdown_delay=shutdown_delay,
        overrides=overrides,
        defaults=defaults,
    )


def load_service_snapshot(path: Union[str, Path]) -> List[Service]:
    """
    Load services from a metrics snapshot CSV.

    Malformed rows are skipped; values are clamped into range. The
    dependents column is informational only, the graph owns the live count.
    """
    p = Path(path)
    if not p.exists():
        logger.warning(f"CSV file not found: {p}")
        return []

    logger.info(f"Loading service data from CSV: {p}")
    df = pd.read_csv(p)
    missing = set(SNAPSHOT_COLUMNS) - set(df.columns)
    if missing:
        raise ValueError(f"Snapshot CSV missing columns: {sorted(missing)}")
    return _services_from_frame(df)


def sample_services() -> List[Service]:
    return _services_from_frame(pd.DataFrame(SAMPLE_SERVICES, columns=SNAPSHOT_COLUMNS))


def _services_from_frame(df: pd.DataFrame) -> List[Service]:
    numeric = df[SNAPSHOT_COLUMNS[1:]].apply(pd.to_numeric, errors="coerce")
    valid = numeric.notna().all(axis=1) & df["service_id"].notna()
    skipped = int((~valid).sum())

    services = []
    for sid, row in zip(df.loc[valid, "service_id"], numeric[valid].itertuples(index=False)):
        sid = str(sid).strip()
        services.append(Service(
            service_id=sid,
            name=sid,
            request_count=int(row.request_count),
            sla_contribution=float(row.sla_score),
            dependent_count=int(row.dependents),
            utilization_rate=min(1.0, row.request_count / 1000.0),
        ))

    logger.info(f"Loaded {len(services)} services ({skipped} malformed rows skipped)")
    return services
