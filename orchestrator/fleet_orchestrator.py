"""
Fleet orchestrator: drives every retirement agent through discrete cycles.

Per cycle:
  1. refresh workload metrics for every active service
  2. evaluate each active agent, in registration order
  3. feed each event's utility to the learner; clear the graph on RETIRE
  4. hand each event to the event sink

Sequential mode applies step 3 right after each agent, so later agents in the
same cycle see earlier retirements. Parallel mode (max_workers > 1) evaluates
all agents of a cycle on a thread pool, waits for every one of them, then
applies steps 3-4 in registration order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from lifecycle.dependency_graph import DependencyGraph
from lifecycle.lifecycle_learner import LifecycleLearner
from lifecycle.retirement_agent import CRITICAL_DEPENDENCIES_REASON, RetirementAgent
from orchestrator.workload import MetricsSource
from shared.state_schema import ConfigurationError, Decision, RetirementEvent, Service
from telemetry.events_store import EventSink, InMemoryEventStore
from telemetry.metrics import (
    FLEET_ACTIVE_SERVICES, FLEET_CYCLE, FLEET_RETIRED_SERVICES,
    RETIREMENT_BLOCKED, RETIREMENT_CPU_FREED, RETIREMENT_DECISIONS, SERVICE_UTILITY,
)

logger = logging.getLogger(__name__)

PROGRESS_LOG_EVERY = 10
# Metric label used when no run id is given; runs sharing it share metric series.
DEFAULT_RUN_ID = "default"


@dataclass
class CycleResult:
    cycle: int
    events: List[RetirementEvent] = field(default_factory=list)
    refreshed: int = 0
    skipped_metrics: int = 0

    @property
    def retired(self) -> List[str]:
        return [e.service_id for e in self.events if e.decision == Decision.RETIRE]


@dataclass
class SimulationMetrics:
    total_services: int
    active_services: int
    retired_services: int
    cpu_freed: float
    total_retirements: int
    total_retentions: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_services": self.total_services,
            "active_services": self.active_services,
            "retired_services": self.retired_services,
            "cpu_freed": round(self.cpu_freed, 4),
            "total_retirements": self.total_retirements,
            "total_retentions": self.total_retentions,
        }

    def __str__(self) -> str:
        return (
            f"Metrics{{total:{self.total_services}, active:{self.active_services}, "
            f"retired:{self.retired_services}, cpuFreed:{self.cpu_freed:.2f}, "
            f"retirements:{self.total_retirements}, retentions:{self.total_retentions}}}"
        )


class FleetOrchestrator:
    def __init__(
        self,
        learner: LifecycleLearner,
        graph: DependencyGraph,
        metrics_source: MetricsSource,
        event_sink: Optional[EventSink] = None,
        max_workers: int = 1,
        run_id: str = DEFAULT_RUN_ID,
    ):
        if max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {max_workers}")
        self.learner = learner
        self.graph = graph
        self.metrics_source = metrics_source
        self.event_sink = event_sink if event_sink is not None else InMemoryEventStore()
        self.max_workers = max_workers
        self.run_id = run_id
        self._services: Dict[str, Service] = {}
        self._agents: List[RetirementAgent] = []
        self._current_cycle = 0
        self._total_cycles = 0
        self._counts = {Decision.RETAIN: 0, Decision.RETIRE: 0}
        self._cpu_freed = 0.0

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def register(self, agent: RetirementAgent) -> None:
        sid = agent.service_id
        if sid in self._services:
            raise ValueError(f"Service {sid} is already registered")
        if agent.graph is not self.graph or agent.learner is not self.learner:
            raise ValueError(f"Agent for {sid} must share the orchestrator's graph and learner")
        self._services[sid] = agent.service
        self._agents.append(agent)

    def register_all(self, agents: List[RetirementAgent]) -> None:
        for agent in agents:
            self.register(agent)

    @property
    def services(self) -> List[Service]:
        return list(self._services.values())

    @property
    def agents(self) -> List[RetirementAgent]:
        return list(self._agents)

    @property
    def current_cycle(self) -> int:
        return self._current_cycle

    # ------------------------------------------------------------------
    # Cycle loop
    # ------------------------------------------------------------------
    def run(self, cycles: int) -> List[CycleResult]:
        if cycles < 0:
            raise ConfigurationError(f"Cycle count must be >= 0, got {cycles}")
        self._total_cycles += cycles
        logger.info(f"Starting simulation - {cycles} cycles, {len(self._agents)} agents")

        results = []
        for _ in range(cycles):
            result = self.run_cycle()
            results.append(result)
            if result.cycle % PROGRESS_LOG_EVERY == 0:
                logger.info(
                    f"Simulation cycle {result.cycle}/{self._total_cycles} - Active services: "
                    f"{self.active_count()}, Retired services: {self.retired_count()}"
                )

        logger.info(f"Simulation complete after {self._current_cycle} cycles: {self.metrics()}")
        return results

    def run_cycle(self) -> CycleResult:
        result = CycleResult(cycle=self._current_cycle)
        self._refresh_metrics(result)

        active = [a for a in self._agents if not a.service.retired]
        if self.max_workers > 1 and len(active) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                events = list(pool.map(lambda a: a.evaluate_retirement(), active))
            for agent, event in zip(active, events):
                self._apply(agent, event, result)
        else:
            for agent in active:
                self._apply(agent, agent.evaluate_retirement(), result)

        self._publish_gauges()
        self._current_cycle += 1
        return result

    def _refresh_metrics(self, result: CycleResult) -> None:
        for service in self._services.values():
            if service.retired:
                continue
            sample = self.metrics_source.sample(service, self._current_cycle)
            if sample is None:
                # Missing metrics leave the service unchanged for this cycle.
                result.skipped_metrics += 1
                logger.debug(f"No workload metrics for {service.service_id} in cycle {self._current_cycle}")
                continue
            service.apply_workload(sample)
            result.refreshed += 1

    def _apply(self, agent: RetirementAgent, event: Optional[RetirementEvent], result: CycleResult) -> None:
        if event is None:
            return

        self.learner.record_observation(agent.service_id, event.utility_score)
        if event.decision == Decision.RETIRE:
            self.graph.clear_dependencies_for_retired_service(agent.service_id)
            self._cpu_freed += event.cpu_freed
            RETIREMENT_CPU_FREED.labels(self.run_id).inc(event.cpu_freed)
        elif event.reason == CRITICAL_DEPENDENCIES_REASON:
            RETIREMENT_BLOCKED.labels(self.run_id).inc()

        self._counts[event.decision] += 1
        RETIREMENT_DECISIONS.labels(self.run_id, event.decision.value).inc()
        SERVICE_UTILITY.labels(self.run_id).observe(event.utility_score)

        result.events.append(event)
        self.event_sink.record_event(event)

    def _publish_gauges(self) -> None:
        FLEET_ACTIVE_SERVICES.labels(self.run_id).set(self.active_count())
        FLEET_RETIRED_SERVICES.labels(self.run_id).set(self.retired_count())
        FLEET_CYCLE.labels(self.run_id).set(self._current_cycle)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def active_count(self) -> int:
        return sum(1 for s in self._services.values() if not s.retired)

    def retired_count(self) -> int:
        return sum(1 for s in self._services.values() if s.retired)

    def progress(self) -> float:
        if not self._total_cycles:
            return 0.0
        return self._current_cycle * 100.0 / self._total_cycles

    def metrics(self) -> SimulationMetrics:
        return SimulationMetrics(
            total_services=len(self._services),
            active_services=self.active_count(),
            retired_services=self.retired_count(),
            cpu_freed=self._cpu_freed,
            total_retirements=self._counts[Decision.RETIRE],
            total_retentions=self._counts[Decision.RETAIN],
        )
