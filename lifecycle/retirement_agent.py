"""
Retirement agent embedded in each service.

Each cycle the agent scores its service, predicts where that utility is
heading, and counts consecutive cycles where both sit below its threshold.
Once the streak covers the retention window it asks the dependency graph
whether retiring is safe, and retires the service if so.

States: ACTIVE -> RETIRED (terminal). Evaluating a retired service is a
no-op that returns None.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from lifecycle.dependency_graph import DependencyGraph
from lifecycle.lifecycle_learner import LifecycleLearner
from lifecycle.utility_scorer import UtilityScorer
from shared.state_schema import AgentState, AgentThresholds, ConfigurationError, Decision, RetirementEvent, Service

logger = logging.getLogger(__name__)

CPU_UNITS_PER_SERVICE = 20.0

INSUFFICIENT_WINDOW_REASON = "Utility above threshold or insufficient low-utility window"
CRITICAL_DEPENDENCIES_REASON = "Critical dependencies prevent retirement"


class RetirementAgent:
    def __init__(
        self,
        service: Service,
        scorer: UtilityScorer,
        learner: LifecycleLearner,
        graph: DependencyGraph,
        thresholds: Optional[AgentThresholds] = None,
        shutdown_delay: float = 0.0,
        waiter: Callable[[float], None] = time.sleep,
    ):
        if shutdown_delay < 0:
            raise ConfigurationError(f"Shutdown delay must be >= 0, got {shutdown_delay}")
        self.service = service
        self.scorer = scorer
        self.learner = learner
        self.graph = graph
        self.thresholds = thresholds or AgentThresholds()
        self.shutdown_delay = shutdown_delay
        self._waiter = waiter
        self._low_utility_streak = 0
        self._last_event: Optional[RetirementEvent] = None
        self._lock = threading.Lock()

    @property
    def service_id(self) -> str:
        return self.service.service_id

    @property
    def utility_threshold(self) -> float:
        return self.thresholds.utility_threshold

    @property
    def retention_window(self) -> int:
        return self.thresholds.retention_window

    @property
    def low_utility_streak(self) -> int:
        return self._low_utility_streak

    @property
    def last_event(self) -> Optional[RetirementEvent]:
        return self._last_event

    @property
    def state(self) -> AgentState:
        return self.service.state

    def evaluate_retirement(self) -> Optional[RetirementEvent]:
        """Run one decision cycle. Returns None once the service is retired."""
        with self._lock:
            if self.service.retired:
                return None

            utility = self.scorer.score(self.service)
            predicted = self.learner.predict_future_utility(self.service, utility)
            logger.debug(f"Service {self.service_id} utility: {utility:.4f}, predicted: {predicted:.4f}")

            if utility < self.utility_threshold and predicted < self.utility_threshold:
                self._low_utility_streak += 1
            else:
                self._low_utility_streak = 0

            if self._low_utility_streak < self.retention_window:
                event = self._event(utility, predicted, Decision.RETAIN, INSUFFICIENT_WINDOW_REASON)
            else:
                event = self._evaluate_retirement_safety(utility, predicted)

            self._last_event = event
            return event

    def _evaluate_retirement_safety(self, utility: float, predicted: float) -> RetirementEvent:
        logger.info(f"Service {self.service_id} approaching retirement threshold")

        if not self.graph.can_safely_retire(self.service, self.thresholds.dependency_critical_threshold):
            # Streak is kept so safety is re-checked every cycle while eligible.
            logger.warning(f"Service {self.service_id} has critical dependencies, cannot retire safely")
            return self._event(utility, predicted, Decision.RETAIN, CRITICAL_DEPENDENCIES_REASON)

        logger.info(f"Initiating safe retirement for service {self.service_id}")
        self._execute_retirement()

        return self._event(
            utility,
            predicted,
            Decision.RETIRE,
            f"Low utility sustained for {self._low_utility_streak} cycles with no critical dependencies",
            cpu_freed=self._cpu_freed(),
        )

    def _execute_retirement(self) -> None:
        logger.info(f"Executing graceful shutdown for service {self.service_id}")
        try:
            if self.shutdown_delay:
                self._waiter(self.shutdown_delay)
        except InterruptedError as e:
            logger.error(f"Retirement grace period interrupted for service {self.service_id}: {e!r}")
        finally:
            # KeyboardInterrupt still propagates, after the service is marked retired.
            self.service.retire()
        logger.info(f"Service {self.service_id} successfully retired")

    def _cpu_freed(self) -> float:
        return (1.0 - self.service.utilization_rate) * CPU_UNITS_PER_SERVICE

    def _event(
        self,
        utility: float,
        predicted: float,
        decision: Decision,
        reason: str,
        cpu_freed: float = 0.0,
    ) -> RetirementEvent:
        return RetirementEvent(
            service_id=self.service_id,
            utility_score=utility,
            predicted_utility=predicted,
            dependency_count=self.service.dependent_count,
            decision=decision,
            cpu_freed=cpu_freed,
            reason=reason,
            low_utility_streak=self._low_utility_streak,
        )

    def __repr__(self) -> str:
        return (
            f"RetirementAgent(service_id={self.service_id!r}, "
            f"low_utility_streak={self._low_utility_streak}, retired={self.service.retired})"
        )
