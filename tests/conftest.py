"""
Shared test configuration and fixtures.

Sets environment variables needed for test imports before any app code loads.
"""

import os

# Config reads these at import time
os.environ.setdefault("RETIREMENT_SHUTDOWN_DELAY", "0")
os.environ.setdefault("RETIREMENT_LOG_LEVEL", "WARNING")

import pytest

from lifecycle.dependency_graph import DependencyGraph
from lifecycle.lifecycle_learner import LifecycleLearner
from lifecycle.retirement_agent import RetirementAgent
from lifecycle.utility_scorer import UtilityScorer
from shared.state_schema import AgentThresholds, Service


@pytest.fixture
def scorer():
    return UtilityScorer()


@pytest.fixture
def learner():
    return LifecycleLearner()


@pytest.fixture
def graph():
    return DependencyGraph()


@pytest.fixture
def low_utility_service():
    """Utility 0.039: well under every default threshold."""
    return Service(
        "S1", "Service-1",
        utilization_rate=0.05,
        request_count=10,
        sla_contribution=0.1,
    )


@pytest.fixture
def make_agent(scorer, learner, graph):
    def _make(service, utility_threshold=0.3, retention_window=3, dependency_critical_threshold=2, **kwargs):
        thresholds = AgentThresholds(
            utility_threshold=utility_threshold,
            retention_window=retention_window,
            dependency_critical_threshold=dependency_critical_threshold,
        )
        return RetirementAgent(service, scorer, learner, graph, thresholds=thresholds, **kwargs)
    return _make
