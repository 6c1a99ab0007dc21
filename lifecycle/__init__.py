"""
Lifecycle decision core.

Utility scoring, utility forecasting, dependency-safety checks and the
per-service retirement agent that combines them.
"""

from lifecycle.utility_scorer import UtilityScorer
from lifecycle.lifecycle_learner import LifecycleLearner
from lifecycle.dependency_graph import DependencyGraph, DependencyStats
from lifecycle.retirement_agent import RetirementAgent

__all__ = [
    "UtilityScorer",
    "LifecycleLearner",
    "DependencyGraph",
    "DependencyStats",
    "RetirementAgent",
]
