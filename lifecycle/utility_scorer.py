"""
Utility scoring for retirement decisions.

Utility = (request_w * requests_norm + sla_w * sla + collab_w * dependents_norm) / total_w
Range [0.0, 1.0] where 1.0 = maximum utility, 0.0 = no utility.
"""

from __future__ import annotations

import logging
from typing import Dict

from shared.state_schema import ConfigurationError, Service, UtilityLevel, clamp

logger = logging.getLogger(__name__)

REQUEST_WEIGHT = 0.40
SLA_WEIGHT = 0.35
COLLABORATION_WEIGHT = 0.25
MAX_REQUESTS_PER_CYCLE = 1000.0
MAX_DEPENDENTS = 20.0


class UtilityScorer:
    """Scores a service from request volume, SLA contribution and dependents."""

    def __init__(
        self,
        request_weight: float = REQUEST_WEIGHT,
        sla_weight: float = SLA_WEIGHT,
        collaboration_weight: float = COLLABORATION_WEIGHT,
        max_requests_per_cycle: float = MAX_REQUESTS_PER_CYCLE,
        max_dependents: float = MAX_DEPENDENTS,
    ):
        weights = (request_weight, sla_weight, collaboration_weight)
        if any(w < 0 for w in weights) or sum(weights) <= 0:
            raise ConfigurationError(f"Utility weights must be non-negative with a positive sum, got {weights}")
        if max_requests_per_cycle <= 0 or max_dependents <= 0:
            raise ConfigurationError("Normalisers must be positive")
        self.request_weight = request_weight
        self.sla_weight = sla_weight
        self.collaboration_weight = collaboration_weight
        self.max_requests_per_cycle = max_requests_per_cycle
        self.max_dependents = max_dependents

    @property
    def total_weight(self) -> float:
        return self.request_weight + self.sla_weight + self.collaboration_weight

    def breakdown(self, service: Service) -> Dict[str, float]:
        return {
            "request": clamp(service.request_count / self.max_requests_per_cycle),
            "sla": clamp(service.sla_contribution),
            "collaboration": clamp(service.dependent_count / self.max_dependents),
        }

    def score(self, service: Service) -> float:
        parts = self.breakdown(service)
        utility = (
            self.request_weight * parts["request"]
            + self.sla_weight * parts["sla"]
            + self.collaboration_weight * parts["collaboration"]
        ) / self.total_weight

        logger.debug(
            f"Utility breakdown for {service.service_id} - request: {parts['request']:.3f}, "
            f"sla: {parts['sla']:.3f}, collaboration: {parts['collaboration']:.3f}, total: {utility:.4f}"
        )
        return clamp(utility)

    @staticmethod
    def label(score: float) -> UtilityLevel:
        """Convert a utility score to a reporting label."""
        if score >= 0.8:
            return UtilityLevel.CRITICAL
        elif score >= 0.6:
            return UtilityLevel.HIGH
        elif score >= 0.4:
            return UtilityLevel.MEDIUM
        elif score >= 0.2:
            return UtilityLevel.LOW
        else:
            return UtilityLevel.NEGLIGIBLE
