"""
Lifecycle learning: predicts a service's future utility from its history.

Keeps a bounded FIFO window of utility observations per service and blends
two lightweight models:
  - trend: last value nudged by the least-squares slope of the window
  - decay: current utility decayed by DECAY_FACTOR ** ln(n + 1)

The log-scaled exponent makes decay gentler than a per-cycle exponential;
predictions depend on it, so it is kept as is.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import Deque, Dict, List, Optional

import numpy as np

from shared.state_schema import ConfigurationError, Service, clamp

logger = logging.getLogger(__name__)

DECAY_FACTOR = 0.95
TREND_WEIGHT = 0.4
DECAY_WEIGHT = 0.6
TREND_INFLUENCE = 0.5
DEFAULT_HISTORY_WINDOW = 20


class LifecycleLearner:
    def __init__(self, max_history_window: int = DEFAULT_HISTORY_WINDOW):
        if max_history_window < 1:
            raise ConfigurationError(f"History window must be >= 1, got {max_history_window}")
        self.max_history_window = max_history_window
        self._history: Dict[str, Deque[float]] = {}

    def record_observation(self, service_id: str, utility: float) -> None:
        window = self._history.get(service_id)
        if window is None:
            window = deque(maxlen=self.max_history_window)
            self._history[service_id] = window
        window.append(float(utility))
        logger.debug(f"Recorded utility for {service_id}: {utility:.4f} ({len(window)} in window)")

    def history(self, service_id: str) -> List[float]:
        return list(self._history.get(service_id, ()))

    def forget(self, service_id: str) -> None:
        self._history.pop(service_id, None)

    def predict_future_utility(self, service: Service, current_utility: float) -> float:
        """
        Predict future utility for a service.

        Cold start (no history) trusts the instantaneous measurement.
        """
        window = self._history.get(service.service_id)
        if not window:
            return current_utility

        values = np.fromiter(window, dtype=float)
        trend = self._trend(values)
        decay = self._decay(current_utility, len(values))
        predicted = clamp(TREND_WEIGHT * trend + DECAY_WEIGHT * decay)

        logger.debug(
            f"Predicted future utility for {service.service_id}: {predicted:.4f} "
            f"(trend: {trend:.4f}, decay: {decay:.4f})"
        )
        return predicted

    @staticmethod
    def _trend(values: np.ndarray) -> float:
        n = len(values)
        if n < 2:
            return float(values[-1])

        x = np.arange(n, dtype=float)
        sum_x = x.sum()
        sum_y = values.sum()
        sum_xy = (x * values).sum()
        sum_x2 = (x * x).sum()
        slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)

        return clamp(float(values[-1] + TREND_INFLUENCE * slope))

    @staticmethod
    def _decay(current_utility: float, history_length: int) -> float:
        return clamp(current_utility * DECAY_FACTOR ** math.log(history_length + 1))

    def learning_stats(self, service_id: str) -> Optional[Dict[str, float]]:
        window = self._history.get(service_id)
        if not window:
            return None
        values = np.fromiter(window, dtype=float)
        return {
            "cycles": len(values),
            "mean": float(values.mean()),
            "min": float(values.min()),
            "max": float(values.max()),
        }
