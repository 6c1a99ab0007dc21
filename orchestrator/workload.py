"""
Workload metric sources for the simulation harness.

The orchestrator pulls one WorkloadSample per active service per cycle from
a MetricsSource. Returning None means "no metrics this cycle" and the
service keeps its previous values.

Sources:
  - SimulatedWorkload: seeded synthetic load that decays with service age
  - StaticWorkload: fixed per-service samples
  - ReplayWorkload: per-cycle rows replayed from a CSV file
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol, Tuple, Union

import numpy as np
import pandas as pd

from shared.state_schema import ConfigurationError, Service, WorkloadSample

logger = logging.getLogger(__name__)

BASE_REQUESTS = 800
REQUEST_DECAY = 0.97
SLA_DRIFT = 0.1
MAX_REQUESTS = 1000.0

REPLAY_COLUMNS = ["cycle", "service_id", "request_count", "utilization_rate", "sla_contribution_delta"]


class MetricsSource(Protocol):
    def sample(self, service: Service, cycle: int) -> Optional[WorkloadSample]: ...


class SimulatedWorkload:
    """
    Synthetic workload with feature churn.

    Request volume decays by 3% for every `age_scale` cycles a service has
    been observed, jittered by a uniform 0.5x-1.5x factor; utilisation
    tracks requests and SLA contribution drifts by up to +/-5% per cycle.

    The default age_scale of 1 decays per cycle, so a 40-cycle run ends at
    about 30% of base volume and low-utility services actually appear.
    age_scale=100 gives a near-flat curve over a short run.
    """

    def __init__(self, seed: int = 42, base_requests: int = BASE_REQUESTS, age_scale: float = 1.0):
        if age_scale <= 0:
            raise ConfigurationError(f"age_scale must be positive, got {age_scale}")
        self.rng = np.random.default_rng(seed)
        self.base_requests = base_requests
        self.age_scale = age_scale
        self._age: Dict[str, int] = {}

    def sample(self, service: Service, cycle: int) -> Optional[WorkloadSample]:
        age = self._age.get(service.service_id, 0)
        self._age[service.service_id] = age + 1

        decay = REQUEST_DECAY ** (age / self.age_scale)
        requests = int(self.base_requests * decay * (0.5 + self.rng.random()))
        sla_drift = SLA_DRIFT * (self.rng.random() - 0.5)

        return WorkloadSample(
            request_count=requests,
            utilization_rate=min(1.0, requests / MAX_REQUESTS),
            sla_contribution_delta=sla_drift,
        )


class StaticWorkload:
    """Returns the same sample for a service every cycle; unknown services get None."""

    def __init__(self, samples: Mapping[str, WorkloadSample]):
        self.samples = dict(samples)

    def sample(self, service: Service, cycle: int) -> Optional[WorkloadSample]:
        return self.samples.get(service.service_id)


class ReplayWorkload:
    """
    Replays recorded workload from a frame with columns
    cycle, service_id, request_count, utilization_rate, sla_contribution_delta.

    Rows that are missing or fail validation yield None for that cycle.
    """

    def __init__(self, frame: pd.DataFrame):
        missing = set(REPLAY_COLUMNS[:4]) - set(frame.columns)
        if missing:
            raise ValueError(f"Replay frame missing columns: {sorted(missing)}")
        frame = frame.copy()
        if "sla_contribution_delta" not in frame.columns:
            frame["sla_contribution_delta"] = 0.0
        self._rows: Dict[Tuple[int, str], dict] = {}
        for row in frame.to_dict(orient="records"):
            try:
                key = (int(row["cycle"]), str(row["service_id"]).strip())
            except (TypeError, ValueError):
                logger.debug(f"Skipping replay row with bad key: {row}")
                continue
            self._rows[key] = row

    @classmethod
    def from_csv(cls, path: Union[str, Path]) -> "ReplayWorkload":
        logger.info(f"Loading replay workload from CSV: {path}")
        return cls(pd.read_csv(path))

    def sample(self, service: Service, cycle: int) -> Optional[WorkloadSample]:
        row = self._rows.get((cycle, service.service_id))
        if row is None:
            return None
        delta = row.get("sla_contribution_delta")
        try:
            return WorkloadSample(
                request_count=int(row["request_count"]),
                utilization_rate=float(row["utilization_rate"]),
                sla_contribution_delta=0.0 if pd.isna(delta) else float(delta),
            )
        except (TypeError, ValueError) as e:
            logger.debug(f"Malformed replay row for {service.service_id} cycle {cycle}: {e}")
            return None

    def __len__(self) -> int:
        return len(self._rows)
