"""
State schemas for the service retirement simulation.

Defines the mutable Service record shared by the orchestrator and the
retirement agents, plus the Pydantic models that cross component
boundaries: retirement events, workload samples and agent thresholds.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator


class ConfigurationError(ValueError):
    """Raised when thresholds or simulation settings would change decision semantics."""


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Decision(str, enum.Enum):
    RETAIN = "RETAIN"
    RETIRE = "RETIRE"


class AgentState(str, enum.Enum):
    ACTIVE = "active"
    RETIRED = "retired"


class UtilityLevel(str, enum.Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NEGLIGIBLE = "NEGLIGIBLE"


# ---------------------------------------------------------------------------
# Service record
# ---------------------------------------------------------------------------

@dataclass
class Service:
    """
    A running service in the simulated fleet.

    Owned by the orchestrator. Agents keep a reference and mutate it only
    through retire(); the dependency graph overwrites dependent_count.
    """
    service_id: str
    name: str
    utilization_rate: float = 0.5
    request_count: int = 0
    dependent_count: int = 0
    sla_contribution: float = 0.5
    retired: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)
    retired_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.utilization_rate = clamp(float(self.utilization_rate))
        self.sla_contribution = clamp(float(self.sla_contribution))
        self.request_count = max(0, int(self.request_count))
        self.dependent_count = max(0, int(self.dependent_count))

    @property
    def state(self) -> AgentState:
        return AgentState.RETIRED if self.retired else AgentState.ACTIVE

    def apply_workload(self, sample: WorkloadSample) -> None:
        """Apply one cycle of externally supplied workload metrics."""
        self.request_count = max(0, sample.request_count)
        self.utilization_rate = clamp(sample.utilization_rate)
        self.sla_contribution = clamp(self.sla_contribution + sample.sla_contribution_delta)

    def retire(self, when: Optional[datetime] = None) -> bool:
        """
        Mark the service retired. Returns False if it already was; the
        retirement timestamp is only ever set once.
        """
        if self.retired:
            return False
        self.retired = True
        self.retired_at = when or datetime.utcnow()
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service_id": self.service_id,
            "name": self.name,
            "utilization_rate": self.utilization_rate,
            "request_count": self.request_count,
            "dependent_count": self.dependent_count,
            "sla_contribution": self.sla_contribution,
            "retired": self.retired,
            "created_at": self.created_at.isoformat(),
            "retired_at": self.retired_at.isoformat() if self.retired_at else None,
        }


# ---------------------------------------------------------------------------
# Pydantic models crossing component boundaries
# ---------------------------------------------------------------------------

class RetirementEvent(BaseModel):
    """Immutable record of one retain/retire decision."""
    model_config = ConfigDict(frozen=True)

    service_id: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    utility_score: float = Field(ge=0.0, le=1.0)
    predicted_utility: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    dependency_count: int = Field(ge=0, default=0)
    decision: Decision
    cpu_freed: float = Field(ge=0.0, default=0.0)
    reason: str = ""
    low_utility_streak: int = Field(ge=0, default=0)

    @field_validator("cpu_freed")
    @classmethod
    def validate_cpu_freed(cls, v: float, info: ValidationInfo) -> float:
        if v and info.data.get("decision") == Decision.RETAIN:
            raise ValueError(f"RETAIN events cannot free CPU, got {v}")
        return v

    @property
    def is_retirement(self) -> bool:
        return self.decision == Decision.RETIRE

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class WorkloadSample(BaseModel):
    """One cycle of workload metrics for a single service."""
    request_count: int = Field(ge=0)
    utilization_rate: float = Field(ge=0.0, le=1.0)
    sla_contribution_delta: float = 0.0


class AgentThresholds(BaseModel):
    """Decision thresholds for one retirement agent, fixed at construction."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    utility_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    retention_window: int = Field(default=5, ge=1, description="Consecutive low-utility cycles")
    dependency_critical_threshold: int = Field(default=2, ge=1)

    @classmethod
    def build(cls, **values: Any) -> "AgentThresholds":
        """Validate thresholds, raising ConfigurationError instead of ValidationError."""
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid agent thresholds {values}: {e}") from e
