import os
import logging
from pathlib import Path
from typing import Dict, Any, Tuple

import yaml

from shared.state_schema import AgentThresholds, ConfigurationError

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {os.getenv(name)!r}") from e


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {os.getenv(name)!r}") from e


class Config:
    # Simulation size
    NUM_SERVICES = _env_int("RETIREMENT_NUM_SERVICES", 12)
    CYCLES = _env_int("RETIREMENT_CYCLES", 40)
    SEED = _env_int("RETIREMENT_SEED", 42)
    MAX_WORKERS = _env_int("RETIREMENT_MAX_WORKERS", 1)

    # Decision components
    HISTORY_WINDOW = _env_int("RETIREMENT_HISTORY_WINDOW", 20)
    SHUTDOWN_DELAY = _env_float("RETIREMENT_SHUTDOWN_DELAY", 0.05)  # seconds
    DEPENDENCY_PROBABILITY = 0.4
    DEPENDENCY_CRITICAL_THRESHOLD = _env_int("RETIREMENT_DEPENDENCY_CRITICAL_THRESHOLD", 2)

    # Per-agent threshold ranges for synthetic fleets
    UTILITY_THRESHOLD_RANGE: Tuple[float, float] = (0.25, 0.45)
    RETENTION_WINDOW_RANGE: Tuple[int, int] = (5, 10)

    # Output
    LOG_DIR = os.getenv("RETIREMENT_LOG_DIR", "./retirement_logs")
    LOG_LEVEL = os.getenv("RETIREMENT_LOG_LEVEL", "INFO")

    @classmethod
    def default_thresholds(cls) -> AgentThresholds:
        return AgentThresholds.build(dependency_critical_threshold=cls.DEPENDENCY_CRITICAL_THRESHOLD)


def _mapping(value: Any, where: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{where} must be a mapping, got {type(value).__name__}")
    return value


def load_thresholds(path: str) -> Tuple[AgentThresholds, Dict[str, AgentThresholds]]:
    """
    Load agent thresholds from YAML.

        defaults:
          utility_threshold: 0.3
          retention_window: 5
          dependency_critical_threshold: 2
        services:
          S3:
            retention_window: 8

    Returns (defaults, per-service overrides). Per-service entries inherit
    every value they do not set from the defaults block.
    """
    p = Path(path)
    if not p.exists():
        raise ConfigurationError(f"Threshold config not found: {p}")

    try:
        raw = yaml.safe_load(p.read_text())
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Threshold config {p} is not valid YAML: {e}") from e
    data = _mapping(raw, "Threshold config")

    base = Config.default_thresholds().model_dump()
    base.update(_mapping(data.get("defaults"), "defaults"))
    defaults = AgentThresholds.build(**base)

    overrides = {}
    for service_id, values in _mapping(data.get("services"), "services").items():
        merged = defaults.model_dump()
        merged.update(_mapping(values, f"services.{service_id}"))
        overrides[str(service_id)] = AgentThresholds.build(**merged)

    logger.info(f"Loaded thresholds from {p}: defaults={defaults.model_dump()}, {len(overrides)} overrides")
    return defaults, overrides
