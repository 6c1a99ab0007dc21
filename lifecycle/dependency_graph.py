"""
Dependency awareness for retirement safety.

Maintains provider -> dependents edges ("dependent depends on provider") and
decides whether a provider can be retired without stranding its dependents.
A single lock guards every read and write so agents may evaluate in
parallel worker threads.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Set

from shared.state_schema import ConfigurationError, Service

logger = logging.getLogger(__name__)

CRITICAL_THRESHOLD = 2

Notifier = Callable[[str, str], None]


@dataclass
class DependencyStats:
    services: int
    total_dependencies: int
    critical_services: int

    def __str__(self) -> str:
        return (
            f"Dependency Stats - Services: {self.services}, Total Dependencies: "
            f"{self.total_dependencies}, Critical Services: {self.critical_services}"
        )


class DependencyGraph:
    def __init__(self, critical_threshold: int = CRITICAL_THRESHOLD, notifier: Optional[Notifier] = None):
        if critical_threshold < 1:
            raise ConfigurationError(f"Critical threshold must be >= 1, got {critical_threshold}")
        self.critical_threshold = critical_threshold
        self._notifier = notifier
        self._dependents: Dict[str, Set[str]] = {}
        self._lock = threading.RLock()

    def register_dependency(self, dependent: str, provider: str) -> None:
        with self._lock:
            self._dependents.setdefault(provider, set()).add(dependent)
        logger.debug(f"Registered dependency: {dependent} depends on {provider}")

    def unregister_dependency(self, dependent: str, provider: str) -> None:
        with self._lock:
            deps = self._dependents.get(provider)
            if deps is not None:
                deps.discard(dependent)
        logger.debug(f"Unregistered dependency: {dependent} no longer depends on {provider}")

    def dependents(self, service_id: str) -> Set[str]:
        with self._lock:
            return set(self._dependents.get(service_id, ()))

    def providers_of(self, service_id: str) -> Set[str]:
        with self._lock:
            return {p for p, deps in self._dependents.items() if service_id in deps}

    def can_safely_retire(self, service: Service, critical_threshold: Optional[int] = None) -> bool:
        """
        Check whether a service can be retired.

        Writes the live dependent count back onto the service. A service with
        a few non-critical dependents may retire once they are notified.
        """
        threshold = critical_threshold or self.critical_threshold
        with self._lock:
            dependents = set(self._dependents.get(service.service_id, ()))
            service.dependent_count = len(dependents)

        if not dependents:
            logger.info(f"Service {service.service_id} has no dependents - safe to retire")
            return True

        if len(dependents) >= threshold:
            logger.warning(
                f"Service {service.service_id} has {len(dependents)} critical dependents - cannot retire safely"
            )
            return False

        logger.info(
            f"Service {service.service_id} has {len(dependents)} non-critical dependents - "
            f"retirement possible with notification"
        )
        self._notify_dependents(service.service_id, sorted(dependents))
        return True

    def _notify_dependents(self, service_id: str, dependents: Iterable[str]) -> None:
        dependents = list(dependents)
        logger.info(f"Notifying {len(dependents)} dependent services of {service_id} retirement")
        for dependent in dependents:
            logger.debug(f"Notifying dependent service: {dependent}")
            if self._notifier is not None:
                self._notifier(dependent, service_id)

    def clear_dependencies_for_retired_service(self, service_id: str) -> None:
        with self._lock:
            self._dependents.pop(service_id, None)
            for deps in self._dependents.values():
                deps.discard(service_id)
        logger.info(f"Cleared all dependencies for retired service {service_id}")

    def stats(self) -> DependencyStats:
        with self._lock:
            sizes = [len(deps) for deps in self._dependents.values()]
        return DependencyStats(
            services=len(sizes),
            total_dependencies=sum(sizes),
            critical_services=sum(1 for s in sizes if s >= self.critical_threshold),
        )

    def __contains__(self, service_id: str) -> bool:
        with self._lock:
            if service_id in self._dependents:
                return True
            return any(service_id in deps for deps in self._dependents.values())
