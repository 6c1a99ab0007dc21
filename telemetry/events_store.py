"""
Event sinks for retirement decisions.

The orchestrator hands every RetirementEvent to a sink in evaluation order.
Sinks only buffer or append, so recording never blocks the decision loop
on anything slower than a local file write.
"""
from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Iterable, Iterator, List, Protocol, Union

from shared.state_schema import Decision, RetirementEvent

logger = logging.getLogger(__name__)

EVENTS = Path("retirement_logs/events.jsonl")


class EventSink(Protocol):
    def record_event(self, event: RetirementEvent) -> None: ...


class InMemoryEventStore:
    """Buffers events in memory and answers the aggregate queries reports need."""

    def __init__(self):
        self._events: List[RetirementEvent] = []
        self._lock = threading.Lock()

    def record_event(self, event: RetirementEvent) -> None:
        with self._lock:
            self._events.append(event)
        logger.info(
            f"Recorded event: {event.service_id} {event.decision.value} "
            f"utility={event.utility_score:.3f} deps={event.dependency_count} cpu_freed={event.cpu_freed:.2f}"
        )

    @property
    def events(self) -> List[RetirementEvent]:
        with self._lock:
            return list(self._events)

    def decision_count(self, decision: Union[Decision, str]) -> int:
        decision = Decision(decision)
        return sum(1 for e in self.events if e.decision == decision)

    def total_cpu_freed(self) -> float:
        return sum(e.cpu_freed for e in self.events if e.decision == Decision.RETIRE)

    def events_for(self, service_id: str) -> List[RetirementEvent]:
        return [e for e in self.events if e.service_id == service_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


class JsonlEventStore:
    """Appends one JSON object per event to a .jsonl file."""

    def __init__(self, path: Union[str, Path] = EVENTS):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def record_event(self, event: RetirementEvent) -> None:
        line = json.dumps(event.to_dict())
        with self._lock:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")


class FanOutEventSink:
    """Forwards each event to several sinks, in order."""

    def __init__(self, sinks: Iterable[EventSink]):
        self.sinks = list(sinks)

    def record_event(self, event: RetirementEvent) -> None:
        for sink in self.sinks:
            sink.record_event(event)


def iter_events(path: Union[str, Path] = EVENTS, last_n: int = 20000) -> Iterator[RetirementEvent]:
    """
    Iterate over the last N events of a JSONL event log.

    Lines that fail to parse or validate are skipped.
    """
    p = Path(path)
    if not p.exists():
        return

    lines = p.read_text(encoding="utf-8").splitlines()[-last_n:]
    for ln in lines:
        if not ln.strip():
            continue
        try:
            yield RetirementEvent.model_validate_json(ln)
        except ValueError as e:
            logger.debug(f"Skipping malformed event line: {e}")
