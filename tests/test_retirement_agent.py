"""Tests for the per-service retirement agent."""

import pytest

from lifecycle.retirement_agent import (
    CRITICAL_DEPENDENCIES_REASON, INSUFFICIENT_WINDOW_REASON, RetirementAgent,
)
from shared.state_schema import AgentState, AgentThresholds, ConfigurationError, Decision, Service


# ---------------------------------------------------------------
# Retirement lifecycle
# ---------------------------------------------------------------
class TestRetirement:
    def test_retires_once_streak_covers_window(self, make_agent, low_utility_service):
        agent = make_agent(low_utility_service)

        first = agent.evaluate_retirement()
        second = agent.evaluate_retirement()
        assert first.decision == Decision.RETAIN
        assert second.decision == Decision.RETAIN
        assert second.reason == INSUFFICIENT_WINDOW_REASON
        assert agent.low_utility_streak == 2

        third = agent.evaluate_retirement()
        assert third.decision == Decision.RETIRE
        assert third.cpu_freed == pytest.approx(19.0)
        assert third.low_utility_streak == 3
        assert third.reason == "Low utility sustained for 3 cycles with no critical dependencies"
        assert low_utility_service.retired
        assert low_utility_service.retired_at is not None
        assert agent.state == AgentState.RETIRED

    def test_retired_agent_is_noop(self, make_agent, low_utility_service):
        agent = make_agent(low_utility_service, retention_window=1)
        assert agent.evaluate_retirement().decision == Decision.RETIRE
        retired_at = low_utility_service.retired_at

        assert agent.evaluate_retirement() is None
        assert low_utility_service.retired_at == retired_at

    def test_retain_events_free_no_cpu(self, make_agent, low_utility_service):
        agent = make_agent(low_utility_service)
        event = agent.evaluate_retirement()
        assert event.cpu_freed == 0.0
        assert event.utility_score == pytest.approx(0.039)
        assert event.predicted_utility == pytest.approx(0.039)

    def test_high_utility_resets_streak(self, make_agent, low_utility_service):
        agent = make_agent(low_utility_service)
        agent.evaluate_retirement()
        agent.evaluate_retirement()

        low_utility_service.request_count = 900
        low_utility_service.sla_contribution = 0.9
        agent.evaluate_retirement()
        assert agent.low_utility_streak == 0

        low_utility_service.request_count = 10
        low_utility_service.sla_contribution = 0.1
        for _ in range(2):
            assert agent.evaluate_retirement().decision == Decision.RETAIN
        assert agent.evaluate_retirement().decision == Decision.RETIRE

    def test_utility_at_threshold_is_not_low(self, make_agent, scorer, low_utility_service):
        at_threshold = scorer.score(low_utility_service)
        agent = make_agent(low_utility_service, utility_threshold=at_threshold, retention_window=1)

        for _ in range(3):
            event = agent.evaluate_retirement()
            assert event.decision == Decision.RETAIN
            assert agent.low_utility_streak == 0
        assert not low_utility_service.retired

    def test_utility_just_below_threshold_counts(self, make_agent, scorer, low_utility_service):
        threshold = scorer.score(low_utility_service) + 1e-9
        agent = make_agent(low_utility_service, utility_threshold=threshold, retention_window=2)

        agent.evaluate_retirement()
        assert agent.low_utility_streak == 1

    def test_prediction_at_threshold_resets_streak(self, make_agent, learner, low_utility_service, monkeypatch):
        agent = make_agent(low_utility_service, utility_threshold=0.3, retention_window=5)
        agent.evaluate_retirement()
        assert agent.low_utility_streak == 1

        monkeypatch.setattr(learner, "predict_future_utility", lambda service, current: 0.3)
        agent.evaluate_retirement()
        assert agent.low_utility_streak == 0

    def test_high_prediction_blocks_streak(self, make_agent, learner, low_utility_service):
        for _ in range(5):
            learner.record_observation("S1", 0.9)
        agent = make_agent(low_utility_service, retention_window=1)
        event = agent.evaluate_retirement()
        assert event.decision == Decision.RETAIN
        assert agent.low_utility_streak == 0

    def test_last_event_tracks_latest(self, make_agent, low_utility_service):
        agent = make_agent(low_utility_service)
        assert agent.last_event is None
        event = agent.evaluate_retirement()
        assert agent.last_event is event


# ---------------------------------------------------------------
# Dependency safety
# ---------------------------------------------------------------
class TestDependencySafety:
    def test_critical_dependents_keep_service_active(self, make_agent, graph, low_utility_service):
        for dep in ("A", "B", "C"):
            graph.register_dependency(dep, "S1")
        agent = make_agent(low_utility_service)

        events = [agent.evaluate_retirement() for _ in range(10)]

        assert all(e.decision == Decision.RETAIN for e in events)
        assert events[-1].reason == CRITICAL_DEPENDENCIES_REASON
        assert events[-1].dependency_count == 3
        assert agent.low_utility_streak == 10
        assert not low_utility_service.retired

    def test_retires_after_dependents_clear(self, make_agent, graph, low_utility_service):
        graph.register_dependency("A", "S1")
        graph.register_dependency("B", "S1")
        agent = make_agent(low_utility_service)
        for _ in range(3):
            agent.evaluate_retirement()

        graph.unregister_dependency("A", "S1")
        event = agent.evaluate_retirement()
        assert event.decision == Decision.RETIRE
        assert event.dependency_count == 1

    def test_agent_threshold_overrides_graph_default(self, make_agent, graph, low_utility_service):
        graph.register_dependency("A", "S1")
        agent = make_agent(low_utility_service, retention_window=1, dependency_critical_threshold=1)
        assert agent.evaluate_retirement().reason == CRITICAL_DEPENDENCIES_REASON


# ---------------------------------------------------------------
# Shutdown
# ---------------------------------------------------------------
class TestShutdown:
    def test_waits_for_shutdown_delay(self, make_agent, low_utility_service):
        waits = []
        agent = make_agent(low_utility_service, retention_window=1, shutdown_delay=0.5, waiter=waits.append)
        agent.evaluate_retirement()
        assert waits == [0.5]

    def test_interrupted_shutdown_still_retires(self, make_agent, low_utility_service):
        def interrupt(_delay):
            raise InterruptedError()

        agent = make_agent(low_utility_service, retention_window=1, shutdown_delay=0.5, waiter=interrupt)
        event = agent.evaluate_retirement()
        assert event.decision == Decision.RETIRE
        assert low_utility_service.retired

    def test_keyboard_interrupt_propagates_after_retiring(self, make_agent, low_utility_service):
        def cancel(_delay):
            raise KeyboardInterrupt()

        agent = make_agent(low_utility_service, retention_window=1, shutdown_delay=0.5, waiter=cancel)
        with pytest.raises(KeyboardInterrupt):
            agent.evaluate_retirement()
        assert low_utility_service.retired
        assert agent.evaluate_retirement() is None

    def test_negative_delay_rejected(self, scorer, learner, graph, low_utility_service):
        with pytest.raises(ConfigurationError):
            RetirementAgent(low_utility_service, scorer, learner, graph, shutdown_delay=-1)


# ---------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------
class TestThresholds:
    @pytest.mark.parametrize("values", [
        {"retention_window": 0},
        {"retention_window": -3},
        {"utility_threshold": 1.5},
        {"utility_threshold": -0.1},
        {"dependency_critical_threshold": 0},
        {"retention_windw": 4},
    ])
    def test_invalid_thresholds_rejected(self, values):
        with pytest.raises(ConfigurationError):
            AgentThresholds.build(**values)

    def test_defaults(self, scorer, learner, graph):
        agent = RetirementAgent(Service("S1", "Service-1"), scorer, learner, graph)
        assert agent.utility_threshold == 0.3
        assert agent.retention_window == 5
