"""Tests for workload metric sources and service snapshots."""

import pandas as pd
import pytest

from orchestrator.fleet import SAMPLE_SERVICES, load_service_snapshot, sample_services
from orchestrator.workload import ReplayWorkload, SimulatedWorkload, StaticWorkload
from shared.state_schema import ConfigurationError, Service, WorkloadSample


@pytest.fixture
def service():
    return Service("S1", "Service-1")


# ---------------------------------------------------------------
# Simulated workload
# ---------------------------------------------------------------
class TestSimulatedWorkload:
    def test_same_seed_same_samples(self, service):
        a = SimulatedWorkload(seed=11)
        b = SimulatedWorkload(seed=11)
        for cycle in range(10):
            assert a.sample(service, cycle) == b.sample(service, cycle)

    def test_samples_are_valid(self, service):
        workload = SimulatedWorkload(seed=3)
        for cycle in range(100):
            sample = workload.sample(service, cycle)
            assert 0 <= sample.request_count < 1200
            assert 0.0 <= sample.utilization_rate <= 1.0
            assert -0.05 <= sample.sla_contribution_delta <= 0.05

    def test_requests_decay_with_age(self, service):
        workload = SimulatedWorkload(seed=5)
        early = sum(workload.sample(service, c).request_count for c in range(10))
        for c in range(10, 80):
            workload.sample(service, c)
        late = sum(workload.sample(service, c).request_count for c in range(80, 90))
        assert late < early

    def test_age_scale_flattens_decay(self, service):
        fast = SimulatedWorkload(seed=5)
        slow = SimulatedWorkload(seed=5, age_scale=100.0)
        for c in range(40):
            fast_sample = fast.sample(service, c)
            slow_sample = slow.sample(service, c)
        assert slow_sample.request_count > fast_sample.request_count

    def test_non_positive_age_scale_rejected(self):
        with pytest.raises(ConfigurationError):
            SimulatedWorkload(age_scale=0)


# ---------------------------------------------------------------
# Static and replayed workload
# ---------------------------------------------------------------
class TestStaticWorkload:
    def test_known_and_unknown_services(self, service):
        sample = WorkloadSample(request_count=5, utilization_rate=0.1)
        workload = StaticWorkload({"S1": sample})
        assert workload.sample(service, 0) == sample
        assert workload.sample(Service("S2", "Service-2"), 0) is None


class TestReplayWorkload:
    @pytest.fixture
    def frame(self):
        return pd.DataFrame([
            {"cycle": 0, "service_id": "S1", "request_count": 100, "utilization_rate": 0.1, "sla_contribution_delta": 0.02},
            {"cycle": 1, "service_id": "S1", "request_count": 50, "utilization_rate": 0.05, "sla_contribution_delta": None},
            {"cycle": 2, "service_id": "S1", "request_count": 50, "utilization_rate": 1.7, "sla_contribution_delta": 0.0},
        ])

    def test_replays_rows_by_cycle(self, frame, service):
        workload = ReplayWorkload(frame)
        assert len(workload) == 3
        sample = workload.sample(service, 0)
        assert sample.request_count == 100
        assert sample.sla_contribution_delta == pytest.approx(0.02)

    def test_missing_delta_defaults_to_zero(self, frame, service):
        assert ReplayWorkload(frame).sample(service, 1).sla_contribution_delta == 0.0

    def test_invalid_row_yields_none(self, frame, service):
        assert ReplayWorkload(frame).sample(service, 2) is None

    def test_missing_cycle_yields_none(self, frame, service):
        assert ReplayWorkload(frame).sample(service, 9) is None

    def test_required_columns(self):
        with pytest.raises(ValueError):
            ReplayWorkload(pd.DataFrame({"cycle": [0], "service_id": ["S1"]}))

    def test_from_csv(self, frame, service, tmp_path):
        path = tmp_path / "workload.csv"
        frame.to_csv(path, index=False)
        workload = ReplayWorkload.from_csv(path)
        assert workload.sample(service, 0).request_count == 100


# ---------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------
class TestSnapshots:
    def test_load_snapshot(self, tmp_path):
        path = tmp_path / "services.csv"
        path.write_text(
            "service_id,request_count,sla_score,dependents\n"
            "api-gateway,1250,0.995,8\n"
            "broken,abc,0.5,1\n"
            "legacy-report-gen,45,0.60,0\n"
        )
        services = load_service_snapshot(path)

        assert [s.service_id for s in services] == ["api-gateway", "legacy-report-gen"]
        assert services[0].utilization_rate == 1.0
        assert services[1].utilization_rate == pytest.approx(0.045)
        assert services[1].sla_contribution == pytest.approx(0.6)

    def test_missing_file_yields_empty_list(self, tmp_path):
        assert load_service_snapshot(tmp_path / "missing.csv") == []

    def test_missing_columns_rejected(self, tmp_path):
        path = tmp_path / "services.csv"
        path.write_text("service_id,request_count\nS1,10\n")
        with pytest.raises(ValueError):
            load_service_snapshot(path)

    def test_sample_services(self):
        services = sample_services()
        assert len(services) == len(SAMPLE_SERVICES)
        assert all(0.0 <= s.sla_contribution <= 1.0 for s in services)
