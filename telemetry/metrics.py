from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

# Every series is labelled by run_id, so each distinct run id adds label
# children for the life of the process.
REGISTRY = CollectorRegistry()

RETIREMENT_DECISIONS = Counter("retirement_decisions_total", "Retirement agent decisions", ["run_id", "decision"], registry=REGISTRY)
RETIREMENT_CPU_FREED = Counter("retirement_cpu_freed_total", "Estimated CPU units freed by retirements", ["run_id"], registry=REGISTRY)
RETIREMENT_BLOCKED = Counter("retirement_blocked_total", "Retirements blocked by critical dependencies", ["run_id"], registry=REGISTRY)
SERVICE_UTILITY = Histogram("service_utility", "Utility score per evaluation", ["run_id"], buckets=(0.05, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.8, 1.0), registry=REGISTRY)

FLEET_ACTIVE_SERVICES = Gauge("fleet_active_services", "Services still running", ["run_id"], registry=REGISTRY)
FLEET_RETIRED_SERVICES = Gauge("fleet_retired_services", "Services retired so far", ["run_id"], registry=REGISTRY)
FLEET_CYCLE = Gauge("fleet_cycle", "Last completed simulation cycle", ["run_id"], registry=REGISTRY)
