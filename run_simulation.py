#!/usr/bin/env python3
"""
Service Retirement Simulator - Main Runner
==========================================
Runs a fleet of retirement agents against a workload source and reports
what was retired, what was kept and how much capacity was reclaimed.

Usage:
    python run_simulation.py [options]

Examples:
    python run_simulation.py
    python run_simulation.py --services 20 --cycles 60 --seed 7
    python run_simulation.py --sample-data --thresholds thresholds.yaml
    python run_simulation.py --snapshot services.csv --replay workload.csv
    python run_simulation.py --workers 4 --no-export
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from config import Config, load_thresholds
from lifecycle.retirement_agent import CPU_UNITS_PER_SERVICE
from orchestrator.fleet import (
    Fleet, ThresholdRanges, build_fleet, build_simulated_fleet, load_service_snapshot, sample_services,
)
from orchestrator.fleet_orchestrator import FleetOrchestrator, SimulationMetrics
from orchestrator.workload import ReplayWorkload, SimulatedWorkload
from shared.state_schema import ConfigurationError
from telemetry.events_store import FanOutEventSink, InMemoryEventStore, JsonlEventStore
from telemetry.summarize import export_csv, format_summary_report, summarize

logger = logging.getLogger("run_simulation")


def print_header(title: str):
    """Print a formatted header."""
    print("\n" + "=" * 60)
    print(f"  {title}")
    print("=" * 60 + "\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Service Retirement Simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_simulation.py                          Synthetic fleet, default size
  python run_simulation.py --sample-data            Embedded sample services
  python run_simulation.py --snapshot services.csv  Services from a snapshot CSV
  python run_simulation.py --replay workload.csv    Replay recorded workload
        """
    )
    parser.add_argument("--services", type=int, default=Config.NUM_SERVICES,
                        help=f"Number of synthetic services (default: {Config.NUM_SERVICES})")
    parser.add_argument("--cycles", type=int, default=Config.CYCLES,
                        help=f"Simulation cycles to run (default: {Config.CYCLES})")
    parser.add_argument("--seed", type=int, default=Config.SEED,
                        help=f"Random seed (default: {Config.SEED})")
    parser.add_argument("--workers", type=int, default=Config.MAX_WORKERS,
                        help="Evaluate agents on a thread pool of this size (default: sequential)")
    parser.add_argument("--thresholds", metavar="YAML",
                        help="Agent threshold config with 'defaults' and per-service 'services' blocks")
    parser.add_argument("--replay", metavar="CSV",
                        help="Replay per-cycle workload from CSV instead of simulating it")

    source = parser.add_mutually_exclusive_group()
    source.add_argument("--snapshot", metavar="CSV",
                        help="Build the fleet from a service metrics snapshot CSV")
    source.add_argument("--sample-data", action="store_true",
                        help="Build the fleet from the embedded sample services")

    parser.add_argument("--log-dir", default=Config.LOG_DIR,
                        help=f"Directory for event logs and CSV export (default: {Config.LOG_DIR})")
    parser.add_argument("--no-export", action="store_true",
                        help="Do not write JSONL or CSV evidence files")
    return parser


def build_fleet_from_args(args: argparse.Namespace) -> Fleet:
    """Build the fleet from a snapshot, the sample data or the synthetic generator."""
    defaults, overrides = load_thresholds(args.thresholds) if args.thresholds else (None, {})
    options = dict(
        seed=args.seed,
        ranges=ThresholdRanges(
            utility_threshold=Config.UTILITY_THRESHOLD_RANGE,
            retention_window=Config.RETENTION_WINDOW_RANGE,
            dependency_critical_threshold=Config.DEPENDENCY_CRITICAL_THRESHOLD,
        ),
        dependency_probability=Config.DEPENDENCY_PROBABILITY,
        history_window=Config.HISTORY_WINDOW,
        shutdown_delay=Config.SHUTDOWN_DELAY,
        overrides=overrides,
        defaults=defaults,
    )

    if args.snapshot:
        services = load_service_snapshot(args.snapshot)
        if not services:
            raise ConfigurationError(f"No services loaded from snapshot {args.snapshot}")
        return build_fleet(services, **options)
    if args.sample_data:
        return build_fleet(sample_services(), **options)
    return build_simulated_fleet(args.services, **options)


def print_results(metrics: SimulationMetrics, initial_services: int):
    print_header("SIMULATION RESULTS")
    print(f"   {metrics}")

    capacity = initial_services * CPU_UNITS_PER_SERVICE
    efficiency = metrics.cpu_freed / capacity * 100.0 if capacity else 0.0
    sprawl_reduction = metrics.retired_services * 100.0 / initial_services if initial_services else 0.0

    print(f"   Resource Reclamation Efficiency: {efficiency:.2f}%")
    print(f"   Service Sprawl Reduction: {sprawl_reduction:.1f}%")
    print(f"   Active services remaining: {metrics.active_services}/{metrics.total_services}")


def run(args: argparse.Namespace) -> SimulationMetrics:
    run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    fleet = build_fleet_from_args(args)
    services = fleet.services

    if args.replay:
        workload = ReplayWorkload.from_csv(args.replay)
        logger.info(f"Replaying {len(workload)} workload rows from {args.replay}")
    else:
        workload = SimulatedWorkload(seed=args.seed)

    store = InMemoryEventStore()
    log_dir = Path(args.log_dir)
    sinks = [store]
    if not args.no_export:
        sinks.append(JsonlEventStore(log_dir / f"events_{run_id}.jsonl"))

    orchestrator = FleetOrchestrator(
        fleet.learner,
        fleet.graph,
        workload,
        event_sink=FanOutEventSink(sinks),
        max_workers=args.workers,
        run_id=run_id,
    )
    orchestrator.register_all(fleet.agents)

    print_header("SERVICE RETIREMENT SIMULATION")
    print(f"   Services: {len(services)}  Cycles: {args.cycles}  Seed: {args.seed}  Workers: {args.workers}")
    print(f"   Dependency graph: {fleet.graph.stats()}")

    orchestrator.run(args.cycles)

    logger.info(format_summary_report(summarize(store.events)))
    if not args.no_export:
        export_csv(store.events, log_dir / f"retirement_events_{run_id}.csv")

    metrics = orchestrator.metrics()
    print_results(metrics, len(services))
    return metrics


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = build_parser().parse_args(argv)

    try:
        run(args)
    except (ConfigurationError, ValueError) as e:
        logger.error(f"Simulation aborted: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
