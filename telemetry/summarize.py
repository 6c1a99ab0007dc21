"""
Evidence summaries and CSV export for retirement decisions.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Union

import pandas as pd

from shared.state_schema import Decision, RetirementEvent

logger = logging.getLogger(__name__)

CSV_COLUMNS = {
    "timestamp": "Time",
    "service_id": "ServiceID",
    "utility_score": "UtilityScore",
    "dependency_count": "DependencyCount",
    "decision": "RetirementDecision",
    "cpu_freed": "CPU_Freed",
    "reason": "Reason",
}

FRAME_COLUMNS = [
    "timestamp", "service_id", "utility_score", "predicted_utility",
    "dependency_count", "decision", "cpu_freed", "reason", "low_utility_streak",
]


def events_frame(events: Iterable[RetirementEvent]) -> pd.DataFrame:
    rows = [e.model_dump() for e in events]
    if not rows:
        return pd.DataFrame(columns=FRAME_COLUMNS)
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    df["decision"] = df["decision"].map(lambda d: Decision(d).value)
    return df


def summarize(events: Iterable[RetirementEvent], top_n: int = 5) -> Dict[str, Any]:
    df = events_frame(events)
    retired = df[df["decision"] == Decision.RETIRE.value]
    total = len(df)

    top_dependents = (
        df.groupby("service_id")["dependency_count"].max().sort_values(ascending=False).head(top_n)
        if total else pd.Series(dtype=int)
    )

    return {
        "total_events": total,
        "total_retirements": len(retired),
        "total_retentions": int((df["decision"] == Decision.RETAIN.value).sum()),
        "cpu_freed": round(float(retired["cpu_freed"].sum()), 4),
        "avg_utility_retired": round(float(retired["utility_score"].mean()), 4) if len(retired) else 0.0,
        "total_dependencies_managed": int(df["dependency_count"].sum()) if total else 0,
        "retirement_rate": round(len(retired) * 100.0 / total, 2) if total else 0.0,
        "retirements_by_reason": retired["reason"].value_counts().to_dict(),
        "top_dependent_services": {k: int(v) for k, v in top_dependents.items()},
    }


def format_summary_report(summary: Dict[str, Any]) -> str:
    lines = [
        "",
        "================== SERVICE RETIREMENT SUMMARY ==================",
        f"Total Events Logged: {summary['total_events']}",
        f"Total Retirements: {summary['total_retirements']}",
        f"Total Retentions: {summary['total_retentions']}",
        f"CPU Resources Freed: {summary['cpu_freed']:.2f} units",
        f"Average Utility Score (Retired Services): {summary['avg_utility_retired']:.3f}",
        f"Total Dependencies Managed: {summary['total_dependencies_managed']}",
        f"Retirement Rate: {summary['retirement_rate']:.1f}%",
    ]
    if summary["retirements_by_reason"]:
        lines.append("Retirements by Reason:")
        lines.extend(f"  - {reason}: {count}" for reason, count in summary["retirements_by_reason"].items())
    if summary["top_dependent_services"]:
        lines.append("Top Dependent Services:")
        lines.extend(f"  - {sid}: {n} dependents" for sid, n in summary["top_dependent_services"].items())
    lines.append("================================================================")
    return "\n".join(lines)


def export_csv(events: Iterable[RetirementEvent], path: Union[str, Path]) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)

    df = events_frame(events)[list(CSV_COLUMNS)].rename(columns=CSV_COLUMNS)
    if len(df):
        df["Time"] = pd.to_datetime(df["Time"]).dt.strftime("%Y-%m-%d %H:%M:%S")
    df.to_csv(out, index=False, float_format="%.2f")

    logger.info(f"Exported {len(df)} events to CSV: {out}")
    return out
