"""Export sweep results to CSV, Markdown and JSON formats.

CSV format: one row per sample per concurrency level (long format for
pandas/R).  This is the raw data, every single measurement.

CSV summary: one row per concurrency level with the aggregated duration
distribution and speedups.

Markdown format: a summary table suitable for reports, README files,
and GitHub issues.

JSON format: the analysis plus derived metrics, for other tools.
"""

from __future__ import annotations

import csv
import io
import json
import math
from typing import Any

from parabench.sweep.metrics import build_report
from parabench.sweep.results import RunMeta, Sample, StatisticalAnalysis


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------


def export_csv(samples: list[Sample]) -> str:
    """Export raw measurements as CSV (long format).

    Columns:
        sample, concurrency, duration_ms, passed, failed, total_tests,
        complete
    """
    output = io.StringIO()
    writer = csv.writer(output)

    writer.writerow(
        [
            "sample",
            "concurrency",
            "duration_ms",
            "passed",
            "failed",
            "total_tests",
            "complete",
        ]
    )

    for position, sample in enumerate(samples, 1):
        index = sample.index or position
        for m in sample.measurements:
            writer.writerow(
                [
                    index,
                    m.concurrency,
                    f"{m.duration_ms:.3f}",
                    m.passed,
                    m.failed,
                    m.total_tests,
                    sample.complete,
                ]
            )

    return output.getvalue()


def export_csv_summary(analysis: StatisticalAnalysis) -> str:
    """Export per-level summary statistics as CSV.

    One row per concurrency level with the duration distribution, CV,
    mean speedup vs sequential and mean failures.
    """
    report = build_report(analysis)
    output = io.StringIO()
    writer = csv.writer(output)

    writer.writerow(
        [
            "concurrency",
            "n",
            "mean_ms",
            "median_ms",
            "stdev_ms",
            "min_ms",
            "max_ms",
            "p25_ms",
            "p75_ms",
            "p95_ms",
            "p99_ms",
            "cv_pct",
            "speedup_mean",
            "speedup_median",
            "failed_mean",
        ]
    )

    for s in report.levels:
        ds = s.level.duration_stats
        writer.writerow(
            [
                s.concurrency,
                s.level.sample_count,
                f"{ds.mean:.3f}",
                f"{ds.median:.3f}",
                f"{ds.std_dev:.3f}",
                f"{ds.min:.3f}",
                f"{ds.max:.3f}",
                f"{ds.p25:.3f}",
                f"{ds.p75:.3f}",
                f"{ds.p95:.3f}",
                f"{ds.p99:.3f}",
                f"{s.cv_pct:.3f}",
                f"{s.speedup_mean:.4f}",
                f"{s.speedup_median:.4f}",
                f"{s.mean_failed:.3f}",
            ]
        )

    return output.getvalue()


# ---------------------------------------------------------------------------
# Markdown export
# ---------------------------------------------------------------------------


def export_markdown(analysis: StatisticalAnalysis, meta: RunMeta | None = None) -> str:
    """Export results as a Markdown report.

    Suitable for GitHub issues, README files, and reports.
    """
    report = build_report(analysis)
    lines: list[str] = []

    title = (meta.name or meta.run_id) if meta else "Concurrency sweep"
    lines.append(f"# {title}")
    lines.append("")

    if meta is not None:
        lines.append("## System")
        lines.append("")
        sys_p = meta.system
        lines.append(f"- **CPU:** {sys_p.cpu_model} ({sys_p.cpu_cores_logical} logical cores)")
        lines.append(f"- **Available parallelism:** {sys_p.available_parallelism}")
        lines.append(f"- **RAM:** {sys_p.ram_total_gb:.1f} GB")
        lines.append(f"- **OS:** {sys_p.os_distro or sys_p.os_name}")
        lines.append("")

    lines.append("## Configuration")
    lines.append("")
    lines.append(f"- **Test subject size:** {analysis.test_subject_size}")
    lines.append(f"- **Workload:** {analysis.workload_config}")
    lines.append(f"- **Samples:** {analysis.sample_size}")
    lines.append(f"- **Concurrency:** 1 to {analysis.max_concurrency}")
    lines.append("")

    lines.append("## Results")
    lines.append("")
    lines.append(
        "| Concurrency | Mean (ms) | Median (ms) | Std dev | P95 | CV | Speedup | Failed |"
    )
    lines.append("|---:|---:|---:|---:|---:|---:|---:|---:|")
    for s in report.levels:
        ds = s.level.duration_stats
        conc = str(s.concurrency)
        if s.concurrency == report.fastest.concurrency:
            conc = f"**{conc}**"
        lines.append(
            f"| {conc} | {ds.mean:.0f} | {ds.median:.0f} | {ds.std_dev:.1f} "
            f"| {ds.p95:.0f} | {_md_pct(s.cv_pct)} | {_md_ratio(s.speedup_mean)} "
            f"| {s.mean_failed:.1f} |"
        )
    lines.append("")

    lines.append("## Summary")
    lines.append("")
    lines.append(
        f"- **Fastest:** concurrency {report.fastest.concurrency} "
        f"({report.fastest.duration_stats.mean:.0f}ms mean)"
    )
    lines.append(
        f"- **Slowest:** concurrency {report.slowest.concurrency} "
        f"({report.slowest.duration_stats.mean:.0f}ms mean)"
    )
    lines.append(f"- **Most consistent:** concurrency {report.most_consistent.concurrency}")
    lines.append(f"- **Best speedup:** {_md_ratio(report.best_speedup)}")
    lines.append(
        f"- **Recommended concurrency:** {report.recommended_concurrency} "
        f"({report.sweet_spot_pct:.0f}% of max)"
    )
    if report.failing_levels:
        failing = ", ".join(str(c) for c in report.failing_levels)
        lines.append(f"- **Test failures at concurrency:** {failing}")
    lines.append("")

    return "\n".join(lines)


def _md_ratio(value: float) -> str:
    return "inf" if math.isinf(value) else f"{value:.2f}x"


def _md_pct(value: float) -> str:
    return "inf" if math.isinf(value) else f"{value:.1f}%"


# ---------------------------------------------------------------------------
# JSON export
# ---------------------------------------------------------------------------


def export_json(analysis: StatisticalAnalysis, meta: RunMeta | None = None) -> str:
    """Export the analysis with derived metrics as a JSON document."""
    report = build_report(analysis)
    data: dict[str, Any] = {
        "analysis": analysis.to_dict(),
        "summary": {
            "baseline_concurrency": report.baseline.concurrency,
            "fastest_concurrency": report.fastest.concurrency,
            "slowest_concurrency": report.slowest.concurrency,
            "most_consistent_concurrency": report.most_consistent.concurrency,
            "recommended_concurrency": report.recommended_concurrency,
            "best_speedup": _json_float(report.best_speedup),
            "failing_levels": report.failing_levels,
            "levels": [
                {
                    "concurrency": s.concurrency,
                    "speedup_mean": _json_float(s.speedup_mean),
                    "speedup_median": _json_float(s.speedup_median),
                    "speedup_best": _json_float(s.speedup_best),
                    "speedup_worst": _json_float(s.speedup_worst),
                    "cv_pct": _json_float(s.cv_pct),
                }
                for s in report.levels
            ],
        },
    }
    if meta is not None:
        data["run"] = meta.to_dict()
    return json.dumps(data, indent=2) + "\n"


def _json_float(value: float) -> float | None:
    # JSON has no inf/NaN.
    if math.isinf(value) or math.isnan(value):
        return None
    return round(value, 6)
