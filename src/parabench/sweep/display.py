"""Terminal display formatting for sweep results.

Produces aligned tables, an ASCII duration graph and a recommendation
summary from an already-computed analysis.  No computation beyond the
derived metrics in :mod:`parabench.sweep.metrics` happens here.
"""

from __future__ import annotations

from parabench.formatting import (
    bar_unit,
    format_bar_chart,
    format_ms,
    format_percentage,
    format_ratio,
    format_section_header,
    format_table,
)
from parabench.sweep.metrics import SweepReport, baseline, build_report, speedup
from parabench.sweep.results import Measurement, RunMeta, Sample, StatisticalAnalysis
from parabench.sweep.system import format_system_profile

FASTEST_MARK = "🏆"
SLOWEST_MARK = "🐌"
CONSISTENT_MARK = "🎯"


# ---------------------------------------------------------------------------
# Full analysis
# ---------------------------------------------------------------------------


def format_analysis(
    analysis: StatisticalAnalysis,
    meta: RunMeta | None = None,
    *,
    show_system: bool = False,
) -> str:
    """Format a statistical analysis for display.

    Shows the configuration, duration statistics per level, speedups vs
    sequential, failures, a duration graph and the recommendation.

    Args:
        analysis: The analysis to render.
        meta: Run metadata, if available, for the header.
        show_system: Include the system profile from *meta*.

    Returns:
        Formatted string for terminal output.
    """
    report = build_report(analysis)
    lines: list[str] = []

    title = (meta.name or meta.run_id) if meta else "Concurrency sweep"
    lines.append(title)
    lines.append("─" * len(title))
    lines.append(f"Test subject size:  {analysis.test_subject_size}")
    lines.append(f"Workload:           {analysis.workload_config}")
    lines.append(f"Sample size:        {analysis.sample_size}")
    lines.append(f"Max concurrency:    {analysis.max_concurrency}")
    if meta is not None:
        if meta.samples_aborted:
            lines.append(
                f"Samples:            {meta.samples_completed} completed, "
                f"{meta.samples_aborted} aborted"
            )
        if meta.start_time and meta.end_time:
            lines.append(f"Time:               {meta.start_time} → {meta.end_time}")
    lines.append(f"Generated:          {analysis.generated_at}")

    if show_system and meta is not None:
        lines.append("")
        lines.append(format_system_profile(meta.system))

    lines.append("")
    lines.append(format_section_header("Duration statistics (ms)"))
    lines.append(format_duration_table(report))

    lines.append("")
    lines.append(format_section_header("Speedup vs sequential"))
    lines.append(format_speedup_table(report))

    if report.failing_levels:
        lines.append("")
        lines.append(format_section_header("Test failures"))
        lines.append(format_failure_table(report))

    lines.append("")
    lines.append(format_section_header("Mean duration graph"))
    lines.append(format_duration_graph(report))

    lines.append("")
    lines.append(format_section_header("Summary"))
    lines.append(format_summary(report))

    return "\n".join(lines)


def format_duration_table(report: SweepReport) -> str:
    """Per-level duration distribution table."""
    rows: list[list[str]] = []
    for s in report.levels:
        ds = s.level.duration_stats
        rows.append(
            [
                str(s.concurrency),
                str(s.level.sample_count),
                f"{ds.mean:.0f}",
                f"{ds.median:.0f}",
                f"{ds.std_dev:.1f}",
                f"{ds.min:.0f}",
                f"{ds.max:.0f}",
                f"{ds.p25:.0f}",
                f"{ds.p75:.0f}",
                f"{ds.p95:.0f}",
                f"{ds.p99:.0f}",
                format_percentage(s.cv_pct),
                _markers(report, s.concurrency),
            ]
        )
    headers = [
        "Conc.", "n", "Mean", "Median", "StdDev", "Min", "Max",
        "P25", "P75", "P95", "P99", "CV", "",
    ]  # fmt: skip
    return format_table(headers, rows, alignments=["r"] * 12 + ["l"])


def format_speedup_table(report: SweepReport) -> str:
    """Per-level speedups for mean, median, best (min) and worst (max)."""
    rows = [
        [
            str(s.concurrency),
            format_ratio(s.speedup_mean),
            format_ratio(s.speedup_median),
            format_ratio(s.speedup_best),
            format_ratio(s.speedup_worst),
        ]
        for s in report.levels
    ]
    return format_table(
        ["Conc.", "Mean", "Median", "Best", "Worst"],
        rows,
        alignments=["r"] * 5,
    )


def format_failure_table(report: SweepReport) -> str:
    """Failed-test counts for levels where any sample had failures."""
    rows = [
        [
            str(s.concurrency),
            f"{s.level.failed_stats.mean:.1f}",
            f"{s.level.failed_stats.max:.0f}",
            f"{s.level.passed_stats.mean:.1f}",
        ]
        for s in report.levels
        if s.has_failures
    ]
    return format_table(
        ["Conc.", "Mean failed", "Max failed", "Mean passed"],
        rows,
        alignments=["r"] * 4,
    )


def format_duration_graph(report: SweepReport, *, max_bar_width: int = 50) -> str:
    """ASCII bar graph of mean duration per level."""
    slowest = report.slowest.duration_stats.mean
    bars = [
        (
            f"C{s.concurrency:>2d}",
            s.level.duration_stats.mean,
            f"{s.level.duration_stats.mean:.0f}ms",
        )
        for s in report.levels
    ]
    unit = bar_unit(slowest, max_bar_width)
    return f"(each ▪ ≈ {unit:.0f}ms)\n" + format_bar_chart(bars, max_bar_width=max_bar_width)


def format_summary(report: SweepReport) -> str:
    """Fastest, slowest, most consistent, best speedup and sweet spot."""
    fastest = report.fastest
    slowest = report.slowest
    steady = report.most_consistent
    lines = [
        f"  Fastest:          concurrency {fastest.concurrency} "
        f"at {format_ms(fastest.duration_stats.mean)} mean",
        f"  Slowest:          concurrency {slowest.concurrency} "
        f"at {format_ms(slowest.duration_stats.mean)} mean",
        f"  Most consistent:  concurrency {steady.concurrency} "
        f"(stddev {steady.duration_stats.std_dev:.1f}ms, "
        f"CV {format_percentage(steady.duration_stats.cv_pct)})",
        f"  Best speedup:     {format_ratio(report.best_speedup)} vs sequential",
        f"  Sweet spot:       concurrency {report.recommended_concurrency} "
        f"({report.sweet_spot_pct:.0f}% of max)",
    ]
    if report.failing_levels:
        lines.append(
            "  Failures at:      concurrency "
            + ", ".join(str(c) for c in report.failing_levels)
        )
    return "\n".join(lines)


def _markers(report: SweepReport, concurrency: int) -> str:
    marks = ""
    if concurrency == report.fastest.concurrency:
        marks += FASTEST_MARK
    if concurrency == report.slowest.concurrency:
        marks += SLOWEST_MARK
    if concurrency == report.most_consistent.concurrency:
        marks += CONSISTENT_MARK
    return marks


# ---------------------------------------------------------------------------
# Single sample
# ---------------------------------------------------------------------------


def format_sample(sample: Sample) -> str:
    """Format one sweep: duration, speedup vs sequential and status per level."""
    if not sample.measurements:
        return "Sample has no measurements."

    ms = sample.measurements
    fastest = _first_extreme(ms, lowest=True)
    slowest = _first_extreme(ms, lowest=False)
    sequential = ms[0].duration_ms

    rows: list[list[str]] = []
    for m in ms:
        ratio = sequential / m.duration_ms if m.duration_ms else float("inf")
        status = "❌ FAILED" if m.degraded else "✅"
        marks = (FASTEST_MARK if m is fastest else "") + (SLOWEST_MARK if m is slowest else "")
        rows.append(
            [
                str(m.concurrency),
                f"{m.duration_ms:.0f}",
                format_ratio(ratio),
                f"{m.passed}/{m.total_tests}",
                f"{status} {marks}".rstrip(),
            ]
        )

    header = f"Sample {sample.index}" if sample.index else "Sample"
    if not sample.complete:
        header += " (incomplete)"
    lines = [
        header,
        format_table(
            ["Concurrency", "Duration (ms)", "Speedup", "Passed", "Status"],
            rows,
            alignments=["r", "r", "r", "r", "l"],
        ),
        "",
        f"  Fastest: concurrency {fastest.concurrency} at {fastest.duration_ms:.0f}ms",
        f"  Slowest: concurrency {slowest.concurrency} at {slowest.duration_ms:.0f}ms",
    ]
    return "\n".join(lines)


def _first_extreme(measurements: list[Measurement], *, lowest: bool) -> Measurement:
    best = measurements[0]
    for m in measurements[1:]:
        if (m.duration_ms < best.duration_ms) if lowest else (m.duration_ms > best.duration_ms):
            best = m
    return best


def format_speedup(analysis: StatisticalAnalysis, concurrency: int, stat: str = "mean") -> str:
    """Format one level's speedup vs sequential, e.g. ``'2.31x'``."""
    level = analysis.level(concurrency)
    if level is None:
        return "N/A"
    return format_ratio(speedup(baseline(analysis), level, stat))
