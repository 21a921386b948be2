"""Derived metrics over a statistical analysis.

Speedups compare each level against the sequential baseline
(concurrency 1), and the fastest / most consistent levels drive the
recommended concurrency setting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from parabench.logging import get_logger
from parabench.sweep.results import AggregatedLevel, StatisticalAnalysis

log = get_logger("metrics")

SPEEDUP_FIELDS = ("mean", "median", "min", "max")


class MetricsError(ValueError):
    """The analysis has no levels to derive metrics from."""


# ---------------------------------------------------------------------------
# Level selection
# ---------------------------------------------------------------------------


def baseline(analysis: StatisticalAnalysis) -> AggregatedLevel:
    """Return the baseline level: concurrency 1, else the lowest present."""
    if not analysis.aggregated_levels:
        raise MetricsError("Analysis has no aggregated levels.")
    sequential = analysis.level(1)
    if sequential is not None:
        return sequential
    return min(analysis.aggregated_levels, key=lambda lvl: lvl.concurrency)


def fastest_level(analysis: StatisticalAnalysis) -> AggregatedLevel:
    """Level with the lowest mean duration (ties: lowest concurrency)."""
    return _select(analysis, lambda lvl: lvl.duration_stats.mean, lowest=True)


def slowest_level(analysis: StatisticalAnalysis) -> AggregatedLevel:
    """Level with the highest mean duration (ties: lowest concurrency)."""
    return _select(analysis, lambda lvl: lvl.duration_stats.mean, lowest=False)


def most_consistent_level(analysis: StatisticalAnalysis) -> AggregatedLevel:
    """Level with the lowest duration std_dev (ties: lowest concurrency)."""
    return _select(analysis, lambda lvl: lvl.duration_stats.std_dev, lowest=True)


def _select(
    analysis: StatisticalAnalysis,
    key: Callable[[AggregatedLevel], float],
    *,
    lowest: bool,
) -> AggregatedLevel:
    # Strict comparison in ascending concurrency order keeps the first of equals.
    levels = sorted(analysis.aggregated_levels, key=lambda lvl: lvl.concurrency)
    if not levels:
        raise MetricsError("Analysis has no aggregated levels.")
    best = levels[0]
    for lvl in levels[1:]:
        if (key(lvl) < key(best)) if lowest else (key(lvl) > key(best)):
            best = lvl
    return best


# ---------------------------------------------------------------------------
# Ratios
# ---------------------------------------------------------------------------


def speedup(base: AggregatedLevel, level: AggregatedLevel, stat: str = "mean") -> float:
    """Ratio ``base.<stat> / level.<stat>`` over duration statistics.

    Args:
        base: The baseline (sequential) level.
        level: The level being compared.
        stat: One of ``mean``, ``median``, ``min``, ``max``.

    A zero duration at *level* gives ``inf``, or ``1.0`` when the
    baseline is zero too.
    """
    if stat not in SPEEDUP_FIELDS:
        raise ValueError(
            f"Unknown speedup statistic '{stat}'. Valid: {', '.join(SPEEDUP_FIELDS)}"
        )
    numerator = getattr(base.duration_stats, stat)
    denominator = getattr(level.duration_stats, stat)
    if denominator == 0:
        return 1.0 if numerator == 0 else float("inf")
    return numerator / denominator


def best_speedup(base: AggregatedLevel, level: AggregatedLevel) -> float:
    """Speedup comparing the fastest observed runs (``min``)."""
    return speedup(base, level, "min")


def worst_speedup(base: AggregatedLevel, level: AggregatedLevel) -> float:
    """Speedup comparing the slowest observed runs (``max``)."""
    return speedup(base, level, "max")


def coefficient_of_variation(level: AggregatedLevel) -> float:
    """Duration std_dev as a percentage of the mean duration."""
    return level.duration_stats.cv_pct


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


@dataclass
class LevelSummary:
    """Derived metrics for one concurrency level."""

    level: AggregatedLevel
    speedup_mean: float
    speedup_median: float
    speedup_best: float
    speedup_worst: float
    cv_pct: float

    @property
    def concurrency(self) -> int:
        return self.level.concurrency

    @property
    def mean_failed(self) -> float:
        return self.level.failed_stats.mean

    @property
    def has_failures(self) -> bool:
        """True if any sample at this level had failing tests."""
        return self.level.failed_stats.max > 0


@dataclass
class SweepReport:
    """Everything a reporter needs to recommend a concurrency setting."""

    analysis: StatisticalAnalysis
    baseline: AggregatedLevel
    fastest: AggregatedLevel
    slowest: AggregatedLevel
    most_consistent: AggregatedLevel
    levels: list[LevelSummary] = field(default_factory=list)

    @property
    def best_speedup(self) -> float:
        """Mean-duration speedup of the fastest level vs sequential."""
        return speedup(self.baseline, self.fastest, "mean")

    @property
    def recommended_concurrency(self) -> int:
        """The concurrency with the best throughput (the fastest level)."""
        return self.fastest.concurrency

    @property
    def sweet_spot_pct(self) -> float:
        """Recommended concurrency as a share of the maximum tested."""
        top = self.analysis.max_concurrency
        return self.fastest.concurrency / top * 100 if top else 0.0

    @property
    def failing_levels(self) -> list[int]:
        """Concurrency levels where some samples had failing tests."""
        return [s.concurrency for s in self.levels if s.has_failures]


def build_report(analysis: StatisticalAnalysis) -> SweepReport:
    """Derive speedups, consistency and the recommended level.

    Raises:
        MetricsError: If the analysis has no levels.
    """
    base = baseline(analysis)
    report = SweepReport(
        analysis=analysis,
        baseline=base,
        fastest=fastest_level(analysis),
        slowest=slowest_level(analysis),
        most_consistent=most_consistent_level(analysis),
    )
    for lvl in analysis.aggregated_levels:
        report.levels.append(
            LevelSummary(
                level=lvl,
                speedup_mean=speedup(base, lvl, "mean"),
                speedup_median=speedup(base, lvl, "median"),
                speedup_best=best_speedup(base, lvl),
                speedup_worst=worst_speedup(base, lvl),
                cv_pct=coefficient_of_variation(lvl),
            )
        )
    if report.failing_levels:
        log.warning(
            "Tests failed at concurrency %s",
            ", ".join(str(c) for c in report.failing_levels),
        )
    return report
