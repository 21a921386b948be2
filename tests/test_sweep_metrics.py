"""Tests for parabench.sweep.metrics."""

from __future__ import annotations

import math
import unittest

from sweep_test_helpers import make_analysis

from parabench.sweep.metrics import (
    MetricsError,
    baseline,
    best_speedup,
    build_report,
    coefficient_of_variation,
    fastest_level,
    most_consistent_level,
    slowest_level,
    speedup,
    worst_speedup,
)
from parabench.sweep.results import StatisticalAnalysis


class TestSpeedup(unittest.TestCase):
    def setUp(self) -> None:
        self.analysis = make_analysis([[100, 50, 40], [200, 70, 60]])

    def test_baseline_against_itself(self) -> None:
        base = baseline(self.analysis)
        self.assertEqual(base.concurrency, 1)
        for stat in ("mean", "median", "min", "max"):
            self.assertEqual(speedup(base, base, stat), 1.0)

    def test_mean_speedup(self) -> None:
        base = baseline(self.analysis)
        self.assertAlmostEqual(speedup(base, self.analysis.level(2)), 150.0 / 60.0)

    def test_best_and_worst(self) -> None:
        base = baseline(self.analysis)
        level3 = self.analysis.level(3)
        self.assertAlmostEqual(best_speedup(base, level3), 100.0 / 40.0)
        self.assertAlmostEqual(worst_speedup(base, level3), 200.0 / 60.0)

    def test_unknown_stat(self) -> None:
        base = baseline(self.analysis)
        with self.assertRaises(ValueError):
            speedup(base, base, "p99")

    def test_zero_duration(self) -> None:
        analysis = make_analysis([[100, 0]])
        base = baseline(analysis)
        self.assertTrue(math.isinf(speedup(base, analysis.level(2))))
        zeros = make_analysis([[0, 0]])
        self.assertEqual(speedup(baseline(zeros), zeros.level(2)), 1.0)


class TestLevelSelection(unittest.TestCase):
    def test_fastest_and_slowest(self) -> None:
        analysis = make_analysis([[100, 50, 40, 45]])
        self.assertEqual(fastest_level(analysis).concurrency, 3)
        self.assertEqual(slowest_level(analysis).concurrency, 1)

    def test_ties_pick_lowest_concurrency(self) -> None:
        analysis = make_analysis([[100, 50, 50, 100]])
        self.assertEqual(fastest_level(analysis).concurrency, 2)
        self.assertEqual(slowest_level(analysis).concurrency, 1)
        # Single sample: every std_dev is 0.
        self.assertEqual(most_consistent_level(analysis).concurrency, 1)

    def test_most_consistent(self) -> None:
        analysis = make_analysis([[100, 50, 40], [200, 52, 80]])
        self.assertEqual(most_consistent_level(analysis).concurrency, 2)

    def test_cv(self) -> None:
        analysis = make_analysis([[100], [200]])
        self.assertAlmostEqual(coefficient_of_variation(analysis.level(1)), 50.0 / 150.0 * 100)

    def test_empty_analysis(self) -> None:
        empty = StatisticalAnalysis(test_subject_size=1, workload_config="x", sample_size=0)
        with self.assertRaises(MetricsError):
            baseline(empty)
        with self.assertRaises(MetricsError):
            fastest_level(empty)


class TestBuildReport(unittest.TestCase):
    def test_report_fields(self) -> None:
        analysis = make_analysis([[100, 50, 40, 60], [100, 50, 40, 60]])
        report = build_report(analysis)
        self.assertEqual(report.baseline.concurrency, 1)
        self.assertEqual(report.recommended_concurrency, 3)
        self.assertAlmostEqual(report.best_speedup, 2.5)
        self.assertEqual(report.sweet_spot_pct, 75.0)
        self.assertEqual([s.concurrency for s in report.levels], [1, 2, 3, 4])
        self.assertEqual(report.levels[0].speedup_mean, 1.0)
        self.assertEqual(report.failing_levels, [])

    def test_failing_levels(self) -> None:
        analysis = make_analysis([[100, 50, 40]], failed={3: 2})
        with self.assertLogs("parabench", level="WARNING"):
            report = build_report(analysis)
        self.assertEqual(report.failing_levels, [3])
        self.assertTrue(report.levels[2].has_failures)
        self.assertEqual(report.levels[2].mean_failed, 2.0)


if __name__ == "__main__":
    unittest.main()
