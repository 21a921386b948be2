"""Tests for parabench.sweep.executor."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock

from sweep_test_helpers import FakeSubject

from parabench.sweep.executor import BenchmarkExecutor, ExecutorError, measure
from parabench.sweep.subject import SubjectStartupTimeout, SubjectSummary


class TestBenchmarkExecutor(unittest.TestCase):
    def test_measure_uses_subject_duration(self) -> None:
        subject = FakeSubject({2: 42.0}, failed_tests={2: 1})
        m = BenchmarkExecutor().measure(2, subject)
        self.assertEqual(m.concurrency, 2)
        self.assertEqual(m.duration_ms, 42.0)
        self.assertEqual((m.passed, m.failed, m.total_tests), (9, 1, 10))
        self.assertTrue(m.degraded)

    def test_measure_times_when_subject_reports_none(self) -> None:
        subject = MagicMock()
        subject.run.return_value = SubjectSummary(duration_ms=None, passed=1, failed=0, total=1)
        m = BenchmarkExecutor().measure(1, subject)
        self.assertGreaterEqual(m.duration_ms, 0.0)

    def test_passes_startup_timeout(self) -> None:
        subject = MagicMock()
        subject.run.return_value = SubjectSummary(duration_ms=1.0, passed=1, failed=0, total=1)
        BenchmarkExecutor(startup_timeout=2.5).measure(3, subject)
        subject.run.assert_called_once_with(3, startup_timeout=2.5)

    def test_rejects_nonpositive_concurrency(self) -> None:
        subject = FakeSubject()
        for bad in (0, -1):
            with self.subTest(concurrency=bad), self.assertRaises(ValueError):
                BenchmarkExecutor().measure(bad, subject)
        self.assertEqual(subject.calls, [])

    def test_rejects_nonpositive_timeout(self) -> None:
        with self.assertRaises(ValueError):
            BenchmarkExecutor(startup_timeout=0)

    def test_subject_failure_wrapped(self) -> None:
        with self.assertRaises(ExecutorError) as ctx:
            BenchmarkExecutor().measure(3, FakeSubject(fail_at={3}))
        self.assertEqual(ctx.exception.concurrency, 3)
        self.assertIsNotNone(ctx.exception.__cause__)

    def test_startup_timeout_wrapped(self) -> None:
        subject = MagicMock()
        subject.run.side_effect = SubjectStartupTimeout("not ready")
        with self.assertRaises(ExecutorError) as ctx:
            BenchmarkExecutor().measure(1, subject)
        self.assertIsInstance(ctx.exception.__cause__, SubjectStartupTimeout)

    def test_unexpected_subject_exception_wrapped(self) -> None:
        subject = FakeSubject(fail_at={2}, error=RuntimeError)
        with self.assertRaises(ExecutorError) as ctx:
            BenchmarkExecutor().measure(2, subject)
        self.assertEqual(ctx.exception.concurrency, 2)
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)

    def test_module_level_measure(self) -> None:
        m = measure(4, FakeSubject(), startup_timeout=1.0)
        self.assertEqual(m.duration_ms, 25.0)


if __name__ == "__main__":
    unittest.main()
