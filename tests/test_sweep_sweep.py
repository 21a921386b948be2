"""Tests for parabench.sweep.sweep — one ascending pass through levels."""

from __future__ import annotations

import unittest

from sweep_test_helpers import FakeSubject

from parabench.sweep.executor import ExecutorError
from parabench.sweep.sweep import SweepAbortedError, collect_sweep, run_sweep


class TestRunSweep(unittest.TestCase):
    def test_levels_in_order(self) -> None:
        subject = FakeSubject()
        measurements = list(run_sweep(4, subject))
        self.assertEqual([m.concurrency for m in measurements], [1, 2, 3, 4])
        self.assertEqual(subject.calls, [1, 2, 3, 4])

    def test_single_level(self) -> None:
        self.assertEqual(len(list(run_sweep(1, FakeSubject()))), 1)

    def test_failure_stops_sweep(self) -> None:
        subject = FakeSubject(fail_at={3})
        seen = []
        with self.assertRaises(SweepAbortedError) as ctx:
            for m in run_sweep(5, subject):
                seen.append(m.concurrency)
        self.assertEqual(seen, [1, 2])
        self.assertEqual(ctx.exception.concurrency, 3)
        self.assertEqual([m.concurrency for m in ctx.exception.completed], [1, 2])
        self.assertIsInstance(ctx.exception.__cause__, ExecutorError)
        # Nothing past the failed level, and no retry.
        self.assertEqual(subject.calls, [1, 2, 3])

    def test_failure_at_last_level(self) -> None:
        subject = FakeSubject(fail_at={3})
        sweep = run_sweep(3, subject)
        self.assertEqual(next(sweep).concurrency, 1)
        self.assertEqual(next(sweep).concurrency, 2)
        with self.assertRaises(SweepAbortedError):
            next(sweep)
        self.assertEqual(subject.calls, [1, 2, 3])

    def test_failure_at_first_level(self) -> None:
        with self.assertRaises(SweepAbortedError) as ctx:
            list(run_sweep(3, FakeSubject(fail_at={1})))
        self.assertEqual(ctx.exception.completed, [])

    def test_any_subject_exception_aborts_sweep(self) -> None:
        subject = FakeSubject(fail_at={2}, error=RuntimeError)
        with self.assertRaises(SweepAbortedError) as ctx:
            list(run_sweep(3, subject))
        self.assertEqual(ctx.exception.concurrency, 2)
        self.assertEqual([m.concurrency for m in ctx.exception.completed], [1])
        self.assertEqual(subject.calls, [1, 2])

    def test_invalid_max_concurrency(self) -> None:
        subject = FakeSubject()
        with self.assertRaises(ValueError):
            list(run_sweep(0, subject))
        self.assertEqual(subject.calls, [])

    def test_stopping_iteration_stops_sweep(self) -> None:
        subject = FakeSubject()
        sweep = run_sweep(5, subject)
        next(sweep)
        next(sweep)
        sweep.close()
        self.assertEqual(subject.calls, [1, 2])

    def test_failed_tests_do_not_abort(self) -> None:
        subject = FakeSubject(failed_tests={2: 4})
        measurements = list(run_sweep(3, subject))
        self.assertEqual(len(measurements), 3)
        self.assertEqual(measurements[1].failed, 4)

    def test_sweeps_are_independent(self) -> None:
        subject = FakeSubject()
        first = list(run_sweep(2, subject))
        second = list(run_sweep(2, subject))
        self.assertEqual(len(first), 2)
        self.assertEqual(len(second), 2)
        self.assertEqual(subject.calls, [1, 2, 1, 2])


class TestCollectSweep(unittest.TestCase):
    def test_builds_complete_sample(self) -> None:
        sample = collect_sweep(
            3,
            FakeSubject(),
            test_subject_size=20,
            workload_config="heavy",
            index=4,
        )
        self.assertTrue(sample.complete)
        self.assertEqual(sample.index, 4)
        self.assertEqual(sample.test_subject_size, 20)
        self.assertEqual(sample.workload_config, "heavy")
        self.assertEqual(sample.max_concurrency, 3)
        self.assertTrue(sample.started_at)

    def test_propagates_abort(self) -> None:
        with self.assertRaises(SweepAbortedError):
            collect_sweep(3, FakeSubject(fail_at={2}), test_subject_size=1, workload_config="x")


if __name__ == "__main__":
    unittest.main()
