"""Benchmark executor: one measurement at one concurrency level."""

from __future__ import annotations

import time

from parabench.logging import get_logger
from parabench.sweep.results import Measurement
from parabench.sweep.subject import DEFAULT_STARTUP_TIMEOUT, TestSubject

log = get_logger("executor")


class ExecutorError(RuntimeError):
    """The test subject could not produce a measurement."""

    def __init__(self, concurrency: int, message: str) -> None:
        super().__init__(message)
        self.concurrency = concurrency


class BenchmarkExecutor:
    """Runs a test subject at an exact concurrency and records the outcome.

    Usage::

        executor = BenchmarkExecutor(startup_timeout=5.0)
        measurement = executor.measure(4, subject)
    """

    def __init__(self, startup_timeout: float = DEFAULT_STARTUP_TIMEOUT) -> None:
        if startup_timeout <= 0:
            raise ValueError(f"Startup timeout must be positive (got {startup_timeout}).")
        self.startup_timeout = startup_timeout

    def measure(self, concurrency: int, subject: TestSubject) -> Measurement:
        """Run *subject* once at *concurrency* and return a Measurement.

        The duration is the wall-clock time of the whole run as reported by
        the subject, or as timed here if the subject reports none.  Tests
        failing is a normal result (``failed > 0``).

        Raises:
            ValueError: If *concurrency* is not a positive integer.
            ExecutorError: If ``subject.run`` raises anything; the
                original exception is chained.
        """
        if concurrency < 1:
            raise ValueError(f"Concurrency must be a positive integer (got {concurrency}).")

        wall_start = time.monotonic()
        try:
            summary = subject.run(concurrency, startup_timeout=self.startup_timeout)
        except Exception as exc:
            raise ExecutorError(
                concurrency,
                f"Test subject failed at concurrency {concurrency}: {exc}",
            ) from exc
        wall_ms = (time.monotonic() - wall_start) * 1000

        duration_ms = summary.duration_ms if summary.duration_ms is not None else wall_ms
        measurement = Measurement(
            concurrency=concurrency,
            duration_ms=max(duration_ms, 0.0),
            passed=summary.passed,
            failed=summary.failed,
            total_tests=summary.total,
        )
        log.debug(
            "Concurrency %d: %.0fms (%d passed, %d failed)",
            concurrency,
            measurement.duration_ms,
            measurement.passed,
            measurement.failed,
        )
        return measurement


def measure(
    concurrency: int,
    subject: TestSubject,
    *,
    startup_timeout: float = DEFAULT_STARTUP_TIMEOUT,
) -> Measurement:
    """Convenience wrapper around :meth:`BenchmarkExecutor.measure`."""
    return BenchmarkExecutor(startup_timeout=startup_timeout).measure(concurrency, subject)
