"""Sweep runner: one ascending pass through concurrency levels.

Levels run strictly one after another so that no two levels compete for
the host's resources.  Measurements are yielded as they complete; a
caller that stops iterating stops the sweep before the next level starts.
"""

from __future__ import annotations

import time
from typing import Iterator

from parabench.logging import get_logger
from parabench.sweep.executor import BenchmarkExecutor, ExecutorError
from parabench.sweep.results import Measurement, Sample
from parabench.sweep.subject import TestSubject

log = get_logger("sweep")


class SweepAbortedError(RuntimeError):
    """A sweep stopped early because the executor failed.

    Attributes:
        concurrency: The level that failed.
        completed: Measurements produced for lower levels, in order.
    """

    def __init__(
        self,
        concurrency: int,
        completed: list[Measurement],
        message: str,
    ) -> None:
        super().__init__(message)
        self.concurrency = concurrency
        self.completed = completed


def run_sweep(
    max_concurrency: int,
    subject: TestSubject,
    *,
    executor: BenchmarkExecutor | None = None,
) -> Iterator[Measurement]:
    """Measure *subject* at concurrency 1, 2, …, *max_concurrency*.

    Yields each Measurement as soon as its level finishes.  Every call
    is an independent sweep.

    Raises:
        ValueError: If *max_concurrency* is not positive.
        SweepAbortedError: When a level fails.  Already-yielded
            measurements are attached as ``completed``; no later level
            runs and the failed level is not retried.
    """
    if max_concurrency < 1:
        raise ValueError(f"Max concurrency must be a positive integer (got {max_concurrency}).")
    executor = executor or BenchmarkExecutor()

    completed: list[Measurement] = []
    for concurrency in range(1, max_concurrency + 1):
        log.debug("Testing concurrency %d of %d", concurrency, max_concurrency)
        try:
            measurement = executor.measure(concurrency, subject)
        except ExecutorError as exc:
            log.error("Sweep aborted at concurrency %d: %s", concurrency, exc)
            raise SweepAbortedError(
                concurrency,
                list(completed),
                f"Sweep aborted at concurrency {concurrency} "
                f"after {len(completed)} completed level(s): {exc}",
            ) from exc
        completed.append(measurement)
        yield measurement


def collect_sweep(
    max_concurrency: int,
    subject: TestSubject,
    *,
    test_subject_size: int,
    workload_config: str,
    executor: BenchmarkExecutor | None = None,
    index: int = 0,
) -> Sample:
    """Run a whole sweep and return it as a complete Sample.

    Raises:
        SweepAbortedError: Propagated from :func:`run_sweep`.
    """
    started_at = time.strftime("%Y-%m-%dT%H:%M:%S%z")
    measurements = list(run_sweep(max_concurrency, subject, executor=executor))
    return Sample(
        test_subject_size=test_subject_size,
        workload_config=workload_config,
        measurements=measurements,
        index=index,
        started_at=started_at,
        finished_at=time.strftime("%Y-%m-%dT%H:%M:%S%z"),
    )
