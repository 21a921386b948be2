"""Benchmark orchestration: many sweeps, then one aggregation.

Orchestrates:
1. Configuration validation
2. System profiling
3. ``sample_size`` sweeps, strictly one after another
4. Incremental sample writing and the partial-sample policy
5. Aggregation and analysis writing
6. Progress reporting

Sweeps never overlap: running them concurrently would make them compete
for the very CPU and IO capacity being measured.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from parabench.logging import get_logger, run_log
from parabench.sweep.aggregate import aggregate
from parabench.sweep.config import SweepConfig, validate_config
from parabench.sweep.executor import BenchmarkExecutor
from parabench.sweep.results import (
    RunMeta,
    Sample,
    StatisticalAnalysis,
    append_sample,
    save_analysis,
    save_meta,
)
from parabench.sweep.subject import CommandTestSubject, TestSubject
from parabench.sweep.sweep import SweepAbortedError, run_sweep
from parabench.sweep.system import (
    SystemProfile,
    capture_system_profile,
    format_system_profile,
)

log = get_logger("runner")


# ---------------------------------------------------------------------------
# Progress callback
# ---------------------------------------------------------------------------


@dataclass
class SweepProgress:
    """Progress info passed to the callback."""

    phase: str  # "measure", "aborted", "sample_done"
    sample: int  # 1-based
    sample_size: int
    concurrency: int
    max_concurrency: int
    duration_ms: float = 0.0
    passed: int = 0
    failed: int = 0
    detail: str = ""


# Type alias for the progress callback.
ProgressCallback = Any  # Callable[[SweepProgress], None] | None


# ---------------------------------------------------------------------------
# BenchmarkRunner
# ---------------------------------------------------------------------------


class BenchmarkRunner:
    """Executes a benchmark run according to a SweepConfig.

    Usage::

        config = SweepConfig(test_command="pytest -n {concurrency}", ...)
        runner = BenchmarkRunner(config)
        meta, samples, analysis = runner.run()
    """

    def __init__(
        self,
        config: SweepConfig,
        subject: TestSubject | None = None,
        progress_callback: ProgressCallback = None,
    ) -> None:
        self.config = config
        self.subject = subject
        self.progress: Any = progress_callback or self._default_progress
        self.executor = BenchmarkExecutor(startup_timeout=config.startup_timeout)

    def run(self) -> tuple[RunMeta, list[Sample], StatisticalAnalysis]:
        """Execute the full benchmark.

        Returns:
            Tuple of (RunMeta, kept samples, StatisticalAnalysis).

        Raises:
            ValueError: If configuration is invalid.
            AggregationError: If no sample was kept to aggregate.
        """
        # Phase 1: Validate configuration.
        errors = validate_config(self.config, require_command=self.subject is None)
        fatal = [e for e in errors if e.severity == "error"]
        for w in (e for e in errors if e.severity == "warning"):
            log.warning("Config warning: %s: %s", w.field, w.message)
        if fatal:
            messages = [f"  {e.field}: {e.message}" for e in fatal]
            raise ValueError("Invalid sweep configuration:\n" + "\n".join(messages))

        subject = self.subject or self._make_subject()

        # Phase 2: System profiling.
        system_profile = capture_system_profile()

        with run_log(self.config.output_dir, self.config.run_id):
            return self._measure_all(subject, system_profile)

    def _measure_all(
        self, subject: TestSubject, system_profile: SystemProfile
    ) -> tuple[RunMeta, list[Sample], StatisticalAnalysis]:
        """Phases 3 to 5, recorded in the run directory's sweep.log."""
        log.debug("\n%s", format_system_profile(system_profile))

        # Phase 3: Metadata.
        output_dir = self.config.output_dir
        meta = RunMeta(
            run_id=self.config.run_id,
            name=self.config.name,
            system=system_profile,
            config=self.config.snapshot(),
            cli_args=self.config.cli_args,
            start_time=time.strftime("%Y-%m-%dT%H:%M:%S%z"),
        )
        save_meta(output_dir, meta)

        log.info(
            "Running %d samples from concurrency 1 to %d (workload '%s', %d files)",
            self.config.sample_size,
            self.config.max_concurrency,
            self.config.workload_config,
            self.config.test_subject_size,
        )

        # Phase 4: Sweeps, one after another.
        samples: list[Sample] = []
        try:
            for index in range(1, self.config.sample_size + 1):
                meta.samples_attempted += 1
                sample = self._run_sample(subject, index)
                if sample is None:
                    meta.samples_aborted += 1
                    continue
                if sample.complete:
                    meta.samples_completed += 1
                else:
                    meta.samples_aborted += 1
                samples.append(sample)
                append_sample(output_dir, sample)
        finally:
            meta.end_time = time.strftime("%Y-%m-%dT%H:%M:%S%z")
            save_meta(output_dir, meta)

        # Phase 5: Aggregate.
        analysis = aggregate(samples)
        save_analysis(output_dir, analysis)
        log.info("Benchmark complete: %s", output_dir)

        return meta, samples, analysis

    def _make_subject(self) -> CommandTestSubject:
        return CommandTestSubject(
            command=self.config.test_command,
            workload_config=self.config.workload_config,
            test_subject_size=self.config.test_subject_size,
            cwd=self.config.subject_cwd,
            env=dict(self.config.env),
            ready_pattern=self.config.ready_pattern,
        )

    def _run_sample(self, subject: TestSubject, index: int) -> Sample | None:
        """Run one sweep.  Returns None if it aborted and is discarded."""
        log.info("=== Running benchmark sample %d of %d ===", index, self.config.sample_size)
        sample = Sample(
            test_subject_size=self.config.test_subject_size,
            workload_config=self.config.workload_config,
            index=index,
            started_at=time.strftime("%Y-%m-%dT%H:%M:%S%z"),
        )

        try:
            for measurement in run_sweep(
                self.config.max_concurrency,
                subject,
                executor=self.executor,
            ):
                sample.measurements.append(measurement)
                self.progress(
                    SweepProgress(
                        phase="measure",
                        sample=index,
                        sample_size=self.config.sample_size,
                        concurrency=measurement.concurrency,
                        max_concurrency=self.config.max_concurrency,
                        duration_ms=measurement.duration_ms,
                        passed=measurement.passed,
                        failed=measurement.failed,
                    )
                )
        except SweepAbortedError as exc:
            self.progress(
                SweepProgress(
                    phase="aborted",
                    sample=index,
                    sample_size=self.config.sample_size,
                    concurrency=exc.concurrency,
                    max_concurrency=self.config.max_concurrency,
                    detail=str(exc.__cause__ or exc),
                )
            )
            if not self.config.keep_partial:
                log.warning(
                    "Discarding sample %d: %d level(s) measured before the failure",
                    index,
                    len(exc.completed),
                )
                return None
            if not exc.completed:
                log.warning("Sample %d failed at concurrency 1; nothing to keep", index)
                return None
            log.warning(
                "Keeping partial sample %d with levels 1..%d",
                index,
                len(exc.completed),
            )
            sample.measurements = list(exc.completed)
            sample.complete = False

        sample.finished_at = time.strftime("%Y-%m-%dT%H:%M:%S%z")
        self.progress(
            SweepProgress(
                phase="sample_done",
                sample=index,
                sample_size=self.config.sample_size,
                concurrency=sample.max_concurrency,
                max_concurrency=self.config.max_concurrency,
            )
        )
        return sample

    @staticmethod
    def _default_progress(progress: SweepProgress) -> None:
        """Default progress callback: log each level as it completes."""
        prefix = f"  [{progress.sample}/{progress.sample_size}]"
        if progress.phase == "measure":
            status = "FAILED" if progress.failed else "ok"
            log.info(
                "%s concurrency %2d/%d: %8.0fms (%d passed, %d failed) [%s]",
                prefix,
                progress.concurrency,
                progress.max_concurrency,
                progress.duration_ms,
                progress.passed,
                progress.failed,
                status,
            )
        elif progress.phase == "aborted":
            log.error(
                "%s aborted at concurrency %d: %s",
                prefix,
                progress.concurrency,
                progress.detail,
            )


# ---------------------------------------------------------------------------
# Quick mode helper
# ---------------------------------------------------------------------------


def quick_config(config: SweepConfig) -> SweepConfig:
    """Apply quick mode settings for rapid iteration.

    Reduces the sample size to 3 and caps concurrency at 4.
    """
    config.sample_size = 3
    config.max_concurrency = min(config.max_concurrency, 4)
    config.name = f"{config.name} (quick)" if config.name else "Quick sweep"
    return config
