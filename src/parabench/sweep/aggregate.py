"""Aggregation of many sweep samples into a statistical analysis.

Measurements from every sample are grouped by concurrency level and each
level's durations, passed counts and failed counts are reduced with
:func:`parabench.sweep.stats.describe`.

Input rules (checked before any statistics are computed):

- at least one sample;
- every sample's levels are exactly ``1..k`` in ascending order, with no
  gaps, duplicates or empty samples;
- complete samples all share the same ``k``;
- incomplete samples (aborted sweeps that were kept) are prefixes no
  longer than that range.

Under these rules every level bucket holds at least one value, and a
level's ``sample_count`` falls below the number of samples only where
incomplete samples stopped short of it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Sequence

from parabench.logging import get_logger
from parabench.sweep.results import AggregatedLevel, Sample, StatisticalAnalysis
from parabench.sweep.stats import describe

log = get_logger("aggregate")


class AggregationError(ValueError):
    """The sample collection cannot be aggregated."""


@dataclass
class _LevelBucket:
    durations: list[float] = field(default_factory=list)
    passed: list[float] = field(default_factory=list)
    failed: list[float] = field(default_factory=list)


def validate_samples(samples: Sequence[Sample]) -> list[str]:
    """Check a sample collection against the aggregation input rules.

    Returns a list of problem descriptions.  Empty list means valid.
    """
    if not samples:
        return ["No samples to aggregate."]

    problems: list[str] = []
    for pos, sample in enumerate(samples, start=1):
        label = f"Sample {sample.index or pos}"
        if not sample.measurements:
            problems.append(f"{label} has no measurements.")
            continue
        levels = [m.concurrency for m in sample.measurements]
        expected = list(range(1, len(levels) + 1))
        if levels != expected:
            problems.append(
                f"{label} has concurrency levels {levels}; expected {expected} "
                f"(ascending from 1 with no gaps)."
            )

    complete_ranges = {s.max_concurrency for s in samples if s.complete and s.measurements}
    if len(complete_ranges) > 1:
        problems.append(
            f"Samples have inconsistent concurrency ranges: "
            f"{', '.join(f'1..{n}' for n in sorted(complete_ranges))}."
        )
    elif complete_ranges:
        full_range = complete_ranges.pop()
        for pos, sample in enumerate(samples, start=1):
            if not sample.complete and sample.max_concurrency > full_range:
                problems.append(
                    f"Incomplete sample {sample.index or pos} reaches concurrency "
                    f"{sample.max_concurrency}, beyond the full range 1..{full_range}."
                )

    return problems


def aggregate(
    samples: Sequence[Sample],
    *,
    now: str | None = None,
) -> StatisticalAnalysis:
    """Combine samples into one StatisticalAnalysis.

    Args:
        samples: Samples from the same workload configuration and test
            subject.  Metadata is taken from the first one; mixing
            configurations is not detected.
        now: Timestamp for ``generated_at`` (defaults to the current time).

    Raises:
        AggregationError: If the input violates the rules in the module
            docstring.
    """
    problems = validate_samples(samples)
    if problems:
        messages = [f"  {p}" for p in problems]
        raise AggregationError("Cannot aggregate samples:\n" + "\n".join(messages))

    buckets: dict[int, _LevelBucket] = {}
    for sample in samples:
        for m in sample.measurements:
            bucket = buckets.setdefault(m.concurrency, _LevelBucket())
            bucket.durations.append(m.duration_ms)
            bucket.passed.append(m.passed)
            bucket.failed.append(m.failed)

    levels: list[AggregatedLevel] = []
    for concurrency in sorted(buckets):
        bucket = buckets[concurrency]
        levels.append(
            AggregatedLevel(
                concurrency=concurrency,
                duration_stats=describe(bucket.durations),
                passed_stats=describe(bucket.passed),
                failed_stats=describe(bucket.failed),
                sample_count=len(bucket.durations),
            )
        )

    first = samples[0]
    analysis = StatisticalAnalysis(
        test_subject_size=first.test_subject_size,
        workload_config=first.workload_config,
        sample_size=len(samples),
        aggregated_levels=levels,
        generated_at=now or time.strftime("%Y-%m-%dT%H:%M:%S%z"),
    )
    log.debug(
        "Aggregated %d samples into %d concurrency levels",
        analysis.sample_size,
        len(levels),
    )
    return analysis
