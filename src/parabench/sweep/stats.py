"""Descriptive statistics for sweep measurements.

Every per-level distribution in an analysis (durations, passed counts,
failed counts) is reduced with :func:`describe`.  The functions are pure
Python and work on any finite sequence of numbers.

Conventions:
    - Standard deviation is the *population* standard deviation
      (divisor n, not n-1).  A sweep sample is the whole population of
      runs being summarized, not an estimate of a wider one.
    - Percentiles use linear interpolation between closest ranks, the
      same definition as ``numpy.percentile(..., method="linear")``.
"""

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from typing import Any, Sequence


# ---------------------------------------------------------------------------
# Statistics value object
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Statistics:
    """Summary statistics over a finite sequence of numbers."""

    mean: float
    median: float
    std_dev: float
    min: float
    max: float
    p25: float
    p75: float
    p95: float
    p99: float

    @property
    def cv_pct(self) -> float:
        """Coefficient of variation as a percentage (std_dev / mean * 100)."""
        if self.mean == 0:
            return 0.0 if self.std_dev == 0 else float("inf")
        return self.std_dev / self.mean * 100

    def to_dict(self) -> dict[str, float]:
        """Serialize to a dict with rounded values."""
        return {
            "mean": round(self.mean, 6),
            "median": round(self.median, 6),
            "std_dev": round(self.std_dev, 6),
            "min": round(self.min, 6),
            "max": round(self.max, 6),
            "p25": round(self.p25, 6),
            "p75": round(self.p75, 6),
            "p95": round(self.p95, 6),
            "p99": round(self.p99, 6),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Statistics:
        """Deserialize from a dict, ignoring unknown fields."""
        known = {f.name for f in cls.__dataclass_fields__.values()}
        return cls(**{k: float(v) for k, v in data.items() if k in known})


# ---------------------------------------------------------------------------
# Computation
# ---------------------------------------------------------------------------


def describe(values: Sequence[float]) -> Statistics:
    """Compute descriptive statistics for a sequence of numbers.

    Args:
        values: Numeric values in any order.

    Returns:
        Statistics with all fields populated.  A single value collapses
        every field to that value (std_dev 0).  An empty sequence yields
        NaN in every field instead of raising.
    """
    if not values:
        nan = float("nan")
        return Statistics(nan, nan, nan, nan, nan, nan, nan, nan, nan)

    sorted_v = sorted(values)

    return Statistics(
        mean=statistics.fmean(sorted_v),
        median=statistics.median(sorted_v),
        std_dev=statistics.pstdev(sorted_v) if len(sorted_v) > 1 else 0.0,
        min=sorted_v[0],
        max=sorted_v[-1],
        p25=percentile(sorted_v, 25),
        p75=percentile(sorted_v, 75),
        p95=percentile(sorted_v, 95),
        p99=percentile(sorted_v, 99),
    )


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Compute the p-th percentile (0-100) using linear interpolation.

    Assumes *sorted_values* is already sorted in ascending order.  The
    fractional rank is ``p / 100 * (n - 1)``; an integral rank returns that
    element exactly.
    """
    n = len(sorted_values)
    if n == 0:
        return float("nan")
    if n == 1:
        return sorted_values[0]

    idx = (p / 100) * (n - 1)
    lo = math.floor(idx)
    hi = min(math.ceil(idx), n - 1)
    if lo == hi:
        return sorted_values[lo]
    w = idx - lo
    return sorted_values[lo] * (1 - w) + sorted_values[hi] * w
