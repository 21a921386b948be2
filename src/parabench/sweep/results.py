"""Sweep result data structures and the on-disk sample store.

Hierarchy::

    RunMeta (top level — one benchmark execution)
      → config snapshot, system: SystemProfile

    Sample (one sweep over concurrency 1..N)
      → measurements: list[Measurement]

    StatisticalAnalysis (many samples reduced)
      → aggregated_levels: list[AggregatedLevel]
        → duration_stats / passed_stats / failed_stats : Statistics

Files produced in a run directory::

    sweep_meta.json   — RunMeta
    samples.jsonl     — one Sample per line, appended per finished sweep
    analysis.json     — StatisticalAnalysis
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from parabench.logging import get_logger
from parabench.sweep.stats import Statistics
from parabench.sweep.system import SystemProfile

log = get_logger("results")

META_FILE = "sweep_meta.json"
SAMPLES_FILE = "samples.jsonl"
ANALYSIS_FILE = "analysis.json"


# ---------------------------------------------------------------------------
# Measurement
# ---------------------------------------------------------------------------


@dataclass
class Measurement:
    """Outcome of running the test subject once at one concurrency level.

    ``passed + failed == total_tests`` is expected but not enforced.
    """

    concurrency: int
    duration_ms: float
    passed: int
    failed: int
    total_tests: int

    @property
    def degraded(self) -> bool:
        """True if the run completed but some tests failed."""
        return self.failed > 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "concurrency": self.concurrency,
            "duration_ms": round(self.duration_ms, 3),
            "passed": self.passed,
            "failed": self.failed,
            "total_tests": self.total_tests,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Measurement:
        """Deserialize from a dict, ignoring unknown fields."""
        return cls(
            concurrency=int(data["concurrency"]),
            duration_ms=float(data["duration_ms"]),
            passed=int(data.get("passed", 0)),
            failed=int(data.get("failed", 0)),
            total_tests=int(data.get("total_tests", 0)),
        )


# ---------------------------------------------------------------------------
# Sample
# ---------------------------------------------------------------------------


@dataclass
class Sample:
    """One full sweep: measurements for concurrency 1..N in order.

    ``complete`` is False for a sweep that was aborted partway and kept
    anyway; its measurements are then a prefix of the configured range.
    """

    test_subject_size: int
    workload_config: str
    measurements: list[Measurement] = field(default_factory=list)
    complete: bool = True
    index: int = 0  # 1-based sample number within the run
    started_at: str = ""
    finished_at: str = ""

    @property
    def max_concurrency(self) -> int:
        """Highest concurrency level measured (0 if none)."""
        return self.measurements[-1].concurrency if self.measurements else 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "test_subject_size": self.test_subject_size,
            "workload_config": self.workload_config,
            "measurements": [m.to_dict() for m in self.measurements],
            "complete": self.complete,
            "index": self.index,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Sample:
        """Deserialize from a dict."""
        return cls(
            test_subject_size=int(data["test_subject_size"]),
            workload_config=str(data["workload_config"]),
            measurements=[Measurement.from_dict(m) for m in data.get("measurements", [])],
            complete=data.get("complete", True),
            index=data.get("index", 0),
            started_at=data.get("started_at", ""),
            finished_at=data.get("finished_at", ""),
        )

    def to_jsonl_line(self) -> str:
        """Serialize to a single JSONL line."""
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_jsonl_line(cls, line: str) -> Sample:
        """Deserialize from a single JSONL line."""
        return cls.from_dict(json.loads(line))


# ---------------------------------------------------------------------------
# Aggregated results
# ---------------------------------------------------------------------------


@dataclass
class AggregatedLevel:
    """Distributions for one concurrency level across many samples."""

    concurrency: int
    duration_stats: Statistics
    passed_stats: Statistics
    failed_stats: Statistics
    sample_count: int

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "concurrency": self.concurrency,
            "duration_stats": self.duration_stats.to_dict(),
            "passed_stats": self.passed_stats.to_dict(),
            "failed_stats": self.failed_stats.to_dict(),
            "sample_count": self.sample_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AggregatedLevel:
        """Deserialize from a dict."""
        return cls(
            concurrency=int(data["concurrency"]),
            duration_stats=Statistics.from_dict(data["duration_stats"]),
            passed_stats=Statistics.from_dict(data["passed_stats"]),
            failed_stats=Statistics.from_dict(data["failed_stats"]),
            sample_count=int(data["sample_count"]),
        )


@dataclass
class StatisticalAnalysis:
    """Per-level distributions derived from a collection of samples."""

    test_subject_size: int
    workload_config: str
    sample_size: int
    aggregated_levels: list[AggregatedLevel] = field(default_factory=list)
    generated_at: str = ""

    def level(self, concurrency: int) -> AggregatedLevel | None:
        """Return the aggregated level for *concurrency*, if present."""
        for lvl in self.aggregated_levels:
            if lvl.concurrency == concurrency:
                return lvl
        return None

    @property
    def max_concurrency(self) -> int:
        """Highest concurrency level in the analysis (0 if empty)."""
        return self.aggregated_levels[-1].concurrency if self.aggregated_levels else 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "test_subject_size": self.test_subject_size,
            "workload_config": self.workload_config,
            "sample_size": self.sample_size,
            "aggregated_levels": [lvl.to_dict() for lvl in self.aggregated_levels],
            "generated_at": self.generated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StatisticalAnalysis:
        """Deserialize from a dict."""
        return cls(
            test_subject_size=int(data["test_subject_size"]),
            workload_config=str(data["workload_config"]),
            sample_size=int(data["sample_size"]),
            aggregated_levels=[
                AggregatedLevel.from_dict(lvl) for lvl in data.get("aggregated_levels", [])
            ],
            generated_at=data.get("generated_at", ""),
        )


# ---------------------------------------------------------------------------
# Run-level metadata
# ---------------------------------------------------------------------------


@dataclass
class RunMeta:
    """Metadata for a complete benchmark run."""

    run_id: str
    name: str = ""
    system: SystemProfile = field(default_factory=SystemProfile)
    config: dict[str, Any] = field(default_factory=dict)
    cli_args: list[str] = field(default_factory=list)
    start_time: str = ""
    end_time: str = ""
    samples_attempted: int = 0
    samples_completed: int = 0
    samples_aborted: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "run_id": self.run_id,
            "name": self.name,
            "system": self.system.to_dict(),
            "config": self.config,
            "cli_args": self.cli_args,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "samples_attempted": self.samples_attempted,
            "samples_completed": self.samples_completed,
            "samples_aborted": self.samples_aborted,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunMeta:
        """Deserialize from a dict."""
        meta = cls(run_id=data["run_id"])
        meta.name = data.get("name", "")
        meta.system = SystemProfile.from_dict(data.get("system", {}))
        meta.config = data.get("config", {})
        meta.cli_args = data.get("cli_args", [])
        meta.start_time = data.get("start_time", "")
        meta.end_time = data.get("end_time", "")
        meta.samples_attempted = data.get("samples_attempted", 0)
        meta.samples_completed = data.get("samples_completed", 0)
        meta.samples_aborted = data.get("samples_aborted", 0)
        return meta


# ---------------------------------------------------------------------------
# I/O functions
# ---------------------------------------------------------------------------


def save_meta(run_dir: Path, meta: RunMeta) -> Path:
    """Write ``sweep_meta.json`` into *run_dir*."""
    run_dir.mkdir(parents=True, exist_ok=True)
    meta_path = run_dir / META_FILE
    meta_path.write_text(json.dumps(meta.to_dict(), indent=2) + "\n")
    log.debug("Wrote %s", meta_path)
    return meta_path


def load_meta(run_dir: Path) -> RunMeta:
    """Load ``sweep_meta.json`` from *run_dir*.

    Raises:
        FileNotFoundError: If the metadata file is missing.
    """
    meta_path = run_dir / META_FILE
    if not meta_path.exists():
        raise FileNotFoundError(f"No {META_FILE} in {run_dir}")
    return RunMeta.from_dict(json.loads(meta_path.read_text()))


def append_sample(run_dir: Path, sample: Sample) -> None:
    """Append one finished sample to the run's JSONL file.

    Samples are written as each sweep finishes so that an interrupted
    run keeps everything measured so far.
    """
    run_dir.mkdir(parents=True, exist_ok=True)
    with open(run_dir / SAMPLES_FILE, "a") as f:
        f.write(sample.to_jsonl_line() + "\n")


def load_samples(path: Path) -> list[Sample]:
    """Load samples from a run directory, a JSONL file, or JSON files.

    Accepts:
      - a run directory containing ``samples.jsonl``;
      - a ``.jsonl`` file with one sample per line;
      - a single ``.json`` file holding one sample;
      - a directory of ``*.json`` files holding one sample each.

    Raises:
        FileNotFoundError: If no samples source exists at *path*.
        ValueError: If a record is not valid JSON or lacks required fields;
            the message names the file and line.
    """
    if path.is_dir():
        jsonl = path / SAMPLES_FILE
        if jsonl.exists():
            return _load_jsonl(jsonl)
        samples: list[Sample] = []
        for json_path in sorted(path.glob("*.json")):
            if json_path.name in (META_FILE, ANALYSIS_FILE):
                continue
            samples.append(_parse_sample(json_path.read_text(), str(json_path)))
        if not samples:
            raise FileNotFoundError(f"No samples found in {path}")
        return samples
    if path.suffix == ".json" and path.exists():
        return [_parse_sample(path.read_text(), str(path))]
    if path.exists():
        return _load_jsonl(path)
    raise FileNotFoundError(f"No samples found at {path}")


def _load_jsonl(path: Path) -> list[Sample]:
    samples: list[Sample] = []
    for lineno, line in enumerate(path.read_text().splitlines(), 1):
        line = line.strip()
        if line:
            samples.append(_parse_sample(line, f"{path}:{lineno}"))
    return samples


def _parse_sample(text: str, source: str) -> Sample:
    """Parse one sample record, naming *source* in any error."""
    try:
        return Sample.from_dict(json.loads(text))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {source}: {exc}") from exc
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ValueError(f"Malformed sample record in {source}: {exc!r}") from exc


def save_analysis(run_dir: Path, analysis: StatisticalAnalysis) -> Path:
    """Write ``analysis.json`` into *run_dir*."""
    run_dir.mkdir(parents=True, exist_ok=True)
    analysis_path = run_dir / ANALYSIS_FILE
    analysis_path.write_text(json.dumps(analysis.to_dict(), indent=2) + "\n")
    log.info("Wrote %s", analysis_path)
    return analysis_path


def load_analysis(run_dir: Path) -> StatisticalAnalysis:
    """Load ``analysis.json`` from *run_dir*.

    Raises:
        FileNotFoundError: If the analysis file is missing.
        ValueError: If the analysis is not valid JSON or lacks fields.
    """
    analysis_path = run_dir / ANALYSIS_FILE
    if not analysis_path.exists():
        raise FileNotFoundError(f"No {ANALYSIS_FILE} in {run_dir}")
    try:
        return StatisticalAnalysis.from_dict(json.loads(analysis_path.read_text()))
    except (KeyError, TypeError, AttributeError) as exc:
        raise ValueError(f"Malformed analysis in {analysis_path}: {exc!r}") from exc


def load_run(run_dir: Path) -> tuple[RunMeta | None, list[Sample]]:
    """Load a run's metadata (if present) and its samples."""
    meta = load_meta(run_dir) if (run_dir / META_FILE).exists() else None
    return meta, load_samples(run_dir)
