"""Sweep configuration and profile loading.

Handles:
- The explicit configuration struct passed to the runner.
- Loading sweep profiles from YAML files.
- Merging CLI options with profile defaults.
- Validating the final configuration before execution.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from parabench.logging import get_logger
from parabench.sweep.subject import DEFAULT_STARTUP_TIMEOUT
from parabench.sweep.system import available_parallelism

log = get_logger("config")

PARTIAL_POLICIES = ("discard", "keep")


# ---------------------------------------------------------------------------
# SweepConfig
# ---------------------------------------------------------------------------


@dataclass
class SweepConfig:
    """Resolved configuration for a benchmark run."""

    # Sweep shape
    max_concurrency: int = 0  # 0 = available parallelism
    sample_size: int = 25
    workload_config: str = "default"

    # Test subject
    test_command: str = ""
    test_subject_size: int = 10  # e.g. number of test files
    startup_timeout: float = DEFAULT_STARTUP_TIMEOUT
    ready_pattern: str | None = None
    subject_cwd: Path | None = None
    env: dict[str, str] = field(default_factory=dict)

    # What to do with a sweep that aborts partway: "discard" or "keep".
    partial_samples: str = "discard"

    # Identity and output
    run_id: str = ""
    name: str = ""
    results_dir: Path = field(default_factory=lambda: Path("results"))

    # CLI provenance
    cli_args: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.run_id:
            self.run_id = f"sweep_{time.strftime('%Y%m%d_%H%M%S')}"
        if not self.max_concurrency:
            self.max_concurrency = available_parallelism()

    @property
    def keep_partial(self) -> bool:
        return self.partial_samples == "keep"

    @property
    def output_dir(self) -> Path:
        """The output directory for this run."""
        return self.results_dir / self.run_id

    def snapshot(self) -> dict[str, Any]:
        """Config values recorded in the run metadata."""
        return {
            "max_concurrency": self.max_concurrency,
            "sample_size": self.sample_size,
            "workload_config": self.workload_config,
            "test_command": self.test_command,
            "test_subject_size": self.test_subject_size,
            "startup_timeout": self.startup_timeout,
            "partial_samples": self.partial_samples,
        }


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def validate_config(config: SweepConfig, *, require_command: bool = True) -> list[ValidationError]:
    """Validate a sweep configuration.

    Args:
        config: The configuration to check.
        require_command: Whether a test command is mandatory (False when
            the caller supplies its own test subject).

    Returns a list of validation errors.  Empty list means valid.
    """
    errors: list[ValidationError] = []

    if config.max_concurrency < 1:
        errors.append(
            ValidationError(
                field="max_concurrency",
                message=f"Max concurrency must be at least 1 (got {config.max_concurrency}).",
            )
        )
    elif config.max_concurrency > 4 * available_parallelism():
        errors.append(
            ValidationError(
                field="max_concurrency",
                message=(
                    f"Max concurrency {config.max_concurrency} is far above the "
                    f"available parallelism ({available_parallelism()})."
                ),
                severity="warning",
            )
        )

    if config.sample_size < 1:
        errors.append(
            ValidationError(
                field="sample_size",
                message=f"Sample size must be at least 1 (got {config.sample_size}).",
            )
        )
    elif config.sample_size < 3:
        errors.append(
            ValidationError(
                field="sample_size",
                message=(
                    f"A sample size of {config.sample_size} gives unstable statistics; "
                    f"use at least 3."
                ),
                severity="warning",
            )
        )

    if config.test_subject_size < 1:
        errors.append(
            ValidationError(
                field="test_subject_size",
                message=f"Test subject size must be positive (got {config.test_subject_size}).",
            )
        )

    if not config.workload_config.strip():
        errors.append(
            ValidationError(
                field="workload_config",
                message="Workload configuration label must be non-empty.",
            )
        )

    if config.startup_timeout <= 0:
        errors.append(
            ValidationError(
                field="startup_timeout",
                message=f"Startup timeout must be positive (got {config.startup_timeout}).",
            )
        )

    if config.partial_samples not in PARTIAL_POLICIES:
        errors.append(
            ValidationError(
                field="partial_samples",
                message=(
                    f"Unknown partial sample policy '{config.partial_samples}'. "
                    f"Valid: {', '.join(PARTIAL_POLICIES)}"
                ),
            )
        )

    if require_command and not config.test_command.strip():
        errors.append(
            ValidationError(
                field="test_command",
                message="No test command defined. Use --command or set it in the profile.",
            )
        )

    if config.subject_cwd is not None and not config.subject_cwd.is_dir():
        errors.append(
            ValidationError(
                field="subject_cwd",
                message=f"Test subject directory does not exist: {config.subject_cwd}",
            )
        )

    return errors


# ---------------------------------------------------------------------------
# YAML profile loading
# ---------------------------------------------------------------------------


def load_profile(profile_path: Path) -> dict[str, Any]:
    """Load a sweep profile from a YAML file.

    Profile format::

        name: "node test runner, 20 files"
        command: "node --test --test-concurrency={concurrency} test-files/"
        files: 20
        workload: medium
        sample_size: 25
        max_concurrency: 8
        startup_timeout: 5
        ready_pattern: "Server ready"
        keep_partial: false
        cwd: ./project
        env:
          APP_MODE: medium

    Returns:
        The parsed YAML as a dict.
    """
    import yaml

    if not profile_path.exists():
        raise FileNotFoundError(f"Profile not found: {profile_path}")

    data = yaml.safe_load(profile_path.read_text())

    if not isinstance(data, dict):
        raise ValueError(f"Profile must be a YAML mapping, got {type(data).__name__}")

    return data


def config_from_profile(
    profile_data: dict[str, Any],
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> SweepConfig:
    """Build a SweepConfig from a parsed YAML profile.

    CLI overrides (non-None values) take precedence over profile values.
    Keys match SweepConfig field names.
    """
    cli = {k: v for k, v in (cli_overrides or {}).items() if v is not None}

    env = profile_data.get("env", {}) or {}
    if not isinstance(env, dict):
        raise ValueError("Profile 'env' must be a mapping of NAME -> value")

    keep_partial = cli.get("keep_partial", profile_data.get("keep_partial", False))
    cwd = cli.get("subject_cwd", profile_data.get("cwd"))

    config = SweepConfig(
        name=cli.get("name", profile_data.get("name", "")),
        test_command=cli.get("test_command", profile_data.get("command", "")),
        test_subject_size=int(cli.get("test_subject_size", profile_data.get("files", 10))),
        workload_config=str(cli.get("workload_config", profile_data.get("workload", "default"))),
        sample_size=int(cli.get("sample_size", profile_data.get("sample_size", 25))),
        max_concurrency=int(cli.get("max_concurrency", profile_data.get("max_concurrency", 0))),
        startup_timeout=float(
            cli.get(
                "startup_timeout",
                profile_data.get("startup_timeout", DEFAULT_STARTUP_TIMEOUT),
            )
        ),
        ready_pattern=cli.get("ready_pattern", profile_data.get("ready_pattern")),
        subject_cwd=Path(cwd) if cwd else None,
        partial_samples="keep" if keep_partial else "discard",
        env={str(k): str(v) for k, v in env.items()},
    )

    if cli.get("results_dir"):
        config.results_dir = Path(cli["results_dir"])
    elif profile_data.get("results_dir"):
        config.results_dir = Path(profile_data["results_dir"])

    if cli.get("run_id"):
        config.run_id = cli["run_id"]

    return config


def parse_env_pairs(pairs: tuple[str, ...] | list[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` strings into a dict.

    Raises:
        ValueError: If a pair has no ``=`` or an empty key.
    """
    env: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid env pair '{pair}'. Expected KEY=VALUE.")
        env[key.strip()] = value
    return env
