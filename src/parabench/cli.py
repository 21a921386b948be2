"""Command-line interface for parabench.

Subcommands:
    parabench run       Execute a concurrency sweep benchmark
    parabench show      Display a run's results
    parabench analyze   Re-aggregate a run's samples
    parabench export    Export results to CSV/Markdown/JSON
    parabench system    Print system characterization
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from parabench import __version__
from parabench.logging import setup_logging

if TYPE_CHECKING:
    from parabench.sweep.results import RunMeta, StatisticalAnalysis


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """parabench — Find the best concurrency level for a test suite."""


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@main.command()
@click.option(
    "--command",
    "test_command",
    type=str,
    default=None,
    help="Test command template; {concurrency}, {workload} and {files} are substituted.",
)
@click.option(
    "--profile",
    "profile_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="YAML profile defining the sweep.",
)
@click.option(
    "--sample-size",
    type=int,
    default=None,
    envvar="SAMPLE_SIZE",
    help="Number of sweeps to run (default: 25).",
)
@click.option(
    "--files",
    "test_subject_size",
    type=int,
    default=None,
    envvar="NUM_TEST_FILES",
    help="Test subject size, e.g. number of test files (default: 10).",
)
@click.option(
    "--workload",
    "workload_config",
    type=str,
    default=None,
    envvar="APP_MODE",
    help="Workload configuration label (default: 'default').",
)
@click.option(
    "--max-concurrency",
    type=int,
    default=None,
    envvar="MAX_CONCURRENCY",
    help="Highest concurrency level (default: available parallelism).",
)
@click.option(
    "--startup-timeout",
    type=float,
    default=None,
    help="Seconds to wait for --ready-pattern to appear (default: 5).",
)
@click.option(
    "--ready-pattern",
    type=str,
    default=None,
    help="Regex the subject must print within the startup timeout (default: none).",
)
@click.option(
    "--cwd",
    "subject_cwd",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Working directory for the test command.",
)
@click.option(
    "--keep-partial/--discard-partial",
    default=None,
    help="Keep sweeps that abort partway as incomplete samples (default: discard).",
)
@click.option(
    "--results-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Results output directory (default: results).",
)
@click.option("--name", type=str, default=None, help="Human-readable run name.")
@click.option(
    "--env",
    "env_pairs",
    type=str,
    multiple=True,
    help="KEY=VALUE env var for the test subject (repeatable).",
)
@click.option(
    "--quick",
    is_flag=True,
    default=False,
    help="Quick mode: 3 samples, concurrency up to 4.",
)
@click.option(
    "--yes",
    "-y",
    "confirmed",
    is_flag=True,
    default=False,
    envvar="CONFIRMED",
    help="Skip the confirmation prompt.",
)
@click.option("-v", "--verbose", is_flag=True, help="Show detailed output.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Also write DEBUG logs to this file.",
)
def run(  # noqa: PLR0913
    test_command: str | None,
    profile_path: Path | None,
    sample_size: int | None,
    test_subject_size: int | None,
    workload_config: str | None,
    max_concurrency: int | None,
    startup_timeout: float | None,
    ready_pattern: str | None,
    subject_cwd: Path | None,
    keep_partial: bool | None,
    results_dir: Path | None,
    name: str | None,
    env_pairs: tuple[str, ...],
    quick: bool,
    confirmed: bool,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Run a concurrency sweep benchmark.

    Each sample runs the test command at concurrency 1, 2, ... up to the
    maximum, one level after another.  Samples run sequentially and are
    then aggregated into per-level statistics.

    \b
    Examples:
        # pytest-xdist, 10 samples
        parabench run --command "pytest -n {concurrency} tests/" --sample-size 10

        # node test runner from a profile
        parabench run --profile sweep-node.yaml --yes

        # Quick mode for development
        parabench run --command "./run-tests.sh" --quick
    """
    from parabench.sweep.config import (
        config_from_profile,
        load_profile,
        parse_env_pairs,
    )
    from parabench.sweep.display import format_analysis
    from parabench.sweep.runner import BenchmarkRunner, quick_config

    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)

    cli_overrides: dict[str, object] = {
        "test_command": test_command,
        "sample_size": sample_size,
        "test_subject_size": test_subject_size,
        "workload_config": workload_config,
        "max_concurrency": max_concurrency,
        "startup_timeout": startup_timeout,
        "ready_pattern": ready_pattern,
        "subject_cwd": subject_cwd,
        "keep_partial": keep_partial,
        "results_dir": results_dir,
        "name": name,
    }

    try:
        profile_data = load_profile(profile_path) if profile_path else {}
        config = config_from_profile(profile_data, cli_overrides=cli_overrides)
        config.env.update(parse_env_pairs(env_pairs))
    except (ValueError, FileNotFoundError) as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    config.cli_args = sys.argv[1:]
    if quick:
        config = quick_config(config)

    click.echo("Sweep configuration:")
    click.echo(f"  Command:          {config.test_command or '(none)'}")
    click.echo(f"  Test files:       {config.test_subject_size}")
    click.echo(f"  Workload:         {config.workload_config}")
    click.echo(f"  Sample size:      {config.sample_size}")
    click.echo(f"  Max concurrency:  {config.max_concurrency}")
    click.echo(f"  Partial samples:  {config.partial_samples}")
    click.echo(f"  Output:           {config.output_dir}")
    click.echo()

    if not confirmed:
        click.confirm("Proceed with the benchmark?", default=True, abort=True)

    runner = BenchmarkRunner(config)
    try:
        meta, _samples, analysis = runner.run()
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        click.echo("\nBenchmark interrupted.", err=True)
        raise SystemExit(130)  # noqa: B904

    click.echo()
    click.echo(format_analysis(analysis, meta))
    click.echo()
    click.echo(f"Results saved to: {config.output_dir}")


# ---------------------------------------------------------------------------
# show / analyze
# ---------------------------------------------------------------------------


def _load_for_display(
    run_dir: Path, *, reaggregate: bool
) -> tuple[RunMeta | None, StatisticalAnalysis]:
    """Load metadata and analysis for *run_dir*, aggregating when needed."""
    from parabench.sweep.aggregate import aggregate
    from parabench.sweep.results import (
        ANALYSIS_FILE,
        META_FILE,
        load_analysis,
        load_meta,
        load_samples,
    )

    meta = load_meta(run_dir) if (run_dir / META_FILE).exists() else None
    if not reaggregate and (run_dir / ANALYSIS_FILE).exists():
        return meta, load_analysis(run_dir)
    return meta, aggregate(load_samples(run_dir))


@main.command("show")
@click.argument("run_dir", type=click.Path(exists=True, path_type=Path))
@click.option("--samples", "show_samples", is_flag=True, help="Also show each sample.")
@click.option("--system", "show_system", is_flag=True, help="Also show the system profile.")
def show(run_dir: Path, show_samples: bool, show_system: bool) -> None:
    """Display results from a benchmark run.

    RUN_DIR is a run output directory containing sweep_meta.json and
    samples.jsonl.  The analysis is recomputed from the samples when
    analysis.json is missing.
    """
    from parabench.sweep.display import format_analysis, format_sample
    from parabench.sweep.results import load_samples

    try:
        meta, analysis = _load_for_display(run_dir, reaggregate=False)
        samples = load_samples(run_dir) if show_samples else []
    except (ValueError, FileNotFoundError) as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    click.echo(format_analysis(analysis, meta, show_system=show_system))
    for sample in samples:
        click.echo()
        click.echo(format_sample(sample))


@main.command("analyze")
@click.argument("run_dir", type=click.Path(exists=True, path_type=Path))
def analyze(run_dir: Path) -> None:
    """Re-aggregate a run's samples and rewrite analysis.json.

    RUN_DIR may also be a samples.jsonl file or a directory of
    per-sample JSON files; analysis.json is written next to them.
    """
    from parabench.sweep.display import format_analysis
    from parabench.sweep.results import save_analysis

    try:
        meta, analysis = _load_for_display(run_dir, reaggregate=True)
    except (ValueError, FileNotFoundError) as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    out_dir = run_dir if run_dir.is_dir() else run_dir.parent
    save_analysis(out_dir, analysis)
    click.echo(format_analysis(analysis, meta))


# ---------------------------------------------------------------------------
# system
# ---------------------------------------------------------------------------


@main.command("system")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def system_cmd(as_json: bool) -> None:
    """Print system characterization for benchmark documentation."""
    from parabench.sweep.system import capture_system_profile, format_system_profile

    profile = capture_system_profile()

    if as_json:
        click.echo(profile.to_json())
    else:
        click.echo(format_system_profile(profile))


# ---------------------------------------------------------------------------
# export
# ---------------------------------------------------------------------------


@main.command("export")
@click.argument("run_dir", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["csv", "csv-summary", "markdown", "json"]),
    default="csv",
    help="Export format.",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Output file (default: stdout).",
)
def export(run_dir: Path, fmt: str, output: Path | None) -> None:
    """Export benchmark results to CSV, Markdown or JSON.

    \b
    Examples:
        parabench export results/sweep_001 --format csv > data.csv
        parabench export results/sweep_001 --format csv-summary > summary.csv
        parabench export results/sweep_001 --format markdown -o report.md
        parabench export results/sweep_001 --format json -o analysis.json
    """
    from parabench.sweep.export import (
        export_csv,
        export_csv_summary,
        export_json,
        export_markdown,
    )
    from parabench.sweep.results import load_samples

    try:
        if fmt == "csv":
            text = export_csv(load_samples(run_dir))
        else:
            meta, analysis = _load_for_display(run_dir, reaggregate=False)
            if fmt == "csv-summary":
                text = export_csv_summary(analysis)
            elif fmt == "markdown":
                text = export_markdown(analysis, meta)
            else:
                text = export_json(analysis, meta)
    except (ValueError, FileNotFoundError) as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    if output:
        output.write_text(text)
        click.echo(f"Exported to {output}")
    else:
        click.echo(text)
