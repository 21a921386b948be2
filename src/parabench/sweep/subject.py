"""Test subjects: the thing a sweep measures.

A test subject runs a test suite at a requested concurrency and reports
how long the whole run took and how many tests passed or failed.  The
executor only relies on the :class:`TestSubject` protocol; the concrete
:class:`CommandTestSubject` shells out to a test command.

Failure semantics:
    - Tests failing is a *result*: the summary carries ``failed > 0``.
    - The subject itself failing (cannot start, not ready within the
      startup window, crashes without a summary) raises
      :class:`SubjectError`.
"""

from __future__ import annotations

import json
import os
import re
import signal
import subprocess
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Protocol, runtime_checkable

from parabench.logging import get_logger

log = get_logger("subject")

DEFAULT_STARTUP_TIMEOUT = 5.0  # seconds

SUMMARY_PREFIX = "parabench-summary:"


# ---------------------------------------------------------------------------
# Errors and results
# ---------------------------------------------------------------------------


class SubjectError(RuntimeError):
    """The test subject's execution infrastructure failed."""


class SubjectStartupTimeout(SubjectError):
    """The test subject did not become ready within the startup window."""


@dataclass
class SubjectSummary:
    """Structured summary of one complete test-subject run."""

    duration_ms: float | None
    passed: int
    failed: int
    total: int


@runtime_checkable
class TestSubject(Protocol):
    """Anything that can run a test suite at a given concurrency."""

    def run(self, concurrency: int, *, startup_timeout: float) -> SubjectSummary:
        """Run the whole suite with *concurrency* execution slots."""
        ...


# ---------------------------------------------------------------------------
# Summary parsing
# ---------------------------------------------------------------------------

_PYTEST_SUMMARY = re.compile(
    r"(?:^|=+ )(\d+ .*?\b(?:passed|failed|errors?|skipped)\b.*?) in [\d.]+s"
)
_PYTEST_COUNT = re.compile(r"(\d+) (passed|failed|errors?|skipped|xfailed|xpassed)")
_NODE_COUNT = re.compile(r"^\s*[#ℹ]\s*(tests|pass|fail)\s+(\d+)\s*$")
_UNITTEST_RAN = re.compile(r"^Ran (\d+) tests? in ")
_UNITTEST_FAILED = re.compile(r"^FAILED \((.*)\)")


def parse_summary(lines: list[str]) -> tuple[int, int, int] | None:
    """Extract ``(passed, failed, total)`` from test-runner output.

    Recognized, in order of precedence:

    1. A structured ``parabench-summary: {"passed": .., "failed": ..,
       "total": ..}`` line.
    2. pytest's final summary line (``=== 2 failed, 8 passed in 1.2s ===``).
    3. node:test reporter totals (``# tests 10``, ``# pass 9``, ``# fail 1``).
    4. unittest's ``Ran N tests`` followed by ``OK`` or ``FAILED (...)``.

    Returns None if no summary is found.
    """
    for line in reversed(lines):
        if line.startswith(SUMMARY_PREFIX):
            try:
                data = json.loads(line[len(SUMMARY_PREFIX) :])
                passed = int(data.get("passed", 0))
                failed = int(data.get("failed", 0))
                total = int(data.get("total", passed + failed))
            except (ValueError, TypeError, AttributeError):
                log.debug("Malformed structured summary: %r", line)
                continue
            return passed, failed, total

    for line in reversed(lines):
        match = _PYTEST_SUMMARY.search(line)
        if match:
            counts: dict[str, int] = {}
            for number, outcome in _PYTEST_COUNT.findall(match.group(1)):
                key = "error" if outcome.startswith("error") else outcome
                counts[key] = counts.get(key, 0) + int(number)
            passed = counts.get("passed", 0)
            failed = counts.get("failed", 0) + counts.get("error", 0)
            return passed, failed, sum(counts.values())

    node: dict[str, int] = {}
    for line in lines:
        match = _NODE_COUNT.match(line)
        if match:
            node[match.group(1)] = int(match.group(2))
    if "tests" in node and ("pass" in node or "fail" in node):
        return node.get("pass", 0), node.get("fail", 0), node["tests"]

    ran: int | None = None
    for line in lines:
        match = _UNITTEST_RAN.match(line)
        if match:
            ran = int(match.group(1))
            continue
        if ran is None:
            continue
        if line.startswith("OK"):
            return ran, 0, ran
        match = _UNITTEST_FAILED.match(line)
        if match:
            failed = 0
            for part in match.group(1).split(","):
                key, _, value = part.strip().partition("=")
                if key in ("failures", "errors") and value.isdigit():
                    failed += int(value)
            return ran - failed, failed, ran

    return None


# ---------------------------------------------------------------------------
# Command-based subject
# ---------------------------------------------------------------------------


@dataclass
class CommandTestSubject:
    """Run a shell command template as the test subject.

    Placeholders replaced in *command*:
      ``{concurrency}``: the concurrency level being measured;
      ``{workload}``: the workload configuration label;
      ``{files}``: the test subject size.

    The same values are exported as ``PARABENCH_CONCURRENCY``,
    ``PARABENCH_WORKLOAD`` and ``PARABENCH_FILES``.

    A successful spawn counts as started.  With *ready_pattern* set, an
    output line matching it must appear within the startup timeout; the
    process finishing first also counts as started.  Leftover members of
    the process group are killed once the command exits.
    """

    command: str
    workload_config: str = "default"
    test_subject_size: int = 0
    cwd: Path | None = None
    env: dict[str, str] = field(default_factory=dict)
    ready_pattern: str | None = None

    def render_command(self, concurrency: int) -> str:
        """Return the command with placeholders substituted."""
        return (
            self.command.replace("{concurrency}", str(concurrency))
            .replace("{workload}", self.workload_config)
            .replace("{files}", str(self.test_subject_size))
        )

    def run(
        self,
        concurrency: int,
        *,
        startup_timeout: float = DEFAULT_STARTUP_TIMEOUT,
    ) -> SubjectSummary:
        """Run the command once and summarize it.

        Raises:
            SubjectStartupTimeout: If *ready_pattern* is set and no line
                matches it in time.
            SubjectError: If the process cannot be spawned, or exits
                nonzero without a recognizable test summary.
        """
        command = self.render_command(concurrency)
        run_env = dict(os.environ)
        run_env.update(self.env)
        run_env["PARABENCH_CONCURRENCY"] = str(concurrency)
        run_env["PARABENCH_WORKLOAD"] = self.workload_config
        run_env["PARABENCH_FILES"] = str(self.test_subject_size)

        log.debug("Running subject at concurrency %d: %s", concurrency, command)
        wall_start = time.monotonic()
        try:
            proc = subprocess.Popen(
                command,
                shell=True,
                cwd=str(self.cwd) if self.cwd else None,
                env=run_env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
                start_new_session=True,
            )
        except OSError as exc:
            raise SubjectError(f"Could not start test subject: {exc}") from exc

        lines: list[str] = []
        ready = threading.Event()
        pattern = re.compile(self.ready_pattern) if self.ready_pattern else None
        reader = threading.Thread(
            target=_read_output,
            args=(proc.stdout, lines, ready, pattern),
            daemon=True,
        )
        reader.start()

        try:
            if pattern is not None and not ready.wait(startup_timeout) and proc.poll() is None:
                _kill_process_group(proc)
                raise SubjectStartupTimeout(
                    f"Test subject not ready within {startup_timeout:g}s: {command}"
                )
            # No timeout once started: the duration is whatever the run takes.
            exit_code = proc.wait()
            # Grandchildren still holding stdout would block the reader.
            _kill_process_group(proc)
        except BaseException:
            if proc.poll() is None:
                _kill_process_group(proc)
            raise
        finally:
            reader.join()

        duration_ms = (time.monotonic() - wall_start) * 1000

        counts = parse_summary(lines)
        if counts is None:
            if exit_code != 0:
                tail = "\n".join(lines[-10:])
                raise SubjectError(
                    f"Test subject exited with code {exit_code} without a test summary:\n{tail}"
                )
            log.warning("No test summary found in subject output; recording zero counts")
            counts = (0, 0, 0)

        passed, failed, total = counts
        return SubjectSummary(
            duration_ms=duration_ms,
            passed=passed,
            failed=failed,
            total=total,
        )


def _read_output(
    stream: IO[str] | None,
    lines: list[str],
    ready: threading.Event,
    pattern: re.Pattern[str] | None,
) -> None:
    """Collect output lines, signalling readiness on the first *pattern* match."""
    if stream is None:
        ready.set()
        return
    try:
        for raw in stream:
            line = raw.rstrip("\n")
            lines.append(line)
            log.debug("subject: %s", line)
            if pattern is not None and not ready.is_set() and pattern.search(line):
                ready.set()
    finally:
        stream.close()
        ready.set()


def _kill_process_group(proc: subprocess.Popen[str]) -> None:
    """Kill the subject's whole process group and reap the leader.

    The group id is the leader's pid (``start_new_session``), so this also
    works after the leader itself has been reaped.
    """
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        log.debug("Process group %d already gone", proc.pid)
    except PermissionError:
        proc.kill()
    proc.wait()
