"""Host characterization for concurrency sweeps.

The host's CPU and IO capacity is the variable under study, so every run
records what machine it ran on.  The available parallelism also supplies
the default upper bound of a sweep.

Supports Linux and macOS; other platforms get defaults.  All capture is
best-effort: individual failures leave default values in place.
"""

from __future__ import annotations

import json
import os
import platform
import subprocess
import sys
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from parabench.logging import get_logger

log = get_logger("system")


def available_parallelism() -> int:
    """Return the number of CPUs this process may run on (at least 1)."""
    process_cpu_count = getattr(os, "process_cpu_count", None)
    if process_cpu_count is not None:
        count = process_cpu_count()
        if count:
            return count
    try:
        return len(os.sched_getaffinity(0)) or 1
    except (AttributeError, OSError):
        return os.cpu_count() or 1


# ---------------------------------------------------------------------------
# SystemProfile
# ---------------------------------------------------------------------------


@dataclass
class SystemProfile:
    """Characterization of the host running a sweep."""

    # CPU
    cpu_model: str = "unknown"
    cpu_cores_physical: int = 0
    cpu_cores_logical: int = 0
    available_parallelism: int = 0
    cpu_architecture: str = ""

    # Memory
    ram_total_gb: float = 0.0
    ram_available_gb: float = 0.0

    # OS
    os_name: str = ""
    os_kernel_version: str = ""
    os_distro: str = ""

    # State at capture time
    load_avg_1m: float = 0.0
    load_avg_5m: float = 0.0
    load_avg_15m: float = 0.0

    host_python_version: str = ""
    hostname: str = ""
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SystemProfile:
        """Deserialize from a dict, ignoring unknown fields."""
        known = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in known}
        return cls(**filtered)

    def to_json(self, indent: int = 2) -> str:
        """Serialize to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


def capture_system_profile() -> SystemProfile:
    """Capture a system profile of the current host."""
    profile = SystemProfile(
        timestamp=time.strftime("%Y-%m-%dT%H:%M:%S%z"),
        hostname=platform.node(),
        cpu_architecture=platform.machine(),
        os_name=platform.system(),
        os_kernel_version=platform.release(),
        host_python_version=platform.python_version(),
        cpu_cores_logical=os.cpu_count() or 0,
        available_parallelism=available_parallelism(),
    )

    if sys.platform == "linux":
        _capture_linux(profile)
    elif sys.platform == "darwin":
        _capture_darwin(profile)
    else:
        log.debug("Detailed system capture not supported on %s", sys.platform)

    try:
        load = os.getloadavg()
        profile.load_avg_1m = round(load[0], 2)
        profile.load_avg_5m = round(load[1], 2)
        profile.load_avg_15m = round(load[2], 2)
    except OSError:
        pass

    if not profile.cpu_cores_physical:
        profile.cpu_cores_physical = profile.cpu_cores_logical

    return profile


def _capture_linux(profile: SystemProfile) -> None:
    """Populate CPU, memory and distro fields from /proc and /etc."""
    try:
        cpuinfo = Path("/proc/cpuinfo").read_text()
    except OSError:
        cpuinfo = ""

    physical_ids: set[tuple[str, str]] = set()
    current_physical: str | None = None
    for line in cpuinfo.splitlines():
        if line.startswith("model name") and profile.cpu_model == "unknown":
            profile.cpu_model = line.split(":", 1)[1].strip()
        elif line.startswith("physical id"):
            current_physical = line.split(":", 1)[1].strip()
        elif line.startswith("core id") and current_physical is not None:
            physical_ids.add((current_physical, line.split(":", 1)[1].strip()))
            current_physical = None
    if physical_ids:
        profile.cpu_cores_physical = len(physical_ids)

    try:
        meminfo = Path("/proc/meminfo").read_text()
    except OSError:
        meminfo = ""
    mem: dict[str, int] = {}
    for line in meminfo.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[1].isdigit():
            mem[parts[0].rstrip(":")] = int(parts[1])  # kB
    profile.ram_total_gb = round(mem.get("MemTotal", 0) / (1024 * 1024), 2)
    profile.ram_available_gb = round(mem.get("MemAvailable", 0) / (1024 * 1024), 2)

    try:
        for line in Path("/etc/os-release").read_text().splitlines():
            if line.startswith("PRETTY_NAME="):
                profile.os_distro = line.split("=", 1)[1].strip().strip('"')
                break
    except OSError:
        profile.os_distro = f"{platform.system()} {platform.release()}"


def _capture_darwin(profile: SystemProfile) -> None:
    """Populate CPU and memory fields using sysctl on macOS."""
    model = _sysctl("machdep.cpu.brand_string")
    if model:
        profile.cpu_model = model

    phys = _sysctl("hw.physicalcpu")
    if phys and phys.isdigit():
        profile.cpu_cores_physical = int(phys)

    memsize = _sysctl("hw.memsize")
    if memsize and memsize.isdigit():
        profile.ram_total_gb = round(int(memsize) / (1024**3), 2)

    profile.os_distro = f"macOS {platform.mac_ver()[0]}"


def _sysctl(key: str) -> str | None:
    """Read a sysctl string value. Returns None on failure."""
    try:
        proc = subprocess.run(
            ["sysctl", "-n", key],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if proc.returncode != 0:
        return None
    return proc.stdout.strip() or None


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------


def format_system_profile(profile: SystemProfile) -> str:
    """Format a system profile for terminal display."""
    cores = f"{profile.cpu_cores_physical} cores"
    if profile.cpu_cores_logical != profile.cpu_cores_physical:
        cores += f" / {profile.cpu_cores_logical} threads"

    lines = [
        "System Profile",
        "─" * 14,
        f"CPU:         {profile.cpu_model} ({cores})",
        f"Parallelism: {profile.available_parallelism}",
        f"RAM:         {profile.ram_total_gb:.1f} GB total, "
        f"{profile.ram_available_gb:.1f} GB available",
    ]
    if profile.os_name == "Darwin":
        lines.append(f"OS:          {profile.os_distro}")
    else:
        lines.append(
            f"OS:          {profile.os_distro} ({profile.os_name} {profile.os_kernel_version})"
        )
    lines.append(
        f"Load:        {profile.load_avg_1m} / {profile.load_avg_5m} / {profile.load_avg_15m}"
    )
    lines.append(f"Host:        Python {profile.host_python_version}")
    lines.append(f"Hostname:    {profile.hostname}")
    lines.append(f"Time:        {profile.timestamp}")
    return "\n".join(lines)
