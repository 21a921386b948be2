"""Shared text formatting helpers for parabench.

Provides functions for formatting durations, ratios, aligned tables,
horizontal bar graphs and section headers used by the CLI and reports.
"""

from __future__ import annotations

import math


def format_ms(milliseconds: float, precision: int = 0) -> str:
    """Format a millisecond duration with adaptive units.

    Examples: ``'850ms'``, ``'12.4s'``, ``'2m 05s'``.
    """
    if math.isnan(milliseconds):
        return "N/A"
    if milliseconds < 1000:
        return f"{milliseconds:.{precision}f}ms"
    seconds = milliseconds / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    return f"{minutes}m {int(seconds % 60):02d}s"


def format_ratio(value: float, precision: int = 2) -> str:
    """Format a speedup ratio: ``'3.41x'``."""
    if math.isnan(value):
        return "N/A"
    if math.isinf(value):
        return "inf"
    return f"{value:.{precision}f}x"


def format_table(
    headers: list[str],
    rows: list[list[str]],
    *,
    alignments: list[str] | None = None,
    indent: int = 2,
    separator: bool = True,
) -> str:
    """Format a list of rows as an aligned text table.

    Column widths are computed from content.  Columns marked ``'r'`` in
    *alignments* are right-aligned, ``'c'`` centered, others left-aligned.

    Args:
        headers: Column header strings.
        rows: List of rows, each a list of cell strings.
        alignments: Per-column alignment: ``'l'``, ``'r'``, or ``'c'``.
        indent: Number of leading spaces per line.
        separator: Draw a rule under the header.

    Returns:
        The formatted table as a string.
    """
    if not headers:
        return ""

    ncols = len(headers)
    aligns = list(alignments or [])
    aligns += ["l"] * (ncols - len(aligns))

    proc_rows = [(list(row) + [""] * ncols)[:ncols] for row in rows]

    widths = [len(h) for h in headers]
    for row in proc_rows:
        for ci, cell in enumerate(row):
            widths[ci] = max(widths[ci], len(cell))

    def _cell(text: str, width: int, align: str) -> str:
        if align == "r":
            return text.rjust(width)
        if align == "c":
            return text.center(width)
        return text.ljust(width)

    prefix = " " * indent
    lines = [prefix + "  ".join(_cell(headers[i], widths[i], aligns[i]) for i in range(ncols))]
    if separator:
        lines.append(prefix + "  ".join("─" * w for w in widths))
    for row in proc_rows:
        lines.append(prefix + "  ".join(_cell(row[i], widths[i], aligns[i]) for i in range(ncols)))

    return "\n".join(line.rstrip() for line in lines)


def format_bar_chart(
    bars: list[tuple[str, float, str]],
    *,
    max_bar_width: int = 50,
    char: str = "▪",
) -> str:
    """Format a horizontal bar graph.

    Each bar is ``(label, value, annotation)``.  Bar lengths are scaled so
    the largest value spans *max_bar_width* characters.
    """
    if not bars:
        return ""

    largest = max((value for _, value, _ in bars), default=0.0)
    label_width = max(len(label) for label, _, _ in bars)
    scale = largest / max_bar_width if largest > 0 else 0.0

    lines: list[str] = []
    for label, value, note in bars:
        length = round(value / scale) if scale else 0
        bar = char * length
        lines.append(f"{label:>{label_width}s} │ {bar} {note}".rstrip())
    return "\n".join(lines)


def bar_unit(largest: float, max_bar_width: int = 50) -> float:
    """Value represented by one bar character for a chart of *largest*."""
    return math.ceil(largest / max_bar_width) if largest > 0 else 0


def format_section_header(title: str, width: int = 72) -> str:
    """Format a section header: ``'─── Title ──...'``."""
    prefix = "─── "
    suffix_len = width - len(prefix) - len(title) - 1
    return prefix + title + " " + "─" * max(0, suffix_len)


def format_percentage(value: float, precision: int = 1) -> str:
    """Format a percentage value: ``'12.5%'``.  NaN gives ``'N/A'``."""
    if math.isnan(value):
        return "N/A"
    if math.isinf(value):
        return "inf"
    return f"{value:.{precision}f}%"
