"""Rich live panel for the measurement phase, plus a one-line fallback for non-TTY output."""

from __future__ import annotations

import time

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .logging_config import get_logger
from .metrics import MetricsCollector
from .scenarios import ArrivalRateScenario
from .snapshot import MetricsSnapshot

logger = get_logger("dashboard")


def _format_remaining(seconds: float) -> str:
    """Format remaining time as Xs or Xm Ys."""
    s = max(0, int(round(seconds)))
    if s >= 60:
        m, s = divmod(s, 60)
        return f"{m}m {s}s"
    return f"{s}s"


def build_metrics_table(collector: MetricsCollector, scenario: ArrivalRateScenario, elapsed_seconds: float) -> Table:
    """Build a single Rich table with current metrics."""
    snap = MetricsSnapshot(collector.get_cached_snapshot())
    total = snap.value("http_reqs", "count")
    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan")
    table.add_column(style="green")

    table.add_row("Target RPS", str(scenario.rate))
    table.add_row("Total requests", f"{total:,.0f}")
    if total:
        table.add_row("Actual RPS", f"{snap.value('http_reqs', 'rate'):.1f}")
        table.add_row("Avg response (ms)", f"{snap.value('http_req_duration', 'avg'):.1f}")
        table.add_row("P95 (ms)", f"{snap.value('http_req_duration', 'p(95)'):.1f}")
        table.add_row("P99 (ms)", f"{snap.value('http_req_duration', 'p(99)'):.1f}")
        table.add_row("Error rate %", f"{snap.value('errors', 'rate') * 100:.2f}%")
    else:
        for label in ("Actual RPS", "Avg response (ms)", "P95 (ms)", "P99 (ms)", "Error rate %"):
            table.add_row(label, "-")
    table.add_row("Active / allocated VUs", f"{collector.vus.value} / {collector.vus_max.value}")
    return table


def create_live_panel(collector: MetricsCollector, scenario: ArrivalRateScenario, start_time: float) -> Panel:
    """Create Rich Panel for live display."""
    elapsed = time.perf_counter() - start_time if start_time else 0.0
    remaining = max(0.0, scenario.duration_seconds - elapsed)
    table = build_metrics_table(collector, scenario, elapsed)
    table.add_row("Elapsed", f"{elapsed:.1f}s / {scenario.duration_seconds:.0f}s")
    table.add_row("Remaining (ETA)", _format_remaining(remaining))
    title = Text()
    title.append("flowbench ", style="bold magenta")
    title.append(f"| {scenario.name} | {elapsed:.1f}s / {scenario.duration_seconds:.0f}s", style="dim")
    title.append(f" | ETA: {_format_remaining(remaining)}", style="bold yellow")
    return Panel(table, title=title, border_style="blue")


def streaming_line(collector: MetricsCollector, scenario: ArrivalRateScenario, start_time: float) -> str:
    """One progress line for CI / docker logs where Live cannot redraw."""
    elapsed = time.perf_counter() - start_time
    remaining = max(0.0, scenario.duration_seconds - elapsed)
    snap = MetricsSnapshot(collector.get_cached_snapshot())
    return (
        f"flowbench | {scenario.name} | {elapsed:.1f}s/{scenario.duration_seconds:.0f}s "
        f"| remaining: {_format_remaining(remaining)} "
        f"| requests={snap.value('http_reqs', 'count'):.0f} "
        f"rps={snap.value('http_reqs', 'rate'):.1f} "
        f"err%={snap.value('errors', 'rate') * 100:.2f}\n"
    )
