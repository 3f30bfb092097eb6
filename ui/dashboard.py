"""
Rich-based terminal dashboard for netgauge runs.

``ProgressDisplay`` implements both engine sinks (progress events and graph
updates); the ``print_*`` helpers render the final report.  Formatting
helpers live in ``netgauge.stats`` -- this module only does presentation.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from netgauge.grading import rating_color
from netgauge.models import GraphDataPoint, Phase, Reading, SpeedTestResult, TestProgress
from netgauge.stats import calculate_iqm, calculate_percentile, format_latency, format_speed

console = Console()

_PHASE_LABELS = {
    Phase.PING: "Latency",
    Phase.DOWNLOAD: "Download",
    Phase.UPLOAD: "Upload",
    Phase.PACKET_LOSS: "Packet loss",
    Phase.BUFFERBLOAT: "Bufferbloat",
}


# ---------------------------------------------------------------------------
# Histogram helper
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"
_SPARK_WIDTH = 30              # samples shown beside a live progress bar


def create_histogram(values: List[float]) -> str:
    """Return a single-line Unicode bar-chart."""
    if not values:
        return "No data"

    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    return "".join(
        _BARS[min(int((v - lo) / span * (len(_BARS) - 1)), len(_BARS) - 1)]
        for v in values
    )


def _mark(reading: Reading, text: str) -> str:
    """Prefix estimated values with ``~`` so they never pass as measured."""
    return f"~{text}" if reading.is_estimated else text


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]netgauge[/bold cyan]\n"
            "[dim]Latency, throughput, packet loss and bufferbloat over HTTP[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_graph(points: List[GraphDataPoint]) -> None:
    """Print one sparkline per throughput phase."""
    for phase, color in ((Phase.DOWNLOAD, "green"), (Phase.UPLOAD, "blue")):
        speeds = [p.speed for p in points if p.phase == phase.value]
        if not speeds:
            continue
        console.print(
            Panel(
                f"[{color}]{create_histogram(speeds)}[/{color}]\n"
                f"[dim]Min: {min(speeds):.1f}  IQM: {calculate_iqm(speeds):.1f}  "
                f"P90: {calculate_percentile(speeds, 90):.1f}  Max: {max(speeds):.1f} Mbps[/dim]",
                title=f"{_PHASE_LABELS[phase]} Over Time",
            )
        )


def print_final_results(result: SpeedTestResult) -> None:
    table = Table(box=box.ROUNDED, show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Server", result.server_location)
    table.add_row(
        "Client",
        f"{result.user_location.city}, {result.user_location.country} ({result.user_location.ip})",
    )
    table.add_row(
        "Ping",
        f"[bold yellow]{_mark(result.ping, format_latency(result.ping.value))}[/bold yellow] "
        f"[dim](jitter: {_mark(result.jitter, format_latency(result.jitter.value))})[/dim]",
    )
    table.add_row(
        "Download",
        f"[bold green]{_mark(result.download_speed, format_speed(result.download_speed.value))}[/bold green]",
    )
    table.add_row(
        "Upload",
        f"[bold blue]{_mark(result.upload_speed, format_speed(result.upload_speed.value))}[/bold blue]",
    )

    if result.packet_loss is not None:
        pl = result.packet_loss
        text = f"{pl.percentage:.1f}% ({pl.received}/{pl.sent})"
        table.add_row("Packet Loss", f"~{text}" if pl.estimated else text)

    if result.bufferbloat is not None:
        bb = result.bufferbloat
        color = rating_color(bb.rating)
        table.add_row(
            "Bufferbloat",
            f"[bold {color}]{bb.rating.value}[/bold {color}] "
            f"(+{_mark(bb.latency_increase, format_latency(bb.latency_increase.value))})",
        )

    if result.stability is not None:
        table.add_row("Stability", f"{result.stability.score:.0f}/100")

    table.add_row("Duration", f"{result.test_duration:.1f} s")

    console.print()
    console.print(Panel.fit(table, title="[bold]Results[/bold]", border_style="cyan"))
    if result.estimated_fields:
        console.print(
            "[dim]~ estimated: "
            + ", ".join(result.estimated_fields)
            + " could not be measured[/dim]"
        )
    console.print()


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------

class ProgressDisplay:
    """Render engine progress events as one ``rich`` bar per phase."""

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=40),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[bold cyan]{task.fields[speed]}[/bold cyan]"),
            TextColumn("[dim]{task.fields[spark]}[/dim]"),
            TimeElapsedColumn(),
            console=console,
        )
        self._tasks: Dict[Phase, TaskID] = {}
        self._current: Optional[Phase] = None

    def start(self) -> None:
        self.progress.start()

    def stop(self) -> None:
        self.progress.stop()

    # -- Sinks --------------------------------------------------------------

    def on_progress(self, event: TestProgress) -> None:
        if event.phase is Phase.COMPLETE:
            self._finish_current()
            return
        if event.phase not in _PHASE_LABELS:
            return

        if event.phase is not self._current:
            self._finish_current()
            self._tasks[event.phase] = self.progress.add_task(
                _PHASE_LABELS[event.phase], total=100, speed="", spark=""
            )
            self._current = event.phase

        speed = format_speed(event.current_speed) if event.current_speed > 0 else ""
        self.progress.update(self._tasks[event.phase], completed=event.progress, speed=speed)

    def on_graph_update(self, points: List[GraphDataPoint]) -> None:
        """Draw the current phase's most recent speeds as a sparkline."""
        if self._current is None:
            return
        speeds = [p.speed for p in points if p.phase == self._current.value]
        if speeds:
            self.progress.update(
                self._tasks[self._current], spark=create_histogram(speeds[-_SPARK_WIDTH:])
            )

    def _finish_current(self) -> None:
        if self._current is not None:
            self.progress.update(self._tasks[self._current], completed=100)
        self._current = None
