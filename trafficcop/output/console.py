"""
Traffic Cop Console Output Module

Rich console formatting for the CLI interface.
Renders capture reports as tables; `print_json` serves --json output.
"""

import json
from typing import Any

from rich.box import ROUNDED
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from trafficcop.analysis.search import SearchResult
from trafficcop.analysis.statistics import (
    AuthFailure,
    Bandwidth,
    CaptureSummary,
    DurationStats,
    MethodStats,
    PayloadSizeStats,
    StatusCodeStats,
)


# =============================================================================
# Constants
# =============================================================================

VERSION = "0.7.0"

STATUS_COLORS = {
    2: "green",
    3: "cyan",
    4: "yellow",
    5: "red",
}


# =============================================================================
# Console Display Class
# =============================================================================


class CaptureConsole:
    """Rich console interface for the Traffic Cop CLI."""

    def __init__(self, console: Console | None = None):
        """Initialize the console."""
        self.console = console or Console()

    def print_success(self, text: str) -> None:
        """Print a success message."""
        self.console.print(f"  [green]✓[/green] {text}")

    def print_warning(self, text: str) -> None:
        """Print a warning message."""
        self.console.print(f"  [yellow]⚠[/yellow] {text}")

    def print_error(self, text: str) -> None:
        """Print an error message."""
        self.console.print(f"  [red]✗[/red] {text}")

    def print_json(self, data: Any) -> None:
        """Print plain JSON, without markup, highlighting or wrapping."""
        self.console.out(json.dumps(data, indent=2, default=str), highlight=False)

    def print_text(self, text: str) -> None:
        """Print text verbatim."""
        self.console.out(text, highlight=False)

    def print_lines(self, lines: list[str]) -> None:
        """Print one-line entry summaries."""
        if not lines:
            self.console.print("[yellow]No entries.[/yellow]")
            return
        for line in lines:
            self.console.print(f"  {escape(line)}", overflow="fold")

    def _table(self, title: str) -> Table:
        return Table(
            title=title,
            box=ROUNDED,
            border_style="bright_blue",
            header_style="bold bright_white",
            title_style="bold cyan",
        )

    def _status(self, code: int | None) -> str:
        color = STATUS_COLORS.get((code or 0) // 100, "white")
        return f"[{color}]{code}[/{color}]"

    # =========================================================================
    # Summary
    # =========================================================================

    def print_summary(self, summary: CaptureSummary, filename: str = "") -> None:
        """Print the capture overview."""
        overview = Table(box=None, show_header=False, padding=(0, 2))
        overview.add_column("Label", style="dim")
        overview.add_column("Value", style="bright_white")

        overview.add_row("Requests", f"{summary.total_requests:,}")
        if summary.time_range is not None:
            overview.add_row("Start", summary.time_range.start.isoformat())
            overview.add_row("End", summary.time_range.end.isoformat())
            overview.add_row("Span", self._format_duration(summary.time_range.duration_ms))
        overview.add_row("Transferred", self._format_bytes(summary.bandwidth.total_bytes))
        for name, value in summary.duration_percentiles.items():
            overview.add_row(name, self._format_duration(value))

        self.console.print(Panel(
            overview,
            title=f"[bold cyan]Capture Summary[/bold cyan] {escape(filename)}".strip(),
            border_style="bright_blue",
            padding=(1, 2),
        ))

        if summary.status_codes:
            self.print_status_stats(summary.status_codes)
        if summary.methods:
            self.print_method_stats(summary.methods)

        if summary.slowest:
            table = self._table("Slowest Requests")
            table.add_column("Method", style="bright_yellow")
            table.add_column("URL", style="bright_white", overflow="fold")
            table.add_column("Status", justify="center")
            table.add_column("Duration", style="bright_green", justify="right")
            for s in summary.slowest:
                table.add_row(escape(s.method), escape(s.url), self._status(s.status), self._format_duration(s.duration))
            self.console.print(table)

        if summary.largest:
            table = self._table("Largest Responses")
            table.add_column("Method", style="bright_yellow")
            table.add_column("URL", style="bright_white", overflow="fold")
            table.add_column("Type", style="dim")
            table.add_column("Size", style="bright_green", justify="right")
            for r in summary.largest:
                table.add_row(escape(r.method), escape(r.url), escape(r.content_type or ""), self._format_bytes(r.size))
            self.console.print(table)

    # =========================================================================
    # Search Results
    # =========================================================================

    def print_search_results(self, results: list[SearchResult]) -> None:
        """Print matching entries with their match reasons."""
        if not results:
            self.console.print("[yellow]No matching entries.[/yellow]")
            return

        table = self._table(f"Matches ({len(results)})")
        table.add_column("#", style="bright_yellow", justify="right")
        table.add_column("Method", style="bright_yellow")
        table.add_column("URL", style="bright_white", overflow="fold")
        table.add_column("Status", justify="center")
        table.add_column("Duration", style="bright_green", justify="right")
        table.add_column("Why", style="dim")

        for r in results:
            entry = r.entry
            table.add_row(
                str(r.index),
                escape(str(entry.request.method)),
                escape(entry.request.url),
                self._status(entry.response.status),
                self._format_duration(entry.duration_ms or 0),
                escape("\n".join(r.match_reasons)),
            )

        self.console.print(table)

    # =========================================================================
    # Statistics
    # =========================================================================

    def print_status_stats(self, stats: list[StatusCodeStats]) -> None:
        table = self._table("Status Codes")
        table.add_column("Status", justify="center")
        table.add_column("Text", style="dim")
        table.add_column("Count", style="bright_white", justify="right")
        table.add_column("Avg", style="bright_green", justify="right")
        table.add_column("Min", justify="right")
        table.add_column("Max", justify="right")
        table.add_column("Avg Size", justify="right")

        for s in stats:
            table.add_row(
                self._status(s.code),
                escape(s.status_text or ""),
                f"{s.count:,}",
                self._format_duration(s.avg_duration),
                self._format_duration(s.min_duration),
                self._format_duration(s.max_duration),
                self._format_bytes(int(s.avg_size)),
            )
        self.console.print(table)

    def print_size_stats(self, stats: list[PayloadSizeStats]) -> None:
        table = self._table("Response Sizes")
        table.add_column("Range", style="bright_yellow")
        table.add_column("Count", style="bright_white", justify="right")
        table.add_column("Total", justify="right")
        table.add_column("Average", style="bright_green", justify="right")

        for s in stats:
            table.add_row(
                s.size_range,
                f"{s.count:,}",
                self._format_bytes(s.total_size),
                self._format_bytes(int(s.avg_size)),
            )
        self.console.print(table)

    def print_duration_stats(self, stats: list[DurationStats]) -> None:
        table = self._table("Durations")
        table.add_column("Range", style="bright_yellow")
        table.add_column("Count", style="bright_white", justify="right")
        table.add_column("Average", style="bright_green", justify="right")

        for s in stats:
            table.add_row(s.duration_range, f"{s.count:,}", self._format_duration(s.avg_duration))
        self.console.print(table)

    def print_method_stats(self, stats: list[MethodStats]) -> None:
        table = self._table("Methods")
        table.add_column("Method", style="bright_yellow")
        table.add_column("Count", style="bright_white", justify="right")
        table.add_column("Avg", style="bright_green", justify="right")
        table.add_column("2xx", style="green", justify="right")
        table.add_column(">=400", style="red", justify="right")

        for s in stats:
            table.add_row(
                escape(s.method),
                f"{s.count:,}",
                self._format_duration(s.avg_duration),
                str(s.success_count),
                str(s.failure_count),
            )
        self.console.print(table)

    def print_auth_failures(self, failures: list[AuthFailure]) -> None:
        if not failures:
            self.print_success("No authentication failures")
            return

        table = self._table("Authentication Failures")
        table.add_column("Status", justify="center")
        table.add_column("Method", style="bright_yellow")
        table.add_column("URL", style="bright_white", overflow="fold")
        table.add_column("Auth Header", justify="center")
        table.add_column("Cookies", justify="right")

        for f in failures:
            table.add_row(
                self._status(f.status),
                escape(f.method),
                escape(f.url),
                "[green]yes[/green]" if f.has_auth_header else "[red]no[/red]",
                str(f.cookie_count),
            )
        self.console.print(table)

    def print_percentiles(self, percentiles: dict[str, float]) -> None:
        if not percentiles:
            self.print_warning("No entries")
            return

        table = self._table("Duration Percentiles")
        table.add_column("Percentile", style="bright_yellow")
        table.add_column("Duration", style="bright_green", justify="right")
        for name, value in percentiles.items():
            table.add_row(name, self._format_duration(value))
        self.console.print(table)

    def print_bandwidth(self, bandwidth: Bandwidth) -> None:
        table = Table(box=None, show_header=False, padding=(0, 2))
        table.add_column("Label", style="dim")
        table.add_column("Value", style="bright_white")
        table.add_row("Requests", self._format_bytes(bandwidth.request_bytes))
        table.add_row("Responses", self._format_bytes(bandwidth.response_bytes))
        table.add_row("Total", f"{self._format_bytes(bandwidth.total_bytes)} ({bandwidth.total_mb:.2f} MiB)")
        self.console.print(table)

    # =========================================================================
    # Formatting Helpers
    # =========================================================================

    def _format_bytes(self, bytes_count: int) -> str:
        """Format bytes to human readable string."""
        if bytes_count < 1024:
            return f"{bytes_count} B"
        elif bytes_count < 1024 ** 2:
            return f"{bytes_count / 1024:.1f} KB"
        elif bytes_count < 1024 ** 3:
            return f"{bytes_count / (1024 ** 2):.1f} MB"
        else:
            return f"{bytes_count / (1024 ** 3):.2f} GB"

    def _format_duration(self, ms: float) -> str:
        """Format milliseconds to human readable string."""
        if ms < 1000:
            return f"{ms:.0f}ms"
        elif ms < 60_000:
            return f"{ms / 1000:.2f}s"
        else:
            minutes = int(ms // 60_000)
            seconds = (ms % 60_000) / 1000
            return f"{minutes}m {seconds:.0f}s"


# Global console instance
_console: CaptureConsole | None = None


def get_console() -> CaptureConsole:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = CaptureConsole()
    return _console
