"""httpd-limits - full-screen report viewer for --visual."""

from enum import Enum

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.css.query import NoMatches
from textual.widgets import DataTable, Footer, Static

from httpd_limits.check import CheckResult
from httpd_limits.models import CapacityEstimate, MemorySnapshot, ProcessSample, Verdict
from httpd_limits.report import STATUS_STYLE, possible_changes


class SortKey(Enum):
    """Sort keys for the process table."""

    PID = "pid"
    RSS = "rss"
    SHARED = "shared"
    REAL = "real"


def format_mb(size: float) -> str:
    """Format megabytes as a human-readable string."""
    if abs(size) < 1024:
        return f"{size:7.2f}M"
    return f"{size / 1024:7.2f}G"


def usage_bar(used: float, total: float, color: str, width: int = 20) -> str:
    """Render a bar of `width` cells, overflowing cells shown in red."""
    if total <= 0:
        return "[dim]" + "░" * width + "[/dim]"
    filled = max(0, int(used / total * width))
    if filled <= width:
        return f"[{color}]" + "█" * filled + f"[/{color}]" + "[dim]" + "░" * (width - filled) + "[/dim]"
    return f"[{color}]" + "█" * width + f"[/{color}][red]" + "█" * min(filled - width, width) + "[/red]"


class MemoryStats(Static):
    """Header widget showing server memory next to the projection."""

    DEFAULT_CSS = """
    MemoryStats {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize MemoryStats."""
        super().__init__(*args, **kwargs)
        self._memory: MemorySnapshot | None = None
        self._estimate: CapacityEstimate | None = None

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_mem_info(), id="mem-info"),
            Static(self._get_projection_info(), id="projection-info"),
        )

    def update_stats(self, memory: MemorySnapshot, estimate: CapacityEstimate) -> None:
        """Update the statistics from a check."""
        self._memory = memory
        self._estimate = estimate
        self._refresh_display()

    def _refresh_display(self) -> None:
        try:
            self.query_one("#mem-info", Static).update(self._get_mem_info())
            self.query_one("#projection-info", Static).update(self._get_projection_info())
        except NoMatches:
            pass  # Widget not mounted yet

    def _get_mem_info(self) -> str:
        memory = self._memory
        if memory is None:
            return "Loading memory info..."

        used = memory.total_mb - memory.free_mb - memory.cached_mb
        swap_used = memory.swap_total_mb - memory.swap_free_mb
        # Use escaped brackets for the bar containers
        return (
            f"Mem\\[{usage_bar(used, memory.total_mb, 'cyan')}] "
            f"{format_mb(used)}/{format_mb(memory.total_mb)}\n"
            f"Swp\\[{usage_bar(swap_used, memory.swap_total_mb, 'yellow')}] "
            f"{format_mb(swap_used)}/{format_mb(memory.swap_total_mb)}\n"
            f"Cached {format_mb(memory.cached_mb)}  Free {format_mb(memory.free_mb)}"
        )

    def _get_projection_info(self) -> str:
        memory, estimate = self._memory, self._estimate
        if memory is None or estimate is None:
            return "Loading projection..."

        ceiling = memory.total_mb + memory.swap_free_mb
        source = " (historical averages)" if estimate.from_history else ""
        return (
            f"Max\\[{usage_bar(estimate.projected_total_mb, memory.total_mb, 'green')}] "
            f"{format_mb(estimate.projected_total_mb)}/{format_mb(memory.total_mb)}\n"
            f"Httpd at limit: {format_mb(estimate.projected_worker_set_mb)}{source}\n"
            f"Other processes: {format_mb(estimate.non_target_mb)}  RAM + swap: {format_mb(ceiling)}"
        )


class ProcessTable(Container):
    """Container for the httpd process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, samples: list[ProcessSample] | None = None, **kwargs) -> None:
        """Initialize ProcessTable with the samples to show once mounted."""
        super().__init__(**kwargs)
        self._samples: list[ProcessSample] = list(samples or [])
        self._sort_key: SortKey = SortKey.PID
        self._sort_reverse: bool = False

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    @property
    def pids(self) -> list[int]:
        """PIDs in displayed order."""
        return [sample.pid for sample in self._sort_samples(self._samples)]

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key, re-sort, and return it."""
        keys = list(SortKey)
        current_index = keys.index(self._sort_key)
        self._sort_key = keys[(current_index + 1) % len(keys)]
        # Sizes sort largest first, pids ascending
        self._sort_reverse = self._sort_key != SortKey.PID
        self.update_samples(self._samples)
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("PPID", key="ppid", width=8)
        table.add_column("Name", key="name", width=16)
        table.add_column("RES", key="rss", width=10)
        table.add_column("SHR", key="shared", width=10)
        table.add_column("REAL", key="real", width=10)
        table.add_column("Note", key="note")
        self.update_samples(self._samples)

    def update_samples(self, samples: list[ProcessSample]) -> None:
        """Replace the table contents with samples in the current sort order."""
        self._samples = list(samples)
        table = self.query_one("#process-table", DataTable)
        table.clear()
        for sample in self._sort_samples(self._samples):
            table.add_row(
                str(sample.pid),
                str(sample.parent_pid),
                escape(sample.name),
                format_mb(sample.resident_mb),
                format_mb(sample.shared_mb),
                format_mb(sample.real_mb),
                "master, excluded from averages" if sample.excluded else "",
                key=str(sample.pid),
            )

    def _sort_samples(self, samples: list[ProcessSample]) -> list[ProcessSample]:
        key_func = {
            SortKey.PID: lambda s: s.pid,
            SortKey.RSS: lambda s: s.resident_mb,
            SortKey.SHARED: lambda s: s.shared_mb,
            SortKey.REAL: lambda s: s.real_mb,
        }
        return sorted(samples, key=key_func[self._sort_key], reverse=self._sort_reverse)


class VerdictBar(Static):
    """Footer line with the verdict, colored by status."""

    DEFAULT_CSS = """
    VerdictBar {
        height: auto;
        padding: 0 1;
    }
    """

    def __init__(self, verdict: Verdict, **kwargs) -> None:
        style = STATUS_STYLE[verdict.status]
        super().__init__(f"[bold {style}]{escape(verdict.message)}[/]", **kwargs)
        self.verdict = verdict


class ReportApp(App):
    """Full-screen view of one httpd-limits check."""

    TITLE = "httpd-limits"
    SUB_TITLE = "Apache httpd process limits"

    CSS = """
    Screen {
        layout: vertical;
    }

    #memory-stats {
        dock: top;
        height: auto;
        min-height: 6;
    }

    Horizontal {
        height: auto;
    }

    #mem-info {
        width: 1fr;
        padding-right: 2;
    }

    #projection-info {
        width: 1fr;
        padding-left: 2;
    }

    #changes {
        height: auto;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("s", "sort", "Sort"),
    ]

    def __init__(self, result: CheckResult) -> None:
        """Initialize the ReportApp."""
        super().__init__()
        self._result = result

    @property
    def result(self) -> CheckResult:
        return self._result

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield MemoryStats(id="memory-stats")
        yield ProcessTable(self._result.samples)
        yield Static(self._changes_text(), id="changes")
        yield VerdictBar(self._result.verdict, id="verdict")
        yield Footer()

    def on_mount(self) -> None:
        """Fill the memory header from the check result."""
        result = self._result
        self.query_one("#memory-stats", MemoryStats).update_stats(result.memory, result.estimate)

    def _changes_text(self) -> str:
        lines = [f"[bold]Possible Changes[/]  <IfModule {self._result.config.mpm}.c>"]
        for change in possible_changes(self._result):
            if change.changed:
                label = f"[yellow]({change.current} -> {change.suggested})[/]"
            else:
                label = "(no change)"
            lines.append(
                f"  {change.tunable.value:<24} {change.suggested:>6}  {label}  [dim]{escape(change.comment)}[/]"
            )
        return "\n".join(lines)

    def action_sort(self) -> None:
        """Handle sort action - cycle through sort keys."""
        new_sort_key = self.query_one(ProcessTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_quit(self) -> None:
        """Handle quit action."""
        self.exit(self._result.verdict.status.exit_code)
