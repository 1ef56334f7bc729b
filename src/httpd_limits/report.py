"""Verbose report of everything a check read and calculated."""

from dataclasses import dataclass

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from httpd_limits.check import CheckResult
from httpd_limits.models import Status, Tunable
from httpd_limits.profiles import format_version

FORMULA = "(MemFree + Cached + HttpdRealTot + HttpdSharedAvg) / HttpdRealAvg"

STATUS_STYLE = {
    Status.OK: "green",
    Status.WARNING: "yellow",
    Status.ERROR: "red",
}


@dataclass(slots=True, frozen=True)
class Change:
    """One line of the suggested MPM block."""

    tunable: Tunable
    current: int
    suggested: int
    comment: str

    @property
    def changed(self) -> bool:
        return self.current != self.suggested


def possible_changes(result: CheckResult) -> list[Change]:
    """List every tunable with its suggested value and an explanation."""
    config = result.config
    limits = result.limits
    recommended = result.estimate.recommended

    comments: dict[Tunable, str] = {}
    if limits.threaded:
        comments[Tunable.SERVER_LIMIT] = FORMULA
        comments[limits.worker_cap_tunable] = "ServerLimit * ThreadsPerChild"
    else:
        comments[limits.worker_cap_tunable] = FORMULA
        comments[Tunable.SERVER_LIMIT] = limits.worker_cap_tunable.value

    changes = []
    for tunable in sorted(config.values, key=lambda t: t.value):
        current = config.values[tunable]
        comment = comments.get(tunable) or f"Default is {config.defaults[tunable]}"
        changes.append(Change(tunable, current, recommended.get(tunable, current), comment))
    return changes


def _section(title: str) -> Table:
    table = Table(title=title, title_justify="left", title_style="bold", show_header=False, box=None)
    table.add_column("Name", style="cyan", min_width=24)
    table.add_column("Value", justify="right")
    table.add_column("Note", style="dim")
    return table


def render_report(result: CheckResult, console: Console) -> None:
    """Print the full report, section by section."""
    info = result.info
    sizes = result.sizes
    memory = result.memory
    estimate = result.estimate

    binary = _section("Httpd Binary")
    binary.add_row("EXE", escape(info.exe), "")
    binary.add_row("ROOT", escape(info.root), "")
    binary.add_row("CONFIG", escape(result.config.source or info.config_file), "")
    binary.add_row("VERSION", info.version_string, "")
    binary.add_row("MPM", info.mpm, "")
    console.print(binary)
    console.print()

    processes = Table(title="Httpd Processes", title_justify="left", title_style="bold", box=None)
    processes.add_column("PID", justify="right", style="cyan")
    processes.add_column("Name")
    processes.add_column("RSS MB", justify="right")
    processes.add_column("Shared MB", justify="right")
    processes.add_column("", style="dim")
    for sample in result.samples:
        processes.add_row(
            str(sample.pid),
            escape(sample.name),
            f"{sample.resident_mb:.2f}",
            f"{sample.shared_mb:.2f}",
            escape("[excluded from averages]") if sample.excluded else "",
        )
    console.print(processes)
    console.print()

    averages = _section("Httpd Averages")
    averages.add_row("HttpdRealAvg", f"{sizes.real_avg_mb:.2f} MB", escape("[excludes shared]"))
    averages.add_row("HttpdSharedAvg", f"{sizes.shared_avg_mb:.2f} MB", "")
    averages.add_row("HttpdRealTot", f"{sizes.real_total_mb:.2f} MB", escape("[excludes shared]"))
    averages.add_row("HttpdRunning", str(sizes.running_count), escape("[excludes master]"))
    console.print(averages)
    console.print()

    if result.history is not None:
        saved = _section(f"Database MaxAvgs from {result.history.recorded_at:%Y-%m-%d %H:%M:%S}")
        saved.add_row("HttpdRealAvg", f"{result.history.real_avg_mb:.2f} MB", escape("[excludes shared]"))
        saved.add_row("HttpdSharedAvg", f"{result.history.shared_avg_mb:.2f} MB", "")
        saved.add_row("HttpdRunning", str(result.history.running_count), "")
        console.print(saved)
        console.print()

    config = _section(f"Httpd Config ({format_version(result.config.profile_version)} {result.config.mpm})")
    for tunable in sorted(result.config.values, key=lambda t: t.value):
        note = "" if tunable in result.config.explicit else escape("[default]")
        config.add_row(tunable.value, str(result.config.values[tunable]), note)
    limits = result.limits
    if limits.threaded:
        workers_note = f"[{limits.process_cap} processes x {limits.threads_per_process} threads]"
    else:
        workers_note = f"[{limits.worker_cap_tunable.value}]"
    config.add_row("HttpdWorkers", str(limits.worker_cap), escape(workers_note))
    console.print(config)
    console.print()

    server = _section("Server Memory")
    server.add_row("Cached", f"{memory.cached_mb:.2f} MB", "")
    server.add_row("MemFree", f"{memory.free_mb:.2f} MB", "")
    server.add_row("MemTotal", f"{memory.total_mb:.2f} MB", "")
    server.add_row("SwapFree", f"{memory.swap_free_mb:.2f} MB", "")
    server.add_row("SwapTotal", f"{memory.swap_total_mb:.2f} MB", "")
    server.add_row(
        "SwapTolerance",
        f"{result.swap_tolerance_pct:g} %",
        f"({memory.swap_free_mb * result.swap_tolerance_pct / 100:.2f} MB of SwapFree)",
    )
    console.print(server)
    console.print()

    from_db = f" [Avgs from {estimate.history.recorded_at:%Y-%m-%d}]" if estimate.history else ""
    summary = _section("Summary")
    summary.add_row(
        "NonHttpdProcs",
        f"{estimate.non_target_mb:.2f} MB",
        "(MemTotal - Cached - MemFree - HttpdRealTot - HttpdSharedAvg)",
    )
    summary.add_row(
        "FreeWithoutHttpd",
        f"{estimate.free_without_target_mb:.2f} MB",
        "(MemFree + Cached + HttpdRealTot + HttpdSharedAvg)",
    )
    summary.add_row(
        "MaxHttpdProcs",
        f"{estimate.projected_worker_set_mb:.2f} MB",
        escape(f"(HttpdRealAvg * {result.limits.limit.value} + HttpdSharedAvg){from_db}"),
    )
    summary.add_row(
        "AllProcsTotal",
        f"{estimate.projected_total_mb:.2f} MB",
        "(NonHttpdProcs + MaxHttpdProcs)",
    )
    console.print(summary)
    console.print()

    changes = Table(
        title=f"Possible Changes  <IfModule {result.config.mpm}.c>",
        title_justify="left",
        title_style="bold",
        show_header=False,
        box=None,
    )
    changes.add_column("Directive", style="cyan", min_width=24)
    changes.add_column("Value", justify="right")
    changes.add_column("Change")
    changes.add_column("Comment", style="dim")
    for change in possible_changes(result):
        if change.changed:
            label = f"[yellow]({change.current} -> {change.suggested})[/]"
        else:
            label = "(no change)"
        changes.add_row(change.tunable.value, str(change.suggested), label, change.comment)
    console.print(changes)
    console.print()

    for note in result.config.notes:
        console.print(f"[dim]INFO: {escape(note)}[/]")

    console.print(f"[bold {STATUS_STYLE[result.verdict.status]}]Result[/]")
