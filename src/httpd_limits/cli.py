"""
Command line interface for httpd-limits.

Exits with the verdict's code (0 OK, 1 WARNING, 2 ERROR) after printing a
one-line result, or with 3 and a message on stderr when the check cannot
be completed.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from rich.console import Console

from httpd_limits import __version__
from httpd_limits.check import CheckOptions, CheckResult, run_check
from httpd_limits.errors import HttpdLimitsError
from httpd_limits.history import DEFAULT_DB_PATH, DEFAULT_RETAIN_DAYS, MaxBy
from httpd_limits.logconfig import setup_logging
from httpd_limits.report import render_report

# Monitoring-plugin convention for "could not determine a status"
EXIT_UNKNOWN = 3

DB_PATH_ENV = "HTTPD_LIMITS_DB"


def _percentage(value: str) -> float:
    pct = float(value)
    if not 0 <= pct <= 100:
        raise argparse.ArgumentTypeError(f"{value} is not between 0 and 100")
    return pct


def _positive_int(value: str) -> int:
    days = int(value)
    if days <= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a positive number of days")
    return days


class _ArgumentParser(argparse.ArgumentParser):
    """Parser whose usage errors exit with EXIT_UNKNOWN rather than 2."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(EXIT_UNKNOWN, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="httpd-limits",
        description=(
            "Compare the size of running Apache httpd processes, the configured "
            "MPM limits and the server's memory. Exits with OK (0), WARNING (1) "
            "or ERROR (2) based on projected memory use with all allowed httpd "
            "processes running."
        ),
    )
    parser.add_argument("--exe", type=str, help="Path to httpd binary file (if non-standard).")
    parser.add_argument("--config", type=str, help="Path to httpd config file (overrides httpd -V).")
    parser.add_argument(
        "--swap-tolerance",
        "--swappct",
        dest="swap_tolerance",
        type=_percentage,
        default=0.0,
        metavar="PCT",
        help="%% of free swap allowed to be used before a WARNING condition (default 0).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Display a detailed report of all values found and calculated.",
    )
    parser.add_argument(
        "--visual",
        action="store_true",
        help="Open the detailed report in a full-screen viewer.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show debugging messages as the check is executing.",
    )
    parser.add_argument("--save", action="store_true", help="Save process average sizes to the database.")
    parser.add_argument(
        "--retain-days",
        "--days",
        dest="retain_days",
        type=_positive_int,
        metavar="N",
        help=f"Remove database entries older than N days (default {DEFAULT_RETAIN_DAYS}).",
    )
    parser.add_argument(
        "--use-max",
        dest="use_max",
        choices=[by.value for by in MaxBy],
        help="Use the saved averages with the largest real average or running count, "
        "when larger than the current real average.",
    )
    parser.add_argument(
        "--maxavg",
        dest="use_max",
        action="store_const",
        const=MaxBy.REAL_AVG.value,
        help="Same as --use-max realavg.",
    )
    parser.add_argument(
        "--db-path",
        type=Path,
        default=None,
        help=f"History database file (default ${DB_PATH_ENV} or {DEFAULT_DB_PATH}).",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def options_from_args(args: argparse.Namespace) -> CheckOptions:
    db_path = args.db_path or Path(os.environ.get(DB_PATH_ENV, DEFAULT_DB_PATH))
    return CheckOptions(
        exe=args.exe,
        config=args.config,
        swap_tolerance_pct=args.swap_tolerance,
        save=args.save,
        retain_days=args.retain_days,
        use_max=MaxBy(args.use_max) if args.use_max else None,
        db_path=db_path,
    )


def _show_visual(result: CheckResult) -> None:
    # Imported here so plain runs never load textual
    from httpd_limits.app import ReportApp

    ReportApp(result).run()


def main(argv: list[str] | None = None) -> int:
    """Entry point for httpd-limits."""
    args = build_parser().parse_args(argv)

    if args.debug:
        level = logging.DEBUG
    elif args.verbose or args.visual:
        level = logging.INFO
    else:
        level = logging.WARNING
    setup_logging(level)

    console = Console()
    if args.verbose:
        console.print(f"\n[bold]Check Apache Httpd Process Limits[/] (Version {__version__})\n")

    try:
        result = run_check(options_from_args(args))
    except HttpdLimitsError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_UNKNOWN

    if args.visual:
        _show_visual(result)
    if args.verbose:
        render_report(result, console)

    print(result.verdict.message)
    return result.verdict.status.exit_code


if __name__ == "__main__":
    sys.exit(main())
