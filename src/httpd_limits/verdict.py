"""Classify a projected memory footprint as OK, WARNING or ERROR."""

from httpd_limits.models import Status, Verdict


def classify(
    projected_total_mb: float,
    total_mb: float,
    swap_free_mb: float,
    swap_tolerance_pct: float = 0.0,
    suffix: str = "",
) -> Verdict:
    """
    Compare the projected total to RAM, then RAM plus free swap.

    Tiers, each inclusive at its upper bound:
      1. fits in RAM: OK
      2. fits in RAM + swap_tolerance_pct% of free swap: OK
      3. fits in RAM + all free swap: WARNING
      4. otherwise: ERROR

    Args:
        projected_total_mb: Projected memory use with all httpd processes running.
        total_mb: Physical RAM.
        swap_free_mb: Free swap.
        swap_tolerance_pct: Percentage (0-100) of free swap that may be used
            without a WARNING.
        suffix: Appended to the projected total in the message, e.g. the
            date of historical averages used.

    Returns:
        The verdict. margin_mb is the amount over RAM for OK and WARNING
        (negative when it fits in RAM) and over RAM + free swap for ERROR.
    """
    if not 0 <= swap_tolerance_pct <= 100:
        raise ValueError(f"swap tolerance must be between 0 and 100, got {swap_tolerance_pct}")

    prefix = f"AllProcsTotal ({projected_total_mb:0.2f} MB){suffix}"
    avail_ram = f"available RAM (MemTotal {total_mb:0.2f} MB)"
    over_ram = projected_total_mb - total_mb

    if projected_total_mb <= total_mb:
        return Verdict(Status.OK, f"OK: {prefix} fits within {avail_ram}.", over_ram)

    if projected_total_mb <= total_mb + swap_free_mb * swap_tolerance_pct / 100:
        return Verdict(
            Status.OK,
            f"OK: {prefix} exceeds {avail_ram}, but fits within {swap_tolerance_pct:g}% of free swap "
            f"(uses {over_ram:0.2f} MB of {swap_free_mb:0.0f} MB).",
            over_ram,
        )

    if projected_total_mb <= total_mb + swap_free_mb:
        return Verdict(
            Status.WARNING,
            f"WARNING: {prefix} exceeds {avail_ram}, but still fits within free swap "
            f"(uses {over_ram:0.2f} MB of {swap_free_mb:0.0f} MB).",
            over_ram,
        )

    over_all = projected_total_mb - (total_mb + swap_free_mb)
    return Verdict(
        Status.ERROR,
        f"ERROR: {prefix} exceeds {avail_ram} and free swap ({swap_free_mb:0.0f} MB) by {over_all:0.2f} MB.",
        over_all,
    )
