"""Project peak httpd memory use and suggest new limits."""

import logging
from decimal import ROUND_HALF_UP, Decimal

from httpd_limits.models import (
    CapacityEstimate,
    EffectiveLimits,
    HistoricalRecord,
    MemorySnapshot,
    SizeAverages,
    Tunable,
)

logger = logging.getLogger(__name__)

# Recommended MaxRequestsPerChild when the legacy directive is set to unlimited
DEFAULT_REQUESTS_PER_CHILD = 10000


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def recommend_limits(
    sizes: SizeAverages,
    limits: EffectiveLimits,
    memory: MemorySnapshot,
    current: dict[Tunable, int] | None = None,
) -> dict[Tunable, int]:
    """
    Suggest process and worker caps that fit the memory available to httpd.

    Available memory is free + cached plus what httpd uses now. The process
    cap is that divided by the current real average. Returns an empty
    mapping when no child process was averaged.
    """
    if sizes.real_avg_mb <= 0:
        return {}

    available = memory.free_mb + memory.cached_mb + sizes.real_total_mb + sizes.shared_avg_mb
    process_cap = round_half_up(available / sizes.real_avg_mb)

    recommended = {Tunable.SERVER_LIMIT: process_cap}
    if limits.threaded:
        recommended[limits.worker_cap_tunable] = process_cap * limits.threads_per_process
    else:
        recommended[limits.worker_cap_tunable] = process_cap

    if current and current.get(Tunable.MAX_REQUESTS_PER_CHILD) == 0:
        recommended[Tunable.MAX_REQUESTS_PER_CHILD] = DEFAULT_REQUESTS_PER_CHILD
    return recommended


def estimate_capacity(
    sizes: SizeAverages,
    limits: EffectiveLimits,
    memory: MemorySnapshot,
    history: HistoricalRecord | None = None,
    current: dict[Tunable, int] | None = None,
) -> CapacityEstimate:
    """
    Project total memory use with the process cap fully reached.

    The historical averages replace the current ones for the projection
    only when the historical real average is larger. Nothing here raises
    on odd inputs: a negative non-httpd figure is passed through as is.
    """
    if history is not None and history.real_avg_mb > sizes.real_avg_mb:
        logger.debug(
            "History real avg %.2f > current real avg %.2f",
            history.real_avg_mb,
            sizes.real_avg_mb,
        )
        real_avg, shared_avg = history.real_avg_mb, history.shared_avg_mb
    else:
        history = None
        real_avg, shared_avg = sizes.real_avg_mb, sizes.shared_avg_mb

    worker_set = real_avg * limits.process_cap + shared_avg
    non_target = (
        memory.total_mb - memory.cached_mb - memory.free_mb - sizes.real_total_mb - sizes.shared_avg_mb
    )
    free_without = memory.free_mb + memory.cached_mb + sizes.real_total_mb + sizes.shared_avg_mb
    projected_total = non_target + worker_set

    logger.debug(
        "NonHttpdProcs(%.2f) + MaxHttpdProcs(%.2f) = AllProcsTotal(%.2f)",
        non_target,
        worker_set,
        projected_total,
    )

    return CapacityEstimate(
        projected_worker_set_mb=worker_set,
        non_target_mb=non_target,
        free_without_target_mb=free_without,
        projected_total_mb=projected_total,
        history=history,
        recommended=recommend_limits(sizes, limits, memory, current),
    )
