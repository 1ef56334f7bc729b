"""
Programmatic entry point: run one capacity check end to end.

Memory and processes are read once, the config is resolved, samples are
folded into averages, history is consulted and updated if requested, and
the projection is classified. The CLI only presents the CheckResult.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from httpd_limits.averager import average_sizes
from httpd_limits.capacity import estimate_capacity
from httpd_limits.errors import InvalidOption
from httpd_limits.history import DEFAULT_DB_PATH, DEFAULT_RETAIN_DAYS, HistoryStore, MaxBy
from httpd_limits.httpd import find_httpd, query_httpd
from httpd_limits.meminfo import MEMINFO_PATH, read_meminfo
from httpd_limits.models import (
    CapacityEstimate,
    EffectiveLimits,
    HistoricalRecord,
    HttpdInfo,
    MemorySnapshot,
    ProcessSample,
    SizeAverages,
    Verdict,
)
from httpd_limits.profiles import ResolvedConfig, load_config
from httpd_limits.sampler import ProcessSampler
from httpd_limits.verdict import classify

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CheckOptions:
    """Runtime options for one check."""

    exe: str | None = None
    config: str | None = None
    swap_tolerance_pct: float = 0.0
    save: bool = False
    retain_days: int | None = None
    use_max: MaxBy | None = None
    db_path: Path = DEFAULT_DB_PATH
    meminfo_path: Path = MEMINFO_PATH

    def __post_init__(self) -> None:
        if not 0 <= self.swap_tolerance_pct <= 100:
            raise InvalidOption(f"swap tolerance must be between 0 and 100, got {self.swap_tolerance_pct}")
        if self.retain_days is not None and self.retain_days <= 0:
            raise InvalidOption(f"retain days must be positive, got {self.retain_days}")

    @property
    def history_requested(self) -> bool:
        return self.save or self.retain_days is not None or self.use_max is not None


@dataclass(slots=True, frozen=True)
class CheckResult:
    """Everything read and calculated during one check."""

    info: HttpdInfo
    memory: MemorySnapshot
    samples: list[ProcessSample]
    config: ResolvedConfig
    limits: EffectiveLimits
    sizes: SizeAverages
    history: HistoricalRecord | None
    estimate: CapacityEstimate
    verdict: Verdict
    swap_tolerance_pct: float = 0.0


def _use_history(options: CheckOptions, sizes: SizeAverages) -> HistoricalRecord | None:
    """Prune, read the largest record, then save, in that order."""
    retain_days = options.retain_days if options.retain_days is not None else DEFAULT_RETAIN_DAYS
    with HistoryStore(options.db_path) as store:
        store.prune(retain_days)
        record = store.largest(options.use_max, retain_days) if options.use_max else None
        if options.save:
            logger.info("Saving httpd averages to %s", store.path)
            store.append(sizes)
    return record


def run_check(options: CheckOptions) -> CheckResult:
    """
    Run the full pipeline once.

    Raises:
        HttpdLimitsError: Any fatal input, config or history error.
    """
    memory = read_meminfo(options.meminfo_path)
    exe = find_httpd(options.exe)
    samples = ProcessSampler(exe).sample()
    info = query_httpd(exe)
    config = load_config(info, options.config)
    limits = config.effective_limits()
    sizes = average_sizes(samples)

    history = _use_history(options, sizes) if options.history_requested else None

    estimate = estimate_capacity(sizes, limits, memory, history, current=config.values)
    suffix = f" [Avgs from {estimate.history.recorded_at:%Y-%m-%d %H:%M:%S}]" if estimate.history else ""
    verdict = classify(
        estimate.projected_total_mb,
        memory.total_mb,
        memory.swap_free_mb,
        options.swap_tolerance_pct,
        suffix=suffix,
    )

    return CheckResult(
        info=info,
        memory=memory,
        samples=samples,
        config=config,
        limits=limits,
        sizes=sizes,
        history=history,
        estimate=estimate,
        verdict=verdict,
        swap_tolerance_pct=options.swap_tolerance_pct,
    )
