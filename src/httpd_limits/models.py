"""Data models for httpd-limits."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Tunable(Enum):
    """Apache MPM directives understood by the resolver."""

    START_SERVERS = "StartServers"
    MIN_SPARE_SERVERS = "MinSpareServers"
    MAX_SPARE_SERVERS = "MaxSpareServers"
    MIN_SPARE_THREADS = "MinSpareThreads"
    MAX_SPARE_THREADS = "MaxSpareThreads"
    THREADS_PER_CHILD = "ThreadsPerChild"
    SERVER_LIMIT = "ServerLimit"
    MAX_CLIENTS = "MaxClients"
    MAX_REQUEST_WORKERS = "MaxRequestWorkers"
    MAX_REQUESTS_PER_CHILD = "MaxRequestsPerChild"
    MAX_CONNECTIONS_PER_CHILD = "MaxConnectionsPerChild"

    @property
    def zero_allowed(self) -> bool:
        """Request-count caps use 0 for unlimited."""
        return self in (Tunable.MAX_REQUESTS_PER_CHILD, Tunable.MAX_CONNECTIONS_PER_CHILD)


@dataclass(slots=True, frozen=True)
class MemorySnapshot:
    """Immutable snapshot of host memory, in megabytes."""

    total_mb: float = 0.0
    free_mb: float = 0.0
    cached_mb: float = 0.0
    swap_total_mb: float = 0.0
    swap_free_mb: float = 0.0


@dataclass(slots=True, frozen=True)
class ProcessSample:
    """Memory sample of one process running the target executable."""

    pid: int
    name: str
    parent_pid: int
    resident_mb: float
    shared_mb: float

    @property
    def excluded(self) -> bool:
        """True for the master process (parent is init or nothing)."""
        return self.parent_pid <= 1

    @property
    def real_mb(self) -> float:
        """Resident memory not shared with sibling processes."""
        return self.resident_mb - self.shared_mb


@dataclass(slots=True)
class SizeAverages:
    """Running averages and totals folded from process samples."""

    real_avg_mb: float = 0.0
    shared_avg_mb: float = 0.0
    real_total_mb: float = 0.0
    running_count: int = 0


@dataclass(slots=True, frozen=True)
class HistoricalRecord:
    """One saved set of averages from a previous run."""

    recorded_at: datetime
    real_avg_mb: float
    shared_avg_mb: float
    real_total_mb: float
    running_count: int


@dataclass(slots=True, frozen=True)
class HttpdInfo:
    """Build information reported by ``httpd -V``."""

    exe: str
    root: str
    config_file: str
    version: tuple[int, int]
    mpm: str

    @property
    def version_string(self) -> str:
        return f"{self.version[0]}.{self.version[1]}"


@dataclass(slots=True, frozen=True)
class EffectiveLimits:
    """The tunables that bound how many httpd processes can run at once."""

    limit: Tunable  # directive multiplied by the real average
    worker_cap_tunable: Tunable  # MaxClients or MaxRequestWorkers
    process_cap: int
    threads_per_process: int
    worker_cap: int
    threaded: bool


class Status(Enum):
    """Verdict status, valued by its exit code."""

    OK = 0
    WARNING = 1
    ERROR = 2

    @property
    def exit_code(self) -> int:
        return self.value


@dataclass(slots=True, frozen=True)
class Verdict:
    """Outcome of comparing the projected footprint to RAM and swap."""

    status: Status
    message: str
    margin_mb: float  # MB over RAM, or over RAM + swap for ERROR


@dataclass(slots=True, frozen=True)
class CapacityEstimate:
    """Projected memory use with every allowed httpd process running."""

    projected_worker_set_mb: float
    non_target_mb: float
    free_without_target_mb: float
    projected_total_mb: float
    history: HistoricalRecord | None = None
    recommended: dict[Tunable, int] = field(default_factory=dict)

    @property
    def from_history(self) -> bool:
        return self.history is not None
