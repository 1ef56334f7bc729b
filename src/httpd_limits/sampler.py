"""Process sampling engine for httpd-limits."""

import logging
import os

import psutil

from httpd_limits.errors import NoMatchingProcess, ResourceUnavailable
from httpd_limits.models import ProcessSample

logger = logging.getLogger(__name__)

MB = 1024 * 1024


class ProcessSampler:
    """
    Samples the memory of every process running a target executable.

    Enumeration is a point-in-time walk of the process table using
    psutil.process_iter(). Processes that exit, turn into zombies or deny
    access while being read are skipped rather than aborting the scan.
    """

    # Attributes to fetch per process
    ATTRS = ["pid", "name", "ppid", "exe", "memory_info"]

    def __init__(self, exe: str) -> None:
        """
        Initialize the ProcessSampler.

        Args:
            exe: Path of the target executable. Symlinks are resolved, since
                the kernel reports the resolved path for each process.
        """
        self._exe = os.path.realpath(exe)

    @property
    def exe(self) -> str:
        """Get the resolved target executable path."""
        return self._exe

    def sample(self) -> list[ProcessSample]:
        """
        Collect a ProcessSample for every process running the target.

        Returns:
            Samples ordered by pid.

        Raises:
            NoMatchingProcess: When no live process matches.
            ResourceUnavailable: When the process table cannot be enumerated.
        """
        samples: list[ProcessSample] = []

        try:
            processes = psutil.process_iter(attrs=self.ATTRS)
            for proc in processes:
                sample = self._sample_process(proc)
                if sample is not None:
                    samples.append(sample)
        except OSError as exc:
            raise ResourceUnavailable(f"process table - {exc}") from exc

        if not samples:
            raise NoMatchingProcess(f"No {self._exe} processes found! Are you root?")

        samples.sort(key=lambda s: s.pid)
        return samples

    def _sample_process(self, proc: psutil.Process) -> ProcessSample | None:
        """Build a sample from one process, or None if it doesn't match."""
        try:
            info = proc.info
            exe = info.get("exe")
            if not exe or exe != self._exe:
                return None

            mem_info = info.get("memory_info")
            if mem_info is None:
                # Matched but unreadable, the process most likely exited
                logger.debug("PID %s matched but has no memory info, skipping", info.get("pid"))
                return None

            sample = ProcessSample(
                pid=info["pid"],
                name=info.get("name") or "",
                parent_pid=info.get("ppid") or 0,
                resident_mb=mem_info.rss / MB,
                shared_mb=getattr(mem_info, "shared", 0) / MB,
            )
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            # Process exited between enumeration and read
            return None

        logger.debug(
            "PID %d %s: ppid %d, rss %.2f MB, shared %.2f MB",
            sample.pid,
            sample.name,
            sample.parent_pid,
            sample.resident_mb,
            sample.shared_mb,
        )
        return sample
