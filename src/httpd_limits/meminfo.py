"""Host memory statistics from /proc/meminfo."""

import logging
import re
from pathlib import Path

from httpd_limits.errors import ResourceUnavailable
from httpd_limits.models import MemorySnapshot

logger = logging.getLogger(__name__)

MEMINFO_PATH = Path("/proc/meminfo")

# meminfo key -> MemorySnapshot field
_FIELDS = {
    "MemTotal": "total_mb",
    "MemFree": "free_mb",
    "Cached": "cached_mb",
    "SwapTotal": "swap_total_mb",
    "SwapFree": "swap_free_mb",
}

_LINE = re.compile(r"^\s*([A-Za-z]+):\s+(\d+)")


def parse_meminfo(text: str) -> MemorySnapshot:
    """
    Parse meminfo text into a MemorySnapshot.

    Values are reported in kB and stored in MB. Unrecognized keys are
    ignored and missing keys stay at 0.
    """
    values: dict[str, float] = {}
    for line in text.splitlines():
        match = _LINE.match(line)
        if not match or match.group(1) not in _FIELDS:
            continue
        key, kilobytes = match.groups()
        values[_FIELDS[key]] = int(kilobytes) / 1024
        logger.debug("Found %s = %.2f MB", key, values[_FIELDS[key]])
    return MemorySnapshot(**values)


def read_meminfo(path: Path = MEMINFO_PATH) -> MemorySnapshot:
    """Read and parse the memory statistics source."""
    logger.debug("Open %s", path)
    try:
        text = Path(path).read_text(encoding="ascii", errors="replace")
    except OSError as exc:
        raise ResourceUnavailable(f"{path} - {exc.strerror or exc}") from exc
    return parse_meminfo(text)
