"""Fold process samples into size averages."""

import logging
from collections.abc import Iterable

from httpd_limits.models import ProcessSample, SizeAverages

logger = logging.getLogger(__name__)


def average_sizes(samples: Iterable[ProcessSample]) -> SizeAverages:
    """
    Fold samples, in order, into running averages and a real-memory total.

    Every sample adds its real size (resident - shared) to the total. The
    master process (parent pid <= 1) is excluded from the averages, which
    are seeded by the first child and then follow ``avg = (avg + x) / 2``.
    That weights recent samples more heavily than an arithmetic mean, and
    saved history depends on this exact recurrence.
    """
    sizes = SizeAverages()
    seeded = False

    for sample in samples:
        real = sample.real_mb
        if sample.excluded:
            logger.debug("PID %d %s excluded from averages", sample.pid, sample.name)
        else:
            if not seeded:
                sizes.real_avg_mb = real
                sizes.shared_avg_mb = sample.shared_mb
                seeded = True
            sizes.real_avg_mb = (sizes.real_avg_mb + real) / 2
            sizes.shared_avg_mb = (sizes.shared_avg_mb + sample.shared_mb) / 2
            sizes.running_count += 1
        sizes.real_total_mb += real
        logger.debug(
            "Avg %.2f, Shr %.2f, Tot %.2f",
            sizes.real_avg_mb,
            sizes.shared_avg_mb,
            sizes.real_total_mb,
        )

    return sizes
