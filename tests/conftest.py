"""Shared fixtures for httpd-limits tests."""

import logging

import pytest

from httpd_limits.averager import average_sizes
from httpd_limits.capacity import estimate_capacity
from httpd_limits.check import CheckResult
from httpd_limits.logconfig import LOGGER_NAME
from httpd_limits.models import HttpdInfo, MemorySnapshot, ProcessSample, SizeAverages
from httpd_limits.profiles import resolve
from httpd_limits.verdict import classify

PREFORK_CONF = """\
ServerRoot "/etc/httpd"
Listen 80

<IfModule prefork.c>
StartServers       8
MinSpareServers    5
MaxSpareServers   20
ServerLimit       40
MaxClients        40
MaxRequestsPerChild  4000
</IfModule>

<IfModule worker.c>
StartServers         4
MaxClients         300
MinSpareThreads     25
MaxSpareThreads     75
ThreadsPerChild     25
MaxRequestsPerChild  0
</IfModule>
"""

BUILD_INFO = """\
Server version: Apache/2.2.15 (Unix)
Server built:   Apr  3 2014 23:56:16
Server's Module Magic Number: 20051115:25
Server loaded:  APR 1.3.9, APR-Util 1.3.9
Compiled using: APR 1.3.9, APR-Util 1.3.9
Architecture:   64-bit
Server MPM:     Prefork
  threaded:     no
    forked:     yes (variable process count)
Server compiled with....
 -D APACHE_MPM_DIR="server/mpm/prefork"
 -D HTTPD_ROOT="/etc/httpd"
 -D SERVER_CONFIG_FILE="conf/httpd.conf"
"""


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo setup_logging() so later tests see records through caplog."""
    logger = logging.getLogger(LOGGER_NAME)
    yield
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def scenario_memory() -> MemorySnapshot:
    """3939 MB RAM host whose non-httpd use works out to 1367.88 MB."""
    return MemorySnapshot(
        total_mb=3939.0,
        free_mb=1200.0,
        cached_mb=1134.14,
        swap_total_mb=5984.0,
        swap_free_mb=5984.0,
    )


@pytest.fixture
def scenario_sizes() -> SizeAverages:
    return SizeAverages(real_avg_mb=23.61, shared_avg_mb=0.86, real_total_mb=236.12, running_count=10)


@pytest.fixture
def prefork_config():
    return resolve((2, 2), "prefork", PREFORK_CONF, source="/etc/httpd/conf/httpd.conf")


@pytest.fixture
def samples() -> list[ProcessSample]:
    """A master process and three children."""
    return [
        ProcessSample(pid=1000, name="httpd", parent_pid=1, resident_mb=12.0, shared_mb=4.0),
        ProcessSample(pid=1001, name="httpd", parent_pid=1000, resident_mb=30.0, shared_mb=6.0),
        ProcessSample(pid=1002, name="httpd", parent_pid=1000, resident_mb=26.0, shared_mb=2.0),
        ProcessSample(pid=1003, name="httpd", parent_pid=1000, resident_mb=20.0, shared_mb=4.0),
    ]


@pytest.fixture
def check_result(samples, prefork_config) -> CheckResult:
    """A complete CheckResult built from the sample fixtures."""
    memory = MemorySnapshot(
        total_mb=2048.0,
        free_mb=512.0,
        cached_mb=256.0,
        swap_total_mb=1024.0,
        swap_free_mb=1024.0,
    )
    info = HttpdInfo(
        exe="/usr/sbin/httpd",
        root="/etc/httpd",
        config_file="/etc/httpd/conf/httpd.conf",
        version=(2, 2),
        mpm="prefork",
    )
    limits = prefork_config.effective_limits()
    sizes = average_sizes(samples)
    estimate = estimate_capacity(sizes, limits, memory, current=prefork_config.values)
    verdict = classify(estimate.projected_total_mb, memory.total_mb, memory.swap_free_mb)
    return CheckResult(
        info=info,
        memory=memory,
        samples=samples,
        config=prefork_config,
        limits=limits,
        sizes=sizes,
        history=None,
        estimate=estimate,
        verdict=verdict,
    )
