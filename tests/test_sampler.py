"""Tests for the ProcessSampler class."""

import os
import sys
from collections import namedtuple

import psutil
import pytest

from httpd_limits import sampler
from httpd_limits.errors import NoMatchingProcess, ResourceUnavailable
from httpd_limits.models import ProcessSample
from httpd_limits.sampler import MB, ProcessSampler

pmem = namedtuple("pmem", ["rss", "vms", "shared"])

HTTPD = "/usr/sbin/httpd"


class FakeProcess:
    """Stand-in for psutil.Process as yielded by process_iter(attrs=...)."""

    def __init__(self, pid, ppid, exe=HTTPD, rss_mb=20, shared_mb=4, name="httpd"):
        self.pid = pid
        self.info = {
            "pid": pid,
            "name": name,
            "ppid": ppid,
            "exe": exe,
            "memory_info": pmem(rss=rss_mb * MB, vms=0, shared=shared_mb * MB),
        }


class VanishedProcess:
    """A process that exits between enumeration and read."""

    def __init__(self, pid):
        self.pid = pid

    @property
    def info(self):
        raise psutil.NoSuchProcess(self.pid)


@pytest.fixture
def fake_table(monkeypatch):
    """Install a fake process table and return the list backing it."""
    table = []

    def process_iter(attrs=None):
        assert attrs == ProcessSampler.ATTRS
        return iter(table)

    monkeypatch.setattr(sampler.psutil, "process_iter", process_iter)
    monkeypatch.setattr(sampler.os.path, "realpath", lambda path: path)
    return table


class TestProcessSampler:
    """Tests for ProcessSampler against a fake process table."""

    def test_sampler_creation(self, fake_table):
        """Test ProcessSampler keeps the resolved target path."""
        assert ProcessSampler(HTTPD).exe == HTTPD

    def test_samples_only_matching_exe(self, fake_table):
        """Test only processes running the target executable are sampled."""
        fake_table.extend(
            [
                FakeProcess(100, 1),
                FakeProcess(101, 100),
                FakeProcess(200, 1, exe="/usr/sbin/sshd", name="sshd"),
                FakeProcess(300, 1, exe=None, name="kthreadd"),
            ]
        )

        samples = ProcessSampler(HTTPD).sample()

        assert [s.pid for s in samples] == [100, 101]
        assert all(isinstance(s, ProcessSample) for s in samples)

    def test_converts_bytes_to_megabytes(self, fake_table):
        """Test resident and shared sizes are reported in MB."""
        fake_table.append(FakeProcess(101, 100, rss_mb=30, shared_mb=6))

        (sample,) = ProcessSampler(HTTPD).sample()

        assert sample.resident_mb == 30.0
        assert sample.shared_mb == 6.0
        assert sample.parent_pid == 100
        assert sample.name == "httpd"

    def test_samples_ordered_by_pid(self, fake_table):
        """Test samples come back in pid order whatever the table order."""
        fake_table.extend([FakeProcess(303, 100), FakeProcess(100, 1), FakeProcess(201, 100)])

        assert [s.pid for s in ProcessSampler(HTTPD).sample()] == [100, 201, 303]

    def test_vanished_process_is_skipped(self, fake_table):
        """Test a process exiting mid-scan is skipped, not fatal."""
        fake_table.extend([FakeProcess(100, 1), VanishedProcess(101), FakeProcess(102, 100)])

        assert [s.pid for s in ProcessSampler(HTTPD).sample()] == [100, 102]

    def test_unreadable_memory_is_skipped(self, fake_table):
        """Test a matched process with no memory info is skipped."""
        proc = FakeProcess(101, 100)
        proc.info["memory_info"] = None
        fake_table.extend([FakeProcess(100, 1), proc])

        assert [s.pid for s in ProcessSampler(HTTPD).sample()] == [100]

    def test_missing_shared_field_counts_as_zero(self, fake_table):
        """Test platforms without shared memory info report 0 shared."""
        proc = FakeProcess(100, 1)
        proc.info["memory_info"] = namedtuple("pmem", ["rss", "vms"])(rss=10 * MB, vms=0)
        fake_table.append(proc)

        (sample,) = ProcessSampler(HTTPD).sample()

        assert sample.shared_mb == 0.0

    def test_no_match_raises(self, fake_table):
        """Test an empty match is fatal."""
        fake_table.append(FakeProcess(200, 1, exe="/usr/sbin/sshd"))

        with pytest.raises(NoMatchingProcess, match="Are you root"):
            ProcessSampler(HTTPD).sample()

    def test_process_table_error_raises(self, monkeypatch):
        """Test a failing enumeration is reported as ResourceUnavailable."""

        def process_iter(attrs=None):
            raise PermissionError("/proc")

        monkeypatch.setattr(sampler.psutil, "process_iter", process_iter)

        with pytest.raises(ResourceUnavailable):
            ProcessSampler(HTTPD).sample()


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="exe matching is tested on Linux")
class TestLiveSampling:
    """Tests sampling the real process table."""

    def test_samples_current_interpreter(self):
        """Test the running interpreter is found among its own processes."""
        samples = ProcessSampler(sys.executable).sample()

        assert os.getpid() in [s.pid for s in samples]
        for sample in samples:
            assert sample.resident_mb > 0
            assert sample.shared_mb >= 0
            assert isinstance(sample.name, str)

    def test_symlinked_exe_is_resolved(self, tmp_path):
        """Test a symlink to the target matches processes of the real binary."""
        link = tmp_path / "python-link"
        link.symlink_to(os.path.realpath(sys.executable))

        samples = ProcessSampler(str(link)).sample()

        assert os.getpid() in [s.pid for s in samples]
