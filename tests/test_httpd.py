"""Tests for locating httpd and parsing its build information."""

import os
import stat
import subprocess

import pytest

from httpd_limits import httpd
from httpd_limits.errors import ResourceUnavailable, UnsupportedConcurrencyModel, UnsupportedVersion
from httpd_limits.httpd import find_httpd, parse_build_info, query_httpd

from conftest import BUILD_INFO

DEBIAN_BUILD_INFO = """\
Server version: Apache/2.4.41 (Ubuntu)
Server built:   2023-10-26T13:54:09
Server's Module Magic Number: 20120211:88
Architecture:   64-bit
Server MPM:     event
  threaded:     yes (fixed thread count)
    forked:     yes (variable process count)
Server compiled with....
 -D HTTPD_ROOT="/etc/apache2"
 -D SERVER_CONFIG_FILE="apache2.conf"
"""


def _make_executable(path):
    path.write_text("#!/bin/sh\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return str(path)


class TestFindHttpd:
    """Tests for find_httpd()."""

    def test_explicit_exe(self, tmp_path):
        """Test an executable --exe path is used as-is."""
        exe = _make_executable(tmp_path / "httpd")

        assert find_httpd(exe) == exe

    def test_explicit_exe_not_executable(self, tmp_path):
        """Test a non-executable --exe path is rejected."""
        path = tmp_path / "httpd"
        path.write_text("")

        with pytest.raises(ResourceUnavailable):
            find_httpd(str(path))

    def test_first_executable_candidate_wins(self, tmp_path):
        """Test candidates are searched in order."""
        second = _make_executable(tmp_path / "apache2")
        third = _make_executable(tmp_path / "httpd")

        assert find_httpd(candidates=[str(tmp_path / "missing"), second, third]) == second

    def test_no_candidate(self, tmp_path):
        """Test a missing binary is fatal."""
        with pytest.raises(ResourceUnavailable, match="No executable Apache HTTP binary"):
            find_httpd(candidates=[str(tmp_path / "missing")])


class TestParseBuildInfo:
    """Tests for parse_build_info()."""

    def test_rhel_prefork(self):
        """Test a relative config path is joined to HTTPD_ROOT."""
        info = parse_build_info("/usr/sbin/httpd", BUILD_INFO)

        assert info.exe == "/usr/sbin/httpd"
        assert info.root == "/etc/httpd"
        assert info.config_file == os.path.join("/etc/httpd", "conf/httpd.conf")
        assert info.version == (2, 2)
        assert info.mpm == "prefork"

    def test_debian_event(self):
        """Test the Server MPM line alone identifies the MPM."""
        info = parse_build_info("/usr/sbin/apache2", DEBIAN_BUILD_INFO)

        assert info.version == (2, 4)
        assert info.mpm == "event"
        assert info.config_file == "/etc/apache2/apache2.conf"

    def test_absolute_config_path_kept(self):
        """Test an absolute SERVER_CONFIG_FILE is not joined to the root."""
        text = BUILD_INFO.replace('SERVER_CONFIG_FILE="conf/httpd.conf"', 'SERVER_CONFIG_FILE="/srv/httpd.conf"')

        assert parse_build_info("/usr/sbin/httpd", text).config_file == "/srv/httpd.conf"

    def test_mpm_dir_only(self):
        """Test APACHE_MPM_DIR is enough when there is no Server MPM line."""
        text = "\n".join(line for line in BUILD_INFO.splitlines() if not line.startswith("Server MPM"))

        assert parse_build_info("/usr/sbin/httpd", text).mpm == "prefork"

    def test_missing_version(self):
        """Test output without a version line is rejected."""
        text = BUILD_INFO.replace("Server version: Apache/2.2.15 (Unix)", "")

        with pytest.raises(UnsupportedVersion):
            parse_build_info("/usr/sbin/httpd", text)

    def test_missing_mpm(self):
        """Test output without an MPM is rejected."""
        with pytest.raises(UnsupportedConcurrencyModel):
            parse_build_info("/usr/sbin/httpd", "Server version: Apache/2.4.6 (CentOS)\n")


class TestQueryHttpd:
    """Tests for query_httpd()."""

    def test_runs_exe_with_v_flag(self, monkeypatch):
        """Test the binary is run with -V and its output parsed."""
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append(cmd)
            return subprocess.CompletedProcess(cmd, 0, stdout=BUILD_INFO, stderr="")

        monkeypatch.setattr(httpd.subprocess, "run", fake_run)

        info = query_httpd("/usr/sbin/httpd")

        assert calls == [["/usr/sbin/httpd", "-V"]]
        assert info.mpm == "prefork"

    def test_exec_failure(self, tmp_path):
        """Test a binary that cannot be run raises ResourceUnavailable."""
        with pytest.raises(ResourceUnavailable):
            query_httpd(str(tmp_path / "missing"))
