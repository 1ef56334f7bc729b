"""Locate the httpd binary and read its compiled-in settings."""

import logging
import os
import re
import subprocess
from collections.abc import Iterable

from httpd_limits.errors import (
    ResourceUnavailable,
    UnsupportedConcurrencyModel,
    UnsupportedVersion,
)
from httpd_limits.models import HttpdInfo

logger = logging.getLogger(__name__)

# Common locations for httpd binaries, first executable wins
HTTPD_PATHS = (
    "/usr/sbin/httpd",
    "/usr/local/sbin/httpd",
    "/opt/apache/bin/httpd",
    "/opt/apache/sbin/httpd",
    "/usr/lib/apache2/mpm-prefork/apache2",
    "/usr/sbin/apache2",
    "/usr/local/sbin/apache2",
)

_ROOT = re.compile(r'^.*HTTPD_ROOT="(.*)"$')
_CONFIG = re.compile(r'^.*SERVER_CONFIG_FILE="(.*)"$')
_VERSION = re.compile(r"^Server version:\s+Apache/(\d+)\.(\d+)")
_MPM = re.compile(r"^Server MPM:\s+(\S+)")
_MPM_DIR = re.compile(r'APACHE_MPM_DIR="server/mpm/([^"]*)"$')


def _is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def find_httpd(exe: str | None = None, candidates: Iterable[str] = HTTPD_PATHS) -> str:
    """
    Return the httpd binary to inspect.

    Args:
        exe: Explicit path from the command line, used as-is when executable.
        candidates: Paths searched in order when exe is not given.

    Raises:
        ResourceUnavailable: When no executable binary is found.
    """
    if exe is not None:
        logger.debug('Using command-line exe "%s"', exe)
        if not _is_executable(exe):
            raise ResourceUnavailable(f'"{exe}" is not an executable Apache HTTP binary')
        return exe

    for path in candidates:
        if _is_executable(path):
            logger.debug('Using httpd exe "%s"', path)
            return path
    raise ResourceUnavailable("No executable Apache HTTP binary found!")


def parse_build_info(exe: str, text: str) -> HttpdInfo:
    """
    Parse ``httpd -V`` output.

    Raises:
        UnsupportedVersion: When no version line is present.
        UnsupportedConcurrencyModel: When no MPM is reported.
    """
    root = config = mpm = ""
    version: tuple[int, int] | None = None

    for line in text.splitlines():
        line = line.rstrip()
        match = _ROOT.match(line)
        if match:
            root = match.group(1)
        match = _CONFIG.match(line)
        if match:
            config = match.group(1)
        match = _VERSION.match(line)
        if match:
            version = (int(match.group(1)), int(match.group(2)))
        match = _MPM.match(line) or _MPM_DIR.search(line)
        if match:
            mpm = match.group(1).lower()

    logger.debug("HTTPD ROOT = %s", root)
    logger.debug("HTTPD CONFIG = %s", config)
    logger.debug("HTTPD VERSION = %s", version)
    logger.debug("HTTPD MPM = %s", mpm)

    if version is None:
        raise UnsupportedVersion("Cannot determine httpd version number.")
    if not mpm:
        raise UnsupportedConcurrencyModel("Cannot determine httpd server MPM type.")

    if config and not os.path.isabs(config):
        config = os.path.join(root, config)

    return HttpdInfo(exe=exe, root=root, config_file=config, version=version, mpm=mpm)


def query_httpd(exe: str) -> HttpdInfo:
    """Run ``exe -V`` and parse its output."""
    logger.debug("Open %s -V", exe)
    try:
        result = subprocess.run(
            [exe, "-V"],
            check=False,
            capture_output=True,
            text=True,
            timeout=30,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise ResourceUnavailable(f"{exe} - {exc}") from exc
    return parse_build_info(exe, result.stdout)
